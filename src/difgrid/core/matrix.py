"""
Matrix operations for codon substitution models.

Rate matrices here are time-reversible, so transition probabilities are
computed from a symmetrised eigendecomposition that can be reused for every
branch length.
"""

import numpy as np


def eigen_decompose_rev(Q: np.ndarray, pi: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Eigendecompose reversible rate matrix Q = U @ diag(eigenvalues) @ V.

    Q is symmetrised as Q' = sqrt(D) @ Q @ sqrt(D)^(-1) with D = diag(pi),
    decomposed with ``numpy.linalg.eigh`` and transformed back.

    Parameters
    ----------
    Q : ndarray, shape (n, n)
        Rate matrix satisfying detailed balance with ``pi``
    pi : ndarray, shape (n,)
        Stationary distribution

    Returns
    -------
    eigenvalues : ndarray, shape (n,)
        Eigenvalues of Q in ascending order
    U : ndarray, shape (n, n)
        Left eigenvector matrix
    V : ndarray, shape (n, n)
        Right eigenvector matrix
    """
    sqrt_pi = np.sqrt(pi)

    Q_sym = Q * sqrt_pi[:, np.newaxis] / sqrt_pi[np.newaxis, :]
    # Remove asymmetric rounding noise before eigh
    Q_sym = 0.5 * (Q_sym + Q_sym.T)

    eigenvalues, eigenvectors = np.linalg.eigh(Q_sym)

    U = eigenvectors / sqrt_pi[:, np.newaxis]
    V = eigenvectors.T * sqrt_pi[np.newaxis, :]

    return eigenvalues, U, V


def transition_matrix_from_eigen(
    eigenvalues: np.ndarray, U: np.ndarray, V: np.ndarray, t: float
) -> np.ndarray:
    """
    Compute P(t) = U @ diag(exp(eigenvalues * t)) @ V.

    Round-off can leave tiny negative entries; they are clipped to zero.
    """
    P = (U * np.exp(eigenvalues * t)[np.newaxis, :]) @ V
    np.maximum(P, 0.0, out=P)
    return P


def check_detailed_balance(Q: np.ndarray, pi: np.ndarray, rtol: float = 1e-10) -> bool:
    """
    Test whether pi_i * Q[i,j] == pi_j * Q[j,i] for all i, j.
    """
    flux = pi[:, np.newaxis] * Q
    return bool(np.allclose(flux, flux.T, rtol=rtol, atol=1e-14))
