"""
MG94 x F3x4 codon substitution model and a memoising model constructor.

A single-nucleotide change from codon i to codon j at codon position p,
nucleotide a -> b, occurs at rate

    rate * nuc_matrix[a, b] * f3x4[p, b]

where ``rate`` is ``alpha`` for synonymous and ``beta`` for nonsynonymous
changes. Multi-nucleotide changes have rate zero. Nucleotides are ordered
T, C, A, G throughout.
"""

from typing import Optional

import numpy as np

from ..core.matrix import (
    check_detailed_balance,
    eigen_decompose_rev,
    transition_matrix_from_eigen,
)
from ..io.sequences import (
    CODONS,
    GENETIC_CODE,
    N_CODONS,
    NUCLEOTIDE_TO_INDEX,
    Alignment,
    INDEX_TO_CODON,
)


def compute_f3x4(alignment: Alignment) -> np.ndarray:
    """
    Compute position-specific nucleotide frequencies from an alignment.

    Gaps, stop codons and ambiguous codons are ignored.

    Returns
    -------
    np.ndarray, shape (3, 4)
        Row p holds T, C, A, G frequencies at codon position p
    """
    counts = np.zeros((3, 4))

    valid = alignment.sequences[(alignment.sequences >= 0) & (alignment.sequences < N_CODONS)]
    codon_idx, codon_counts = np.unique(valid, return_counts=True)
    for idx, n in zip(codon_idx, codon_counts):
        codon = INDEX_TO_CODON[int(idx)]
        for pos, nuc in enumerate(codon):
            counts[pos, NUCLEOTIDE_TO_INDEX[nuc]] += n

    if np.any(counts.sum(axis=1) == 0):
        raise ValueError("Alignment has no valid codons to estimate F3x4 frequencies")

    return counts / counts.sum(axis=1, keepdims=True)


def codon_frequencies_from_f3x4(f3x4: np.ndarray) -> np.ndarray:
    """
    Equilibrium frequencies of the 61 sense codons under F3x4.

    Parameters
    ----------
    f3x4 : np.ndarray, shape (3, 4)

    Returns
    -------
    np.ndarray, shape (61,)
    """
    f3x4 = np.asarray(f3x4, dtype=float)
    if f3x4.shape != (3, 4):
        raise ValueError(f"f3x4 must have shape (3, 4), got {f3x4.shape}")

    pi = np.array([
        f3x4[0, NUCLEOTIDE_TO_INDEX[c[0]]]
        * f3x4[1, NUCLEOTIDE_TO_INDEX[c[1]]]
        * f3x4[2, NUCLEOTIDE_TO_INDEX[c[2]]]
        for c in CODONS
    ])
    return pi / pi.sum()


def hky_nucleotide_matrix(kappa: float = 2.0) -> np.ndarray:
    """
    Symmetric nucleotide exchangeability matrix with transitions
    (T<->C, A<->G) scaled by ``kappa``.
    """
    nuc_matrix = np.ones((4, 4))
    nuc_matrix[0, 1] = nuc_matrix[1, 0] = kappa
    nuc_matrix[2, 3] = nuc_matrix[3, 2] = kappa
    np.fill_diagonal(nuc_matrix, 0.0)
    return nuc_matrix


def build_mg94_Q_matrix(
    alpha: float,
    beta: float,
    nuc_matrix: np.ndarray,
    f3x4: np.ndarray,
    genetic_code: dict = GENETIC_CODE,
) -> np.ndarray:
    """
    Build the (unnormalised) MG94 x F3x4 rate matrix.

    Parameters
    ----------
    alpha : float
        Synonymous rate
    beta : float
        Nonsynonymous rate
    nuc_matrix : np.ndarray, shape (4, 4)
        Symmetric nucleotide exchangeabilities
    f3x4 : np.ndarray, shape (3, 4)
        Position-specific nucleotide frequencies
    genetic_code : dict
        Codon -> amino acid table

    Returns
    -------
    np.ndarray, shape (61, 61)
    """
    Q = np.zeros((N_CODONS, N_CODONS))

    for i, codon_i in enumerate(CODONS):
        for j, codon_j in enumerate(CODONS):
            if i == j:
                continue
            diffs = [k for k in range(3) if codon_i[k] != codon_j[k]]
            if len(diffs) != 1:
                continue

            pos = diffs[0]
            a = NUCLEOTIDE_TO_INDEX[codon_i[pos]]
            b = NUCLEOTIDE_TO_INDEX[codon_j[pos]]
            rate = alpha if genetic_code[codon_i] == genetic_code[codon_j] else beta
            Q[i, j] = rate * nuc_matrix[a, b] * f3x4[pos, b]

    np.fill_diagonal(Q, -Q.sum(axis=1))
    return Q


class MG94Model:
    """
    MG94 x F3x4 codon model with cached transition matrices.

    Not thread-safe: each worker owns its models through its own
    :class:`MG94Cacher`.

    Parameters
    ----------
    alpha : float
        Synonymous rate
    beta : float
        Nonsynonymous rate
    nuc_matrix : np.ndarray, shape (4, 4)
        Symmetric nucleotide exchangeabilities
    f3x4 : np.ndarray, shape (3, 4)
        Position-specific nucleotide frequencies
    genetic_code : dict
        Codon -> amino acid table
    """

    def __init__(
        self,
        alpha: float,
        beta: float,
        nuc_matrix: np.ndarray,
        f3x4: np.ndarray,
        genetic_code: dict = GENETIC_CODE,
    ):
        self.alpha = alpha
        self.beta = beta
        self.nuc_matrix = np.asarray(nuc_matrix, dtype=float)
        self.f3x4 = np.asarray(f3x4, dtype=float)

        if self.nuc_matrix.shape != (4, 4):
            raise ValueError(f"nuc_matrix must have shape (4, 4), got {self.nuc_matrix.shape}")
        if not np.allclose(self.nuc_matrix, self.nuc_matrix.T):
            raise ValueError("nuc_matrix must be symmetric")

        self.pi = codon_frequencies_from_f3x4(self.f3x4)
        if np.any(self.pi <= 0):
            raise ValueError("All F3x4 nucleotide frequencies must be positive")
        self.Q = build_mg94_Q_matrix(alpha, beta, self.nuc_matrix, self.f3x4, genetic_code)
        # The symmetrised eigendecomposition is only valid for reversible Q
        if not check_detailed_balance(self.Q, self.pi):
            raise ValueError("MG94 rate matrix does not satisfy detailed balance")
        self._eigen = eigen_decompose_rev(self.Q, self.pi)
        self._P_cache: dict[float, np.ndarray] = {}

    def transition_matrix(self, t: float) -> np.ndarray:
        """
        Transition probability matrix P(t) for branch length ``t``.

        Cached per branch length; the returned array must not be modified.
        """
        P = self._P_cache.get(t)
        if P is None:
            P = transition_matrix_from_eigen(*self._eigen, t)
            self._P_cache[t] = P
        return P

    def __repr__(self) -> str:
        return f"MG94Model(alpha={self.alpha:.4g}, beta={self.beta:.4g})"


def _check_genetic_code(genetic_code: dict) -> None:
    stops = {c for c, aa in genetic_code.items() if aa == '*'}
    standard_stops = {c for c, aa in GENETIC_CODE.items() if aa == '*'}
    if stops != standard_stops:
        raise ValueError(
            "Only genetic codes with the standard stop codons (TAA, TAG, TGA) "
            "are supported"
        )


class MG94Cacher:
    """
    Memoising MG94 model constructor.

    Calling the cacher with a parameter tuple it has seen before returns the
    previously built model. One instance per worker; instances are never
    shared across threads.

    Examples
    --------
    >>> cached_model = MG94Cacher()
    >>> m1 = cached_model(1.0, 0.5, nuc_matrix, f3x4)
    >>> m2 = cached_model(1.0, 0.5, nuc_matrix, f3x4)
    >>> m1 is m2
    True
    """

    def __init__(self, genetic_code: Optional[dict] = None):
        self.genetic_code = GENETIC_CODE if genetic_code is None else genetic_code
        _check_genetic_code(self.genetic_code)
        self._models: dict[tuple, MG94Model] = {}

    def __call__(
        self, alpha: float, beta: float, nuc_matrix: np.ndarray, f3x4: np.ndarray
    ) -> MG94Model:
        nuc_matrix = np.asarray(nuc_matrix, dtype=float)
        f3x4 = np.asarray(f3x4, dtype=float)
        key = (float(alpha), float(beta), nuc_matrix.tobytes(), f3x4.tobytes())
        model = self._models.get(key)
        if model is None:
            model = MG94Model(alpha, beta, nuc_matrix, f3x4, self.genetic_code)
            self._models[key] = model
        return model

    def __len__(self) -> int:
        return len(self._models)
