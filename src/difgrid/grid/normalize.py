"""
Per-site rescaling of the conditional log-likelihood matrix.
"""

import numpy as np


def normalize_log_likelihoods(log_con_lik_matrix: np.ndarray) -> np.ndarray:
    """
    Exponentiate after subtracting each site's (column's) maximum.

    Only a common per-site scale is removed; rows and columns do not sum
    to one. Every column of the result has maximum exactly 1.

    Parameters
    ----------
    log_con_lik_matrix : np.ndarray, shape (n_grid_points, n_sites)

    Returns
    -------
    np.ndarray, shape (n_grid_points, n_sites)

    Raises
    ------
    ValueError
        If some column has no finite maximum
    """
    log_con_lik_matrix = np.asarray(log_con_lik_matrix, dtype=float)
    if log_con_lik_matrix.ndim != 2:
        raise ValueError(
            f"Expected a 2D matrix, got shape {log_con_lik_matrix.shape}"
        )

    site_scalers = log_con_lik_matrix.max(axis=0)
    if not np.all(np.isfinite(site_scalers)):
        bad = np.flatnonzero(~np.isfinite(site_scalers))
        raise ValueError(f"Sites with no finite log-likelihood: {bad.tolist()}")

    return np.exp(log_con_lik_matrix - site_scalers[np.newaxis, :])
