"""
Core algorithms for phylogenetic likelihood calculation.

- **Pruning**: Felsenstein's algorithm over per-node messages, scoped to
  any (detached) subtree
- **Matrix operations**: reversible eigendecomposition and transition
  probabilities

These are expert-level functions; :func:`difgrid.difgrid_grid` drives them.
"""

from difgrid.core.likelihood import (
    CodonPartition,
    combine,
    felsenstein,
    initialize_messages,
    site_log_likelihoods,
    tree_site_log_likelihoods,
)
from difgrid.core.matrix import eigen_decompose_rev, transition_matrix_from_eigen

__all__ = [
    "CodonPartition",
    "combine",
    "felsenstein",
    "initialize_messages",
    "site_log_likelihoods",
    "tree_site_log_likelihoods",
    "eigen_decompose_rev",
    "transition_matrix_from_eigen",
]
