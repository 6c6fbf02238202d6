"""
Codon substitution models.

- **MG94Model**: MG94 x F3x4 model parameterised by synonymous (alpha) and
  nonsynonymous (beta) rates
- **MG94Cacher**: memoising constructor, one per worker
"""

from difgrid.models.codon import (
    MG94Cacher,
    MG94Model,
    build_mg94_Q_matrix,
    codon_frequencies_from_f3x4,
    compute_f3x4,
    hky_nucleotide_matrix,
)

__all__ = [
    "MG94Cacher",
    "MG94Model",
    "build_mg94_Q_matrix",
    "codon_frequencies_from_f3x4",
    "compute_f3x4",
    "hky_nucleotide_matrix",
]
