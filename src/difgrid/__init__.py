"""
difgrid: conditional likelihood grids for differential selection.

Branches of a phylogeny are split into tag groups through their names
(e.g. ``Hsa_Human{G1}``). For every point of a grid over a shared
synonymous rate alpha and one omega per group, difgrid computes the
per-site log-likelihood under the MG94 x F3x4 codon model. Pure subclades,
whose branches all share one group, are evaluated once per (alpha, omega)
pair and reused across the grid.

Quick Start
-----------
>>> from difgrid import run_grid
>>> result = run_grid("alignment.fasta", "tree.nwk", ["{G1}", "{G2}"])
>>> print(result.summary())
>>> result.con_lik_matrix.shape
(1715, 187)

Lower level, with a tree whose messages are already initialised:

>>> from difgrid import difgrid_grid
>>> result = difgrid_grid(tree, tags, nuc_matrix, f3x4, strategy="direct")
"""

__version__ = "0.1.0"

from .api import (
    GridResult,
    GridStrategy,
    difgrid_grid,
    run_grid,
)
from .grid import PhaseStats
from .io import Alignment, Tree, TreeNode
from .tags import TagResolutionError, model_ind

__all__ = [
    "__version__",
    "GridResult",
    "GridStrategy",
    "difgrid_grid",
    "run_grid",
    "PhaseStats",
    "Alignment",
    "Tree",
    "TreeNode",
    "TagResolutionError",
    "model_ind",
]
