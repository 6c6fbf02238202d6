"""
Per-grid-point assignment of substitution models to branches.
"""

from typing import Optional, Sequence

import numpy as np

from ..io.trees import Tree, TreeNode
from ..models.codon import MG94Cacher, MG94Model
from ..tags import node_tag_index


def tag_index_table(tree: Tree, tags: list[str]) -> list[int]:
    """Resolved tag index of every node, indexed by node index."""
    return [node_tag_index(node, tags) for node in tree.node_list()]


class BranchModels:
    """
    Explicit group -> model mapping applied through a node's tag index.

    Calling the instance with a node returns the model of the branch above
    that node. The tag table is built once per tree and shared by every
    grid point; only the model tuple changes.

    Parameters
    ----------
    models : sequence of MG94Model
        ``models[g - 1]`` is the model for tag group ``g``
    tag_table : list[int], optional
        Tag index per node index; if omitted every branch uses ``models[0]``
    """

    def __init__(self, models: Sequence[MG94Model], tag_table: Optional[list[int]] = None):
        self.models = tuple(models)
        self.tag_table = tag_table

    @classmethod
    def uniform(cls, model: MG94Model) -> "BranchModels":
        """Same model on every branch."""
        return cls((model,))

    @classmethod
    def for_grid_point(
        cls,
        params: Sequence[float],
        tag_table: list[int],
        cached_model: MG94Cacher,
        nuc_matrix: np.ndarray,
        f3x4: np.ndarray,
    ) -> "BranchModels":
        """
        Models for one codon parameter vector ``[alpha, omega_1, ...]``.

        Every group shares alpha; group ``g`` has ``beta = alpha * omega_g``.
        """
        alpha = params[0]
        models = [
            cached_model(alpha, alpha * omega, nuc_matrix, f3x4)
            for omega in params[1:]
        ]
        return cls(models, tag_table)

    def __call__(self, node: TreeNode) -> MG94Model:
        if self.tag_table is None:
            return self.models[0]
        return self.models[self.tag_table[node.index] - 1]

    def __repr__(self) -> str:
        return f"BranchModels(n_models={len(self.models)})"
