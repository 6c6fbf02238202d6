"""
Precomputed messages for pure subclades.

For every pure subclade root and every (alpha, omega) pair on the axis of
its tag group, the subtree is detached, a likelihood pass runs over it with
one model on every branch, and a copy of the resulting message is stored
under ``(node index, alpha, omega)``.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np

from ..core.likelihood import CodonPartition, felsenstein
from ..io.trees import Tree, TreeNode
from ..models.codon import MG94Cacher
from ..tags import node_tag_index
from .branch_models import BranchModels
from .builder import GridSetup
from .surgery import detached
from .workers import partition, run_chunks

CacheKey = tuple[int, float, float]


def messages_for_pairs(
    node: TreeNode,
    cached_model: MG94Cacher,
    pairs: list[list[float]],
    nuc_matrix: np.ndarray,
    f3x4: np.ndarray,
) -> dict[CacheKey, CodonPartition]:
    """
    Messages at ``node`` for each ``(alpha, omega)`` pair.

    ``node`` is detached for the duration of the call and reattached
    afterwards. The caller must own the tree ``node`` belongs to.
    """
    messages = {}
    with detached(node):
        for alpha, omega in pairs:
            model = cached_model(alpha, alpha * omega, nuc_matrix, f3x4)
            felsenstein(node, BranchModels.uniform(model))
            messages[(node.index, alpha, omega)] = node.message.copy()
    return messages


class SubcladeMessageCache:
    """
    Messages of pure subclades keyed by ``(node index, alpha, omega)``.

    Written once during construction and read-only afterwards, so one
    instance can be shared by every grid worker.

    Attributes
    ----------
    messages : dict
        ``(node index, alpha, omega) -> CodonPartition``
    tag_inds : dict
        Node index -> tag group index of the subclade below it
    """

    def __init__(self):
        self.messages: dict[CacheKey, CodonPartition] = {}
        self.tag_inds: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self.messages)

    @property
    def nbytes(self) -> int:
        """Memory held by the cached partial likelihoods."""
        return sum(m.nbytes for m in self.messages.values())

    @property
    def node_indices(self) -> list[int]:
        return list(self.tag_inds)

    def lookup(self, node_index: int, params: list[float]) -> CodonPartition:
        """
        Cached message of a subclade for one codon parameter vector.

        The omega used is the entry of ``params`` belonging to the
        subclade's tag group.
        """
        alpha = params[0]
        omega = params[self.tag_inds[node_index]]
        try:
            return self.messages[(node_index, alpha, omega)]
        except KeyError:
            raise KeyError(
                f"No cached message for node {node_index} at alpha={alpha}, omega={omega}"
            ) from None

    @staticmethod
    def _pairs_for(
        node: TreeNode, tags: list[str], setup: GridSetup, single_omega_grids: dict
    ) -> tuple[int, list[list[float]]]:
        # Every branch below a pure subclade root shares one tag
        tag_ind = node_tag_index(node.children[0], tags)
        key = "Omega" if tag_ind <= setup.num_groups else "OmegaBackground"
        return tag_ind, single_omega_grids[key]

    @classmethod
    def build(
        cls,
        subclades: list[TreeNode],
        tags: list[str],
        setup: GridSetup,
        nuc_matrix: np.ndarray,
        f3x4: np.ndarray,
        cached_model: MG94Cacher,
    ) -> "SubcladeMessageCache":
        """
        Fill the cache sequentially on the tree the subclades belong to.

        Parameters
        ----------
        subclades : list[TreeNode]
            Pure subclade roots
        tags : list[str]
            Ordered tag strings
        setup : GridSetup
            Grid whose axes provide the (alpha, omega) pairs
        nuc_matrix, f3x4 : np.ndarray
            Fixed model parameters
        cached_model : MG94Cacher
            Model constructor
        """
        cache = cls()
        single_omega_grids = setup.single_omega_grids() if subclades else {}
        for x in subclades:
            tag_ind, pairs = cls._pairs_for(x, tags, setup, single_omega_grids)
            cache.tag_inds[x.index] = tag_ind
            cache.messages.update(
                messages_for_pairs(x, cached_model, pairs, nuc_matrix, f3x4)
            )
        return cache

    @classmethod
    def build_parallel(
        cls,
        replicas: list[Tree],
        subclades: list[TreeNode],
        tags: list[str],
        setup: GridSetup,
        nuc_matrix: np.ndarray,
        f3x4: np.ndarray,
        cached_models: list[MG94Cacher],
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> "SubcladeMessageCache":
        """
        Fill the cache with the pairs of each subclade spread over workers.

        Worker ``i`` detaches the subclade in ``replicas[i]`` only, using
        ``cached_models[i]``. Subclades are processed one after another;
        the per-worker maps have disjoint keys and are merged by union.

        Parameters
        ----------
        replicas : list[Tree]
            One tree per worker, all with the canonical node indexing
        subclades : list[TreeNode]
            Pure subclade roots found on the canonical tree
        cached_models : list[MG94Cacher]
            One model constructor per worker
        executor : ThreadPoolExecutor, optional
            Pool shared with the grid phase
        """
        cache = cls()
        if not subclades:
            return cache

        single_omega_grids = setup.single_omega_grids()
        node_lists = [replica.node_list() for replica in replicas]
        for x in subclades:
            tag_ind, pairs = cls._pairs_for(x, tags, setup, single_omega_grids)
            cache.tag_inds[x.index] = tag_ind

            chunks = partition(pairs, len(replicas))
            args = [
                (node_lists[i][x.index], cached_models[i], chunk, nuc_matrix, f3x4)
                for i, chunk in enumerate(chunks)
            ]
            for messages in run_chunks(messages_for_pairs, args, executor):
                cache.messages.update(messages)
        return cache

    def __repr__(self) -> str:
        return (
            f"SubcladeMessageCache(n_subclades={len(self.tag_inds)}, "
            f"n_messages={len(self.messages)})"
        )
