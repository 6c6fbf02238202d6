"""
Felsenstein pruning over per-node messages.

Each node holds a :class:`CodonPartition` message: the conditional
likelihood of the data below the node for every site and codon state,
stored rescaled with the per-site log scaling constants kept alongside.
A likelihood pass recomputes the messages of internal nodes bottom-up;
nodes without children keep whatever message they already hold, which is
what lets precomputed subtree messages stand in for whole subclades.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from ..io.sequences import Alignment, N_CODONS
from ..io.trees import Tree, TreeNode
from ..models.codon import codon_frequencies_from_f3x4
from ..tags import strip_tags


@dataclass
class CodonPartition:
    """
    Per-site partial likelihoods.

    Attributes
    ----------
    partials : np.ndarray, shape (n_sites, n_states)
        Conditional likelihoods, rescaled so each site's maximum is at most 1
    log_scale : np.ndarray, shape (n_sites,)
        Log of the scaling constants divided out of ``partials``
    """

    partials: np.ndarray
    log_scale: np.ndarray

    @classmethod
    def empty(cls, n_sites: int, n_states: int = N_CODONS) -> "CodonPartition":
        return cls(np.ones((n_sites, n_states)), np.zeros(n_sites))

    @property
    def sites(self) -> int:
        return self.partials.shape[0]

    @property
    def states(self) -> int:
        return self.partials.shape[1]

    @property
    def nbytes(self) -> int:
        return self.partials.nbytes + self.log_scale.nbytes

    def copy(self) -> "CodonPartition":
        return CodonPartition(self.partials.copy(), self.log_scale.copy())


ModelFunc = Callable[[TreeNode], Any]


def initialize_messages(
    tree: Tree,
    alignment: Alignment,
    f3x4: np.ndarray,
    tags: Optional[list[str]] = None,
) -> None:
    """
    Attach tip observations and empty internal messages to every node.

    Leaves get one-hot partials for their observed codon (all ones for gaps
    and ambiguous codons). The root's ``parent_message`` holds the
    equilibrium codon frequencies used by :func:`combine`.

    Parameters
    ----------
    tree : Tree
        Tree to populate
    alignment : Alignment
        Codon alignment whose names match the leaf names
    f3x4 : np.ndarray, shape (3, 4)
        Position-specific nucleotide frequencies defining the root prior
    tags : list[str], optional
        Tags to strip from leaf and sequence names before matching
    """
    tags = tags or []
    seq_index = {strip_tags(name, tags): i for i, name in enumerate(alignment.names)}
    n_sites = alignment.n_sites

    leaf_keys = [strip_tags(name, tags) for name in tree.leaf_names]
    missing = set(leaf_keys) - set(seq_index)
    if missing:
        raise ValueError(
            f"Tree leaves without sequences in alignment: {sorted(missing)}"
        )

    for node in tree.postorder():
        if node.is_leaf:
            if node.name is None:
                raise ValueError(f"Leaf node {node.index} has no name")
            row = alignment.sequences[seq_index[strip_tags(node.name, tags)]]
            partials = np.zeros((n_sites, N_CODONS))
            observed = (row >= 0) & (row < N_CODONS)
            partials[np.nonzero(observed)[0], row[observed].astype(int)] = 1.0
            partials[~observed, :] = 1.0
            node.message = CodonPartition(partials, np.zeros(n_sites))
        else:
            node.message = CodonPartition.empty(n_sites)

    pi = codon_frequencies_from_f3x4(f3x4)
    tree.root.parent_message = CodonPartition(
        np.tile(pi, (n_sites, 1)), np.zeros(n_sites)
    )


def felsenstein(node: TreeNode, model_func: ModelFunc) -> None:
    """
    Run a pruning pass over the subtree rooted at ``node``.

    Every internal node's message is replaced by the product over its
    children of the child message propagated along the child's branch,
    using the substitution model ``model_func(child)``. Nodes without
    children are left untouched.

    Parameters
    ----------
    node : TreeNode
        Start of the pass; must have no parent (the whole tree's root or a
        detached subtree)
    model_func : callable
        Maps a node to the substitution model of the branch above it

    Raises
    ------
    ValueError
        If ``node`` still has a parent, or a child has no message
    """
    if node.parent is not None:
        raise ValueError(
            f"Likelihood pass must start at a root; node {node.index} has a parent. "
            f"Detach the subtree first."
        )

    for n in node.postorder():
        if n.is_leaf:
            continue

        partials = None
        log_scale = None
        for child in n.children:
            if child.message is None:
                raise ValueError(f"Node {child.index} has no message; initialise messages first")
            P = model_func(child).transition_matrix(child.branch_length)
            term = child.message.partials @ P.T
            if partials is None:
                partials = term
                log_scale = child.message.log_scale.copy()
            else:
                partials *= term
                log_scale += child.message.log_scale

        site_max = partials.max(axis=1)
        site_max = np.where(site_max > 0, site_max, 1.0)
        partials /= site_max[:, np.newaxis]
        log_scale += np.log(site_max)
        n.message = CodonPartition(partials, log_scale)


def combine(message: CodonPartition, parent_message: CodonPartition) -> CodonPartition:
    """
    Fold the parent's message (equilibrium frequencies at the root) into a
    node's message.

    Returns a new partition; neither input is modified.
    """
    return CodonPartition(
        message.partials * parent_message.partials,
        message.log_scale + parent_message.log_scale,
    )


def site_log_likelihoods(message: CodonPartition) -> np.ndarray:
    """
    Per-site log-likelihoods of a combined message.

    Includes the scaling constants accumulated during the pass.
    """
    with np.errstate(divide="ignore"):
        return np.log(message.partials.sum(axis=1)) + message.log_scale


def tree_site_log_likelihoods(tree: Tree, model_func: ModelFunc) -> np.ndarray:
    """Full pass, combine at the root, and per-site log-likelihoods."""
    felsenstein(tree.root, model_func)
    combined = combine(tree.root.message, tree.root.parent_message)
    return site_log_likelihoods(combined)
