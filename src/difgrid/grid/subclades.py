"""
Detection of pure subclades.

A pure subclade is a maximal subtree whose branches all belong to one tag
group. Its message depends only on alpha and that group's omega, so it can
be computed once per (alpha, omega) pair and reused across every grid point
that shares them.
"""

from ..io.trees import TreeNode
from ..tags import node_tag_index


def detect_pure_subclades(
    node: TreeNode, tags: list[str]
) -> tuple[list[TreeNode], bool, int]:
    """
    Find the roots of pure subclades below ``node``.

    The traversal is depth-first, children before parents and left to
    right; subclade roots are listed in the order they are discovered.
    Leaves are never listed.

    Parameters
    ----------
    node : TreeNode
        Root of the search, usually the tree root
    tags : list[str]
        Ordered tag strings

    Returns
    -------
    pure_subclades : list[TreeNode]
        Subclade roots in discovery order
    is_pure : bool
        Whether the subtree at ``node`` is itself pure
    tag_ind : int
        Resolved tag index of ``node``

    Raises
    ------
    TagResolutionError
        If some node in the subtree has no resolvable tag group
    """
    pure_subclades: list[TreeNode] = []
    # id(node) -> (is_pure, tag_ind)
    status: dict[int, tuple[bool, int]] = {}

    for n in node.postorder():
        tag_ind = node_tag_index(n, tags)
        if n.is_leaf:
            status[id(n)] = (True, tag_ind)
            continue

        children_status = [status.pop(id(child)) for child in n.children]
        first_tag_ind = children_status[0][1]

        if all(pure and t == first_tag_ind for pure, t in children_status):
            if tag_ind != first_tag_ind:
                # Purity ends at this node, so it is the boundary
                pure_subclades.append(n)
                status[id(n)] = (False, tag_ind)
            else:
                status[id(n)] = (True, tag_ind)
            continue

        for child, (child_is_pure, _) in zip(n.children, children_status):
            if child_is_pure and not child.is_leaf:
                pure_subclades.append(child)
        status[id(n)] = (False, tag_ind)

    is_pure, tag_ind = status[id(node)]
    return pure_subclades, is_pure, tag_ind
