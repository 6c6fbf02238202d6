"""
Branch tag resolution.

Tag groups are encoded in node names, e.g. ``Hsa_Human{G1}``. A node belongs
to group ``i`` (1-based) when the i-th tag occurs in its name; nodes that
match no tag belong to the implicit background group ``len(tags) + 1``.
"""

from typing import Optional

from .io.trees import TreeNode


class TagResolutionError(ValueError):
    """Raised when a node name cannot be mapped to a tag group."""


def model_ind(name: Optional[str], tags: list[str]) -> int:
    """
    Resolve a node name to its tag group index.

    Parameters
    ----------
    name : str
        Node name
    tags : list[str]
        Ordered tag strings

    Returns
    -------
    int
        1-based index of the last tag contained in ``name``, or
        ``len(tags) + 1`` for background nodes

    Raises
    ------
    TagResolutionError
        If ``name`` is not a string
    """
    if not isinstance(name, str):
        raise TagResolutionError(
            f"Cannot resolve tag group for node name {name!r}; "
            f"every leaf must be named"
        )

    ind = len(tags) + 1
    for i, tag in enumerate(tags, start=1):
        if tag in name:
            ind = i
    return ind


def node_tag_index(node: TreeNode, tags: list[str]) -> int:
    """Resolve the tag group of a node (name plus PAML branch label)."""
    try:
        return model_ind(node.tagged_name, tags)
    except TagResolutionError as e:
        raise TagResolutionError(f"{e} (node index {node.index})") from None


def strip_tags(name: str, tags: list[str]) -> str:
    """Remove every tag occurrence from a node name."""
    for tag in tags:
        name = name.replace(tag, "")
    return name
