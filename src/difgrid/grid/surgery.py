"""
Temporary tree surgery.

Both context managers restore the links they cut on exit, including when
the body raises.
"""

from contextlib import contextmanager
from typing import Iterable, Iterator

from ..io.trees import TreeNode


@contextmanager
def detached(node: TreeNode) -> Iterator[TreeNode]:
    """
    Cut the parent link of ``node`` so a likelihood pass can start there.

    Only the back-reference on ``node`` is cleared; the parent's child list
    is left as it is.
    """
    parent = node.parent
    node.parent = None
    try:
        yield node
    finally:
        node.parent = parent


@contextmanager
def collapsed(nodes: Iterable[TreeNode]) -> Iterator[list[TreeNode]]:
    """
    Temporarily make every node in ``nodes`` childless.

    A likelihood pass treats childless nodes as tips and keeps their current
    message, so collapsed nodes act as precomputed subtrees.
    """
    nodes = list(nodes)
    saved = [node.children for node in nodes]
    for node in nodes:
        node.children = []
    try:
        yield nodes
    finally:
        for node, children in zip(nodes, saved):
            node.children = children
