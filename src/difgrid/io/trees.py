"""
Phylogenetic tree parsing, traversal and replication.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional


@dataclass(eq=False)
class TreeNode:
    """
    Phylogenetic tree node.

    Attributes
    ----------
    index : int
        Stable node index (preorder, assigned once per tree instance)
    name : Optional[str]
        Node name; tag membership is encoded in the name (e.g. 'Hsa{G1}')
    parent : Optional[TreeNode]
        Parent node (non-owning back-reference)
    children : list[TreeNode]
        Child nodes
    branch_length : float
        Branch length to parent
    label : Optional[str]
        PAML branch label (e.g., '#1')
    message : Any
        Partial likelihood state produced by the pruning engine
    parent_message : Any
        Prior state flowing down from the parent (equilibrium
        frequencies at the root)
    """

    index: int
    name: Optional[str] = None
    parent: Optional["TreeNode"] = None
    children: list["TreeNode"] = field(default_factory=list)
    branch_length: float = 0.0
    label: Optional[str] = None
    message: Any = None
    parent_message: Any = None

    @property
    def is_leaf(self) -> bool:
        """Check if node is a leaf."""
        return len(self.children) == 0

    @property
    def tagged_name(self) -> Optional[str]:
        """
        Name used for tag resolution: the node name followed by its PAML
        label. Unnamed internal nodes resolve as ''. Unnamed leaves have no
        tagged name.
        """
        if self.name is None and self.is_leaf:
            return None
        return (self.name or "") + (self.label or "")

    def postorder(self) -> list["TreeNode"]:
        """
        Nodes of the subtree rooted here, children before parents.

        Iterative so that deep (caterpillar) trees do not hit the
        recursion limit.
        """
        result = []
        stack = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                result.append(node)
                continue
            stack.append((node, True))
            for child in reversed(node.children):
                stack.append((child, False))
        return result

    def preorder(self) -> Iterator["TreeNode"]:
        """Yield nodes of the subtree rooted here, parents before children."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def __repr__(self) -> str:
        return (
            f"TreeNode(index={self.index}, name={self.name!r}, "
            f"n_children={len(self.children)})"
        )


@dataclass
class Tree:
    """
    Phylogenetic tree.

    Attributes
    ----------
    root : TreeNode
        Root node of the tree
    n_nodes : int
        Total number of nodes
    n_leaves : int
        Number of leaf nodes
    leaf_names : list[str]
        Names of leaf nodes
    """

    root: TreeNode
    n_nodes: int
    n_leaves: int
    leaf_names: list[str]

    @classmethod
    def from_newick(cls, newick_string: str) -> "Tree":
        """
        Parse Newick format tree string.

        Node names may carry tag suffixes such as ``{G1}``; internal node
        names are kept so that internal branches can be tagged too.

        Parameters
        ----------
        newick_string : str
            Newick format tree

        Returns
        -------
        Tree
            Parsed tree with node indices assigned in preorder
        """
        # Remove // and PAML-style / * * / comments
        newick = re.sub(r'//.*', '', newick_string)
        newick = re.sub(r'/\s*\*.*?\*\s*/', '', newick)
        newick = newick.strip()

        if ';' not in newick:
            raise ValueError("Invalid Newick format: missing semicolon")

        # Skip PAML headers (just numbers) and keep lines up to the semicolon
        tree_lines = []
        for line in newick.split('\n'):
            if line.strip() and not re.match(r'^\s*\d+\s+\d+\s*$', line):
                tree_lines.append(line)
                if ';' in line:
                    break

        if not tree_lines:
            raise ValueError("Invalid Newick format: no tree found")

        tree_line = ''.join(tree_lines)
        tree_line = tree_line.replace('\n', '').replace('\t', '').replace('\r', '')

        node_id_counter = [0]

        def skip_whitespace(s: str, pos: int) -> int:
            while pos < len(s) and s[pos] in ' \t\n\r':
                pos += 1
            return pos

        def new_node(parent: Optional[TreeNode] = None) -> TreeNode:
            node = TreeNode(index=node_id_counter[0], parent=parent)
            node_id_counter[0] += 1
            if parent is not None:
                parent.children.append(node)
            return node

        def parse_suffix(s: str, pos: int, node: TreeNode) -> int:
            """Parse name, branch label and branch length following a node."""
            name_start = pos
            while pos < len(s) and s[pos] not in ',:();# \t\n\r':
                pos += 1
            if pos > name_start:
                node.name = s[name_start:pos]

            pos = skip_whitespace(s, pos)

            # Branch label (e.g., #1, #2)
            if pos < len(s) and s[pos] == '#':
                pos += 1
                label_start = pos
                while pos < len(s) and s[pos] not in ',:(); \t\n\r':
                    pos += 1
                node.label = '#' + s[label_start:pos]

            pos = skip_whitespace(s, pos)

            if pos < len(s) and s[pos] == ':':
                pos += 1
                pos = skip_whitespace(s, pos)
                length_start = pos
                while pos < len(s) and s[pos] not in ',(); \t\n\r':
                    pos += 1
                try:
                    node.branch_length = float(s[length_start:pos])
                except ValueError:
                    raise ValueError(f"Invalid branch length: {s[length_start:pos]}")

            return pos

        # Explicit stack of open clades so that deeply nested trees parse
        # without recursion. Nodes are created in preorder.
        s = tree_line
        root = new_node()
        node = root
        open_clades: list[TreeNode] = []
        pos = skip_whitespace(s, 0)
        closed = False
        while True:
            if not closed and pos < len(s) and s[pos] == '(':
                open_clades.append(node)
                pos = skip_whitespace(s, pos + 1)
                node = new_node(node)
                continue

            closed = False
            pos = parse_suffix(s, pos, node)
            if not open_clades:
                break

            pos = skip_whitespace(s, pos)
            if pos < len(s) and s[pos] == ',':
                pos = skip_whitespace(s, pos + 1)
                node = new_node(open_clades[-1])
            elif pos < len(s) and s[pos] == ')':
                pos = skip_whitespace(s, pos + 1)
                node = open_clades.pop()
                closed = True
            else:
                raise ValueError(f"Expected ',' or ')' at position {pos}")

        n_nodes = 0
        leaf_names = []
        for node in root.preorder():
            n_nodes += 1
            if node.is_leaf:
                leaf_names.append(node.name if node.name else str(node.index))

        return cls(
            root=root,
            n_nodes=n_nodes,
            n_leaves=len(leaf_names),
            leaf_names=leaf_names,
        )

    @property
    def message(self) -> Any:
        """Message held at the root."""
        return self.root.message

    def postorder(self) -> list[TreeNode]:
        """
        Return nodes in post-order traversal (leaves to root).

        Returns
        -------
        list[TreeNode]
            Nodes in post-order
        """
        return self.root.postorder()

    def node_list(self) -> list[TreeNode]:
        """
        Return all nodes ordered by index, so that
        ``tree.node_list()[i].index == i``.

        Raises
        ------
        ValueError
            If the indices are not a permutation of ``range(n_nodes)``
        """
        nodes = list(self.root.preorder())
        table: list[Optional[TreeNode]] = [None] * len(nodes)
        for node in nodes:
            if not 0 <= node.index < len(nodes) or table[node.index] is not None:
                raise ValueError(
                    "Node indices are not contiguous; call set_node_indices() first"
                )
            table[node.index] = node
        return table

    def set_node_indices(self) -> None:
        """Assign node indices 0..n_nodes-1 in preorder."""
        for i, node in enumerate(self.root.preorder()):
            node.index = i

    def copy(self) -> "Tree":
        """
        Clone every node record into an independent tree.

        Node indices, names, labels and branch lengths are preserved, so an
        index refers to the structurally corresponding node in the replica.
        Messages are copied with their own ``copy()`` method where they
        provide one.
        """
        clones: dict[int, TreeNode] = {}
        for node in self.root.preorder():
            clone = TreeNode(
                index=node.index,
                name=node.name,
                branch_length=node.branch_length,
                label=node.label,
                message=_copy_message(node.message),
                parent_message=_copy_message(node.parent_message),
            )
            if node.parent is not None:
                clone.parent = clones[id(node.parent)]
                clone.parent.children.append(clone)
            clones[id(node)] = clone

        return Tree(
            root=clones[id(self.root)],
            n_nodes=self.n_nodes,
            n_leaves=self.n_leaves,
            leaf_names=list(self.leaf_names),
        )

    def structure(self) -> tuple[tuple[int, Optional[int], tuple[int, ...]], ...]:
        """
        Parent/child structure as (index, parent index, child indices)
        tuples in preorder. Two trees with equal structure have identical
        topology and indexing.
        """
        return tuple(
            (
                node.index,
                node.parent.index if node.parent is not None else None,
                tuple(child.index for child in node.children),
            )
            for node in self.root.preorder()
        )


def _copy_message(message: Any) -> Any:
    if message is None:
        return None
    return message.copy() if hasattr(message, "copy") else message
