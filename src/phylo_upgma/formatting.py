"""
Text renderings of a finished UPGMA tree.

Both renderings list the right subtree before the left one.
"""

from typing import TYPE_CHECKING, Dict, List

if TYPE_CHECKING:
    from .upgma_core import PhyloTree, TreeNode


def _weighted_depths(tree: "PhyloTree") -> Dict[int, float]:
    depth: Dict[int, float] = {tree.root.index: 0.0}
    for node in tree.preorder():
        for ch in tree.children_of(node):
            depth[ch.index] = depth[node.index] + node.distance_to_child
    return depth


# ----------------------------------------------------------------------
# 1. Indented listing
# ----------------------------------------------------------------------

def to_indented_string(tree: "PhyloTree", printing_depth: int) -> str:
    """
    One line per node, indented with dots in proportion to its weighted depth.

    The deepest node gets ``printing_depth`` dots. Lines follow a reverse
    in-order walk (right subtree, node, left subtree), so the tree reads
    sideways with the root on the left.
    """
    depth = _weighted_depths(tree)
    max_depth = tree.weighted_height()

    lines: List[str] = []
    stack: List["TreeNode"] = []
    node = tree.root
    while stack or node is not None:
        while node is not None:
            stack.append(node)
            node = None if node.right is None else tree.nodes[node.right]
        node = stack.pop()
        dots = int(printing_depth * (depth[node.index] / max_depth)) if max_depth > 0 else 0
        lines.append("." * dots + str(node) + "\n")
        node = None if node.left is None else tree.nodes[node.left]

    return "".join(lines)


# ----------------------------------------------------------------------
# 2. Newick
# ----------------------------------------------------------------------

def to_newick(tree: "PhyloTree", precision: int = 5) -> str:
    """
    Convert a tree to a Newick string.

    Every non-root node carries the edge weight of its parent.
    """

    def _length(n: "TreeNode") -> str:
        return f"{tree.parent_of(n).distance_to_child:.{precision}f}"

    def _rec(n: "TreeNode") -> str:
        if n.is_leaf():
            text = n.label
        else:
            text = f"({_rec(tree.nodes[n.right])},{_rec(tree.nodes[n.left])})"
        if n.is_root():
            return text
        return f"{text}:{_length(n)}"

    return _rec(tree.root) + ";"
