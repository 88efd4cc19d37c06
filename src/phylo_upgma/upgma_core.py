import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import TreeConfig
from .distance_matrix import DistanceMatrix
from .errors import DuplicateLabelError, EmptyInputError
from .formatting import to_indented_string, to_newick
from .species import Species, load_species_file

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# 1. Tree node stored in the tree's node arena
# ----------------------------------------------------------------------

class TreeNode:
    """
    Node of a strictly binary phylogenetic tree.

    index             : position in the owning tree's node list
    label             : unique label; internal nodes join their children's labels
    species           : the species at a leaf, None for internal nodes
    parent            : arena index of the parent (None for the root)
    left, right       : arena indices of the children (None for leaves)
    distance_to_child : edge weight from this node down to either child
    num_leaves        : number of leaves in the subtree
    """

    __slots__ = ("index", "label", "species", "parent", "left", "right",
                 "distance_to_child", "num_leaves")

    def __init__(self, index: int, label: str,
                 species: Optional[Species] = None,
                 left: Optional[int] = None,
                 right: Optional[int] = None,
                 distance_to_child: float = 0.0,
                 num_leaves: int = 1):
        self.index = index
        self.label = label
        self.species = species
        self.parent: Optional[int] = None
        self.left = left
        self.right = right
        self.distance_to_child = float(distance_to_child)
        self.num_leaves = num_leaves

    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def is_root(self) -> bool:
        return self.parent is None

    def __repr__(self) -> str:
        return f"TreeNode({self.index}, {self.label!r})"

    def __str__(self) -> str:
        return self.label


# ----------------------------------------------------------------------
# 2. UPGMA core algorithm
# ----------------------------------------------------------------------

def _closest_pair(matrix: DistanceMatrix,
                  forest: Dict[int, TreeNode]) -> Tuple[TreeNode, TreeNode, float]:
    """
    Pair of active clusters at minimum distance, ordered (lo, hi) by label.

    Equal distances are resolved by the lexicographically smallest
    (lo.label, hi.label), so the result never depends on dict order.
    """
    best = None
    for a, b, d in matrix.items():
        lo, hi = sorted((forest[a], forest[b]), key=lambda n: n.label)
        key = (d, lo.label, hi.label)
        if best is None or key < best[0]:
            best = (key, lo, hi)
    (d, _, _), lo, hi = best
    return lo, hi, d


def upgma_core(leaves: List[TreeNode], matrix: DistanceMatrix) -> Tuple[List[TreeNode], int]:
    """
    Agglomerate leaf clusters into one binary tree.

    Parameters
    ----------
    leaves : list[TreeNode]
        Leaf nodes with indices 0..n-1 and unique labels. Raises
        DuplicateLabelError if a merged label collides with an existing one.
    matrix : DistanceMatrix
        Distances between every pair of leaf indices.

    Returns
    -------
    nodes : list[TreeNode]
        Node arena: the leaves followed by the n-1 merged nodes in merge order.
    root : int
        Arena index of the overall root.

    Notes
    -----
    Each merge joins the closest pair (lo, hi) into a node whose edge weight
    is half their distance. Distances from the merged cluster are the
    leaf-count weighted average of the distances from lo and hi.
    """
    nodes: List[TreeNode] = list(leaves)
    forest: Dict[int, TreeNode] = {node.index: node for node in nodes}
    labels = {node.label for node in nodes}
    root = nodes[0].index

    while len(forest) > 1:
        lo, hi, d_min = _closest_pair(matrix, forest)

        merged = TreeNode(
            index=len(nodes),
            label=lo.label + hi.label,
            left=lo.index,
            right=hi.index,
            distance_to_child=d_min / 2.0,
            num_leaves=lo.num_leaves + hi.num_leaves,
        )
        if merged.label in labels:
            raise DuplicateLabelError(merged.label)
        labels.add(merged.label)
        nodes.append(merged)
        lo.parent = merged.index
        hi.parent = merged.index
        logger.debug(f"Merged {lo.label} + {hi.label} at distance {d_min:.6f}")

        del forest[lo.index]
        del forest[hi.index]

        total = lo.num_leaves + hi.num_leaves
        w_lo = lo.num_leaves / total
        w_hi = hi.num_leaves / total
        new_dists = [
            (z, w_lo * matrix.get(lo.index, z) + w_hi * matrix.get(hi.index, z))
            for z in forest
        ]

        matrix.remove_all_involving(lo.index)
        matrix.remove_all_involving(hi.index)
        for z, d in new_dists:
            matrix.put(merged.index, z, d)

        forest[merged.index] = merged
        root = merged.index

    return nodes, root


def _make_leaves(species: Sequence[Species]) -> List[TreeNode]:
    if not species:
        raise EmptyInputError("no species to build a tree from")
    seen = set()
    leaves = []
    for i, sp in enumerate(species):
        if sp.name in seen:
            raise DuplicateLabelError(sp.name)
        seen.add(sp.name)
        leaves.append(TreeNode(index=i, label=sp.name, species=sp))
    return leaves


def build_tree(species: Iterable[Species], config: Optional[TreeConfig] = None) -> "PhyloTree":
    """
    Build a UPGMA tree over species using ``Species.distance``.

    Raises EmptyInputError if no species are given and DuplicateLabelError
    if two species share a name or a merged label repeats an existing one.
    """
    species = list(species)
    leaves = _make_leaves(species)

    matrix = DistanceMatrix()
    for i, a in enumerate(species):
        for j in range(i + 1, len(species)):
            matrix.put(i, j, a.distance(species[j]))

    logger.info(f"Building UPGMA tree for {len(species)} species...")
    nodes, root = upgma_core(leaves, matrix)
    logger.info(f"Tree complete: {len(species)} leaves, {len(nodes) - len(species)} internal nodes")
    return PhyloTree(nodes, root, species, config)


def build_tree_from_matrix(D: np.ndarray, labels: Sequence[str],
                           config: Optional[TreeConfig] = None) -> "PhyloTree":
    """
    Build a UPGMA tree from a precomputed distance matrix.

    Parameters
    ----------
    D : np.ndarray (n x n)
        Symmetric distance matrix with zeros on the diagonal.
    labels : list[str]
        Taxon labels of length n.
    """
    species = [Species(name=str(label)) for label in labels]
    leaves = _make_leaves(species)
    matrix = DistanceMatrix.from_array(D, list(range(len(species))))

    logger.info(f"Building UPGMA tree for {len(species)} taxa from distance matrix...")
    nodes, root = upgma_core(leaves, matrix)
    return PhyloTree(nodes, root, species, config)


# ----------------------------------------------------------------------
# 3. Finished tree and queries
# ----------------------------------------------------------------------

class PhyloTree:
    """
    A finished UPGMA tree.

    Only produced by a successful build, so ``root`` is always defined.
    The tree is read-only once built.
    """

    def __init__(self, nodes: List[TreeNode], root: int,
                 species: Sequence[Species], config: Optional[TreeConfig] = None):
        self.nodes = nodes
        self._root = root
        self._species = list(species)
        self.config = config or TreeConfig()

    @staticmethod
    def from_fasta(path: Union[str, Path], config: Optional[TreeConfig] = None) -> "PhyloTree":
        config = config or TreeConfig()
        return build_tree(load_species_file(path, name_field=config.name_field), config)

    @property
    def root(self) -> TreeNode:
        return self.nodes[self._root]

    def __str__(self) -> str:
        return self.to_string()

    def to_string(self) -> str:
        return to_indented_string(self, self.config.printing_depth)

    def to_newick(self) -> str:
        return to_newick(self, self.config.newick_precision)

    # -- structure -----------------------------------------------------

    def parent_of(self, node: TreeNode) -> Optional[TreeNode]:
        return None if node.parent is None else self.nodes[node.parent]

    def children_of(self, node: TreeNode) -> List[TreeNode]:
        return [self.nodes[i] for i in (node.left, node.right) if i is not None]

    def preorder(self, node: Optional[TreeNode] = None) -> Iterable[TreeNode]:
        """Nodes of the subtree, parent before children, left before right."""
        stack = [node if node is not None else self.root]
        while stack:
            n = stack.pop()
            yield n
            stack.extend(reversed(self.children_of(n)))

    def leaves(self, node: Optional[TreeNode] = None) -> List[TreeNode]:
        return [n for n in self.preorder(node) if n.is_leaf()]

    def all_species(self) -> List[Species]:
        """Species in input order."""
        return list(self._species)

    def count_all_species(self) -> int:
        return len(self._species)

    def descendant_species(self, node: TreeNode) -> List[Species]:
        return [leaf.species for leaf in self.leaves(node)]

    # -- lookup ----------------------------------------------------------

    def find_by_label(self, label: str) -> Optional[TreeNode]:
        for node in self.preorder():
            if node.label == label:
                return node
        return None

    # -- depth and height -------------------------------------------------

    def node_depth(self, node: Optional[TreeNode]) -> int:
        """Edges from the root to node; -1 for None."""
        if node is None:
            return -1
        depth = 0
        while node.parent is not None:
            node = self.nodes[node.parent]
            depth += 1
        return depth

    def weighted_node_depth(self, node: Optional[TreeNode]) -> float:
        """Sum of edge weights of the strict ancestors of node; -inf for None."""
        if node is None:
            return -math.inf
        weighted = 0.0
        while node.parent is not None:
            node = self.nodes[node.parent]
            weighted += node.distance_to_child
        return weighted

    def _heights(self, node: TreeNode, weighted: bool) -> float:
        heights: Dict[int, float] = {}
        # reversed preorder visits children before their parent
        for n in reversed(list(self.preorder(node))):
            if n.is_leaf():
                heights[n.index] = 0
                continue
            step = n.distance_to_child if weighted else 1
            heights[n.index] = max(step + heights[n.left], step + heights[n.right])
        return heights[node.index]

    def node_height(self, node: Optional[TreeNode]) -> int:
        """Edges on the longest path from node down to a leaf; -1 for None."""
        if node is None:
            return -1
        return int(self._heights(node, weighted=False))

    def weighted_node_height(self, node: Optional[TreeNode]) -> float:
        """Largest edge-weight sum from node down to a leaf; -inf for None."""
        if node is None:
            return -math.inf
        return float(self._heights(node, weighted=True))

    def height(self) -> int:
        return self.node_height(self.root)

    def weighted_height(self) -> float:
        return self.weighted_node_height(self.root)

    # -- ancestry ---------------------------------------------------------

    def _common_ancestor(self, a: TreeNode, b: TreeNode) -> TreeNode:
        ancestors = set()
        node = a
        while node is not None:
            ancestors.add(node.index)
            node = self.parent_of(node)
        node = b
        while node.index not in ancestors:
            node = self.parent_of(node)
        return node

    def lca(self, label_a: str, label_b: str) -> Optional[TreeNode]:
        """Deepest common ancestor of two labelled nodes, None if either is absent."""
        a = self.find_by_label(label_a)
        b = self.find_by_label(label_b)
        if a is None or b is None:
            return None
        return self._common_ancestor(a, b)

    def distance(self, label_a: str, label_b: str) -> float:
        """
        Evolutionary distance between two labelled nodes.

        Sum of the edge weights on the path through their LCA, or inf if
        either label is absent.
        """
        a = self.find_by_label(label_a)
        b = self.find_by_label(label_b)
        if a is None or b is None:
            return math.inf

        ancestor = self._common_ancestor(a, b)
        total = 0.0
        for node in (a, b):
            while node.index != ancestor.index:
                node = self.nodes[node.parent]
                total += node.distance_to_child
        return total
