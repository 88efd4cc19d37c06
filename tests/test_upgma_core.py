import math
import random
import unittest
from io import StringIO

import numpy as np

from Bio import Phylo
from skbio import TreeNode as SkbioTree

from phylo_upgma import (
    DuplicateLabelError,
    TreeConfig,
    EmptyInputError,
    Species,
    build_tree,
    build_tree_from_matrix,
)

# ----------------------------------------------------------------------
# Test matrix generator
# ----------------------------------------------------------------------

def generate_test_matrices():

    labels = ["A", "B", "C", "D"]
    D = np.array([
        [0, 5, 9, 9],
        [5, 0, 10, 10],
        [9, 10, 0, 8],
        [9, 10, 8, 0],
    ], dtype=float)
    yield D, labels

    labels = ["A", "B", "C", "D", "E", "F"]
    D = np.array([
        [0, 2, 4, 4, 7, 7],
        [2, 0, 4, 4, 7, 7],
        [4, 4, 0, 2, 7, 7],
        [4, 4, 2, 0, 7, 7],
        [7, 7, 7, 7, 0, 4],
        [7, 7, 7, 7, 4, 0],
    ], dtype=float)
    yield D, labels

    labels = [f"T{i}" for i in range(8)]
    D = np.array([
        [0, 2, 4, 6, 6, 8, 8, 8],
        [2, 0, 4, 6, 6, 8, 8, 8],
        [4, 4, 0, 6, 6, 8, 8, 8],
        [6, 6, 6, 0, 2, 8, 8, 8],
        [6, 6, 6, 2, 0, 8, 8, 8],
        [8, 8, 8, 8, 8, 0, 4, 4],
        [8, 8, 8, 8, 8, 4, 0, 2],
        [8, 8, 8, 8, 8, 4, 2, 0],
    ], dtype=float)
    yield D, labels

    rng = np.random.default_rng(7)
    labels = [f"S{i:02d}" for i in range(12)]
    X = rng.random((12, 12)) * 10
    D = (X + X.T) / 2
    np.fill_diagonal(D, 0.0)
    yield D, labels


def hamming_species():
    return [
        Species("A", "AAAA"),
        Species("B", "AAAT"),
        Species("C", "TTTT"),
    ]

# ----------------------------------------------------------------------
# Tests
# ----------------------------------------------------------------------

class TestBuildTree(unittest.TestCase):

    def test_hamming_scenario(self):
        tree = build_tree(hamming_species())
        root = tree.root
        self.assertEqual(root.label, "ABC")
        children = {n.label for n in tree.children_of(root)}
        self.assertEqual(children, {"AB", "C"})
        self.assertEqual(tree.distance("A", "B"), 1.0)
        self.assertEqual(tree.lca("A", "C").label, "ABC")

    def test_merge_weights(self):
        tree = build_tree(hamming_species())
        ab = tree.find_by_label("AB")
        self.assertAlmostEqual(ab.distance_to_child, 0.5)
        # d(AB, C) = 0.5 * 4 + 0.5 * 3
        self.assertAlmostEqual(tree.root.distance_to_child, 1.75)
        self.assertEqual(ab.num_leaves, 2)
        self.assertEqual(tree.root.num_leaves, 3)

    def test_leaf_count_weighted_average(self):
        labels = ["A", "B", "C", "D"]
        D = np.array([
            [0, 2, 6, 10],
            [2, 0, 6, 10],
            [6, 6, 0, 10],
            [10, 10, 10, 0],
        ], dtype=float)
        tree = build_tree_from_matrix(D, labels)
        abc = tree.find_by_label("ABC")
        self.assertAlmostEqual(abc.distance_to_child, 3.0)
        self.assertAlmostEqual(tree.root.distance_to_child, 5.0)

        D[3, 2] = D[2, 3] = 13.0
        tree = build_tree_from_matrix(D, labels)
        # (2/3) * 10 + (1/3) * 13, not (10 + 13) / 2
        self.assertAlmostEqual(tree.root.distance_to_child, 11.0 / 2)

    def test_children_ordered_by_label(self):
        tree = build_tree([Species("Z", "AC"), Species("Y", "AA")])
        root = tree.root
        self.assertEqual(root.label, "YZ")
        self.assertEqual(tree.nodes[root.left].label, "Y")
        self.assertEqual(tree.nodes[root.right].label, "Z")

    def test_tie_break_is_label_order(self):
        labels = ["A", "B", "C", "D"]
        D = np.ones((4, 4)) - np.eye(4)
        tree = build_tree_from_matrix(D, labels)
        self.assertIsNotNone(tree.find_by_label("AB"))
        self.assertIsNotNone(tree.find_by_label("ABC"))
        self.assertEqual(tree.root.label, "ABCD")

    def test_deterministic_under_input_order(self):
        species = [Species(name, "A" * i + "T" * (6 - i)) for i, name in enumerate("PQRSTU")]
        expected = build_tree(species).to_newick()
        for seed in range(5):
            shuffled = list(species)
            random.Random(seed).shuffle(shuffled)
            with self.subTest(seed=seed):
                self.assertEqual(build_tree(shuffled).to_newick(), expected)

    def test_single_species(self):
        tree = build_tree([Species("X", "ACGT")])
        self.assertTrue(tree.root.is_leaf())
        self.assertIsNone(tree.root.parent)
        self.assertEqual(tree.height(), 0)
        self.assertEqual(tree.weighted_height(), 0)
        self.assertEqual(tree.distance("X", "X"), 0)

    def test_empty_input_raises(self):
        with self.assertRaises(EmptyInputError):
            build_tree([])
        with self.assertRaises(ValueError):
            build_tree_from_matrix(np.zeros((0, 0)), [])

    def test_duplicate_names_raise(self):
        with self.assertRaises(DuplicateLabelError):
            build_tree([Species("A", "AA"), Species("A", "AT")])

    def test_merged_label_collision_raises(self):
        species = [Species("A", "AAAA"), Species("B", "AAAT"), Species("AB", "TTTT")]
        with self.assertRaises(DuplicateLabelError) as ctx:
            build_tree(species)
        self.assertEqual(ctx.exception.label, "AB")

    def test_invalid_matrix_raises(self):
        D = np.array([[0, 1], [1, 0]])
        with self.assertRaises(ValueError):
            build_tree_from_matrix(D, ["A"])
        with self.assertRaises(ValueError):
            build_tree_from_matrix(np.array([[0, 1], [2, 0]]), ["A", "B"])

    def test_structure(self):
        for D, labels in generate_test_matrices():
            with self.subTest(labels=labels):
                tree = build_tree_from_matrix(D, labels)
                n = len(labels)
                leaves = [node for node in tree.nodes if node.is_leaf()]
                internal = [node for node in tree.nodes if not node.is_leaf()]
                self.assertCountEqual([leaf.label for leaf in leaves], labels)
                self.assertEqual(len(internal), n - 1)
                self.assertEqual([node for node in tree.nodes if node.parent is None], [tree.root])
                for node in leaves:
                    self.assertIsNotNone(node.species)
                    self.assertEqual(tree.children_of(node), [])
                for node in internal:
                    self.assertIsNone(node.species)
                    self.assertEqual(len(tree.children_of(node)), 2)
                    for ch in tree.children_of(node):
                        self.assertIs(tree.parent_of(ch), node)
                self.assertEqual(tree.root.num_leaves, n)

    def test_cherries_keep_input_distance(self):
        for D, labels in generate_test_matrices():
            index = {label: i for i, label in enumerate(labels)}
            tree = build_tree_from_matrix(D, labels)
            for node in tree.nodes:
                children = tree.children_of(node)
                if children and all(ch.is_leaf() for ch in children):
                    a, b = (ch.label for ch in children)
                    with self.subTest(pair=(a, b)):
                        self.assertAlmostEqual(tree.distance(a, b), D[index[a], index[b]])


class TestQueries(unittest.TestCase):

    def setUp(self):
        D, labels = next(generate_test_matrices())
        self.tree = build_tree_from_matrix(D, labels)

    def test_topology(self):
        root = self.tree.root
        self.assertEqual(root.label, "ABCD")
        self.assertEqual(self.tree.nodes[root.left].label, "AB")
        self.assertEqual(self.tree.nodes[root.right].label, "CD")

    def test_find_by_label(self):
        node = self.tree.find_by_label("CD")
        self.assertEqual(node.label, "CD")
        self.assertIsNone(self.tree.find_by_label("E"))
        self.assertIsNone(self.tree.find_by_label("BC"))

    def test_depth(self):
        tree = self.tree
        self.assertEqual(tree.node_depth(tree.root), 0)
        self.assertEqual(tree.node_depth(tree.find_by_label("AB")), 1)
        self.assertEqual(tree.node_depth(tree.find_by_label("C")), 2)
        self.assertEqual(tree.node_depth(None), -1)

    def test_weighted_depth(self):
        tree = self.tree
        self.assertEqual(tree.weighted_node_depth(tree.root), 0.0)
        self.assertAlmostEqual(tree.weighted_node_depth(tree.find_by_label("A")), 7.25)
        self.assertAlmostEqual(tree.weighted_node_depth(tree.find_by_label("D")), 8.75)
        self.assertEqual(tree.weighted_node_depth(None), -math.inf)

    def test_height(self):
        tree = self.tree
        self.assertEqual(tree.height(), 2)
        self.assertEqual(tree.node_height(tree.find_by_label("AB")), 1)
        self.assertEqual(tree.node_height(tree.find_by_label("A")), 0)
        self.assertEqual(tree.node_height(None), -1)

    def test_weighted_height(self):
        tree = self.tree
        self.assertAlmostEqual(tree.weighted_height(), 8.75)
        self.assertAlmostEqual(tree.weighted_node_height(tree.find_by_label("AB")), 2.5)
        self.assertEqual(tree.weighted_node_height(tree.find_by_label("B")), 0)
        self.assertEqual(tree.weighted_node_height(None), -math.inf)

    def test_lca(self):
        tree = self.tree
        self.assertEqual(tree.lca("A", "B").label, "AB")
        self.assertEqual(tree.lca("A", "D").label, "ABCD")
        self.assertEqual(tree.lca("C", "CD").label, "CD")
        self.assertIs(tree.lca("B", "B"), tree.find_by_label("B"))
        self.assertIsNone(tree.lca("A", "missing"))
        self.assertIsNone(tree.lca("missing", "A"))

    def test_distance(self):
        tree = self.tree
        self.assertAlmostEqual(tree.distance("A", "B"), 5.0)
        self.assertAlmostEqual(tree.distance("C", "D"), 8.0)
        self.assertAlmostEqual(tree.distance("A", "C"), 2.5 + 4.75 + 4.75 + 4.0)
        self.assertAlmostEqual(tree.distance("A", "AB"), 2.5)
        self.assertEqual(tree.distance("A", "missing"), math.inf)

    def test_distance_properties(self):
        for D, labels in generate_test_matrices():
            tree = build_tree_from_matrix(D, labels)
            for x in labels:
                self.assertEqual(tree.distance(x, x), 0)
                self.assertIs(tree.lca(x, x), tree.find_by_label(x))
                for y in labels:
                    self.assertAlmostEqual(tree.distance(x, y), tree.distance(y, x))
                    self.assertGreaterEqual(tree.distance(x, y), 0)
            self.assertGreaterEqual(tree.weighted_height(), 0)

    def test_no_len(self):
        with self.assertRaises(TypeError):
            len(self.tree)
        self.assertEqual(self.tree.count_all_species(), 4)
        self.assertEqual(len(self.tree.nodes), 7)

    def test_species_accessors(self):
        species = hamming_species()
        tree = build_tree(species)
        self.assertEqual(tree.all_species(), species)
        self.assertEqual(tree.count_all_species(), 3)
        self.assertCountEqual(
            [sp.name for sp in tree.descendant_species(tree.find_by_label("AB"))],
            ["A", "B"],
        )


class TestAgainstNewickReaders(unittest.TestCase):
    """
    Patristic distances read back from the Newick export must match
    the tree's own distance query.
    """

    def test_against_scikit_bio(self):
        for D, labels in generate_test_matrices():
            with self.subTest(labels=labels):
                tree = build_tree_from_matrix(D, labels, TreeConfig(newick_precision=8))
                ref = SkbioTree.read([tree.to_newick()])
                for i, a in enumerate(labels):
                    for b in labels[i + 1:]:
                        self.assertAlmostEqual(
                            ref.find(a).distance(ref.find(b)),
                            tree.distance(a, b),
                            places=4,
                        )

    def test_against_biopython(self):
        for D, labels in generate_test_matrices():
            with self.subTest(labels=labels):
                tree = build_tree_from_matrix(D, labels, TreeConfig(newick_precision=8))
                ref = Phylo.read(StringIO(tree.to_newick()), "newick")
                for i, a in enumerate(labels):
                    for b in labels[i + 1:]:
                        self.assertAlmostEqual(ref.distance(a, b), tree.distance(a, b), places=4)


if __name__ == "__main__":
    unittest.main()
