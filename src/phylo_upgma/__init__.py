"""UPGMA phylogenetic tree construction and queries."""

from .config import TreeConfig
from .distance_matrix import DistanceMatrix
from .errors import DuplicateLabelError, EmptyInputError, PhyloTreeError
from .formatting import to_indented_string, to_newick
from .species import Species, load_species_file, sequence_distance
from .upgma_core import PhyloTree, TreeNode, build_tree, build_tree_from_matrix, upgma_core

__all__ = [
    "DistanceMatrix",
    "DuplicateLabelError",
    "EmptyInputError",
    "PhyloTree",
    "PhyloTreeError",
    "Species",
    "TreeConfig",
    "TreeNode",
    "build_tree",
    "build_tree_from_matrix",
    "load_species_file",
    "sequence_distance",
    "to_indented_string",
    "to_newick",
    "upgma_core",
]
