import logging
import sys

import matplotlib.pyplot as plt

from phylo_upgma import PhyloTree, TreeConfig
from phylo_upgma.visualization import plot_tree


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    if len(sys.argv) < 2:
        sys.exit("usage: demo_species.py SPECIES.fasta [LABEL_A LABEL_B]")

    tree = PhyloTree.from_fasta(sys.argv[1], TreeConfig.from_env())
    print(tree)
    print(tree.to_newick())
    print(f"height={tree.height()} weighted height={tree.weighted_height():.5f}")

    if len(sys.argv) >= 4:
        a, b = sys.argv[2], sys.argv[3]
        ancestor = tree.lca(a, b)
        print(f"LCA({a}, {b}) = {ancestor.label if ancestor else 'not found'}")
        print(f"distance({a}, {b}) = {tree.distance(a, b)}")

    plot_tree(tree, cut_distance=tree.weighted_height() / 2.0)
    plt.show()


if __name__ == "__main__":
    main()
