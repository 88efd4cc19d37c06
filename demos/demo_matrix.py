import matplotlib.pyplot as plt
import numpy as np

from phylo_upgma import build_tree_from_matrix
from phylo_upgma.visualization import plot_tree


def main():
    rng = np.random.default_rng(0)
    points = rng.normal(size=(20, 2)) + np.repeat(rng.normal(scale=4, size=(4, 2)), 5, axis=0)
    D = np.linalg.norm(points[:, None, :] - points[None, :, :], axis=-1)
    labels = [f"P{i:02d}" for i in range(len(points))]

    tree = build_tree_from_matrix(D, labels)
    print(tree.to_newick())
    plot_tree(tree, cut_distance=tree.weighted_height() * 0.6)
    plt.show()


if __name__ == "__main__":
    main()
