"""
Dendrogram plot of a UPGMA tree with an optional distance cut.

- The x-axis is the weighted depth from the root.
- A vertical line at the cut defines clusters: one cluster per subtree to
  the right of each cut edge.
- All leaves and branches in a cluster share a colour, assigned top-to-bottom.
"""

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
import matplotlib
import matplotlib.pyplot as plt

from .upgma_core import PhyloTree, TreeNode

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Layout
# ----------------------------------------------------------------------

def compute_layout(tree: PhyloTree) -> Tuple[Dict[int, float], Dict[int, float], float]:
    """
    Plotting positions keyed by node index.

    x_pos[i] = weighted depth from the root.
    y_pos[i] : leaves in consecutive rows (left subtree on top);
               internal nodes = mean of children.
    """
    x_pos: Dict[int, float] = {tree.root.index: 0.0}
    for node in tree.preorder():
        for ch in tree.children_of(node):
            x_pos[ch.index] = x_pos[node.index] + node.distance_to_child

    y_pos: Dict[int, float] = {}
    row = 0.0
    for node in reversed(list(tree.preorder())):
        if node.is_leaf():
            y_pos[node.index] = row
            row += 1.0
    for node in reversed(list(tree.preorder())):
        if not node.is_leaf():
            y_pos[node.index] = (y_pos[node.left] + y_pos[node.right]) / 2.0

    max_depth = max(x_pos.values())
    return x_pos, y_pos, max_depth


# ----------------------------------------------------------------------
# Clustering by cut distance from root
# ----------------------------------------------------------------------

def compute_clusters_by_cut(tree: PhyloTree,
                            cut_distance: float) -> Tuple[List[TreeNode], Dict[int, int]]:
    """
    Clusters induced by a vertical cut at `cut_distance` from the root.

    Rule:
      - For each edge (parent -> child) with parent_depth < cut <= child_depth,
        the child subtree is a cluster.
      - Leaves not in such subtrees form singleton clusters.
      - If no edge is cut, the whole tree is one cluster.

    Returns the cluster roots and a map node index -> cluster id.
    """
    eps = 1e-9
    depth, _, _ = compute_layout(tree)

    cluster_roots: List[TreeNode] = []
    for node in tree.preorder():
        parent = tree.parent_of(node)
        if parent is None:
            continue
        if depth[parent.index] < cut_distance <= depth[node.index] + eps:
            cluster_roots.append(node)

    if not cluster_roots:
        return [tree.root], {n.index: 0 for n in tree.preorder()}

    cluster_for_node: Dict[int, int] = {}
    for cid, croot in enumerate(cluster_roots):
        for n in tree.preorder(croot):
            cluster_for_node[n.index] = cid

    for leaf in tree.leaves():
        if leaf.index not in cluster_for_node:
            cluster_for_node[leaf.index] = len(cluster_roots)
            cluster_roots.append(leaf)

    return cluster_roots, cluster_for_node


# ----------------------------------------------------------------------
# Plotting
# ----------------------------------------------------------------------

def _cluster_color(i: int):
    base_colors = matplotlib.colormaps["tab20"].colors
    n_base = len(base_colors)
    # if more clusters than colors, darken slightly
    base = np.array(base_colors[i % n_base])
    factor = 1.0 - 0.15 * min(i // n_base, 2)
    return np.clip(base[:3] * factor, 0, 1)


def plot_tree(tree: PhyloTree, cut_distance: Optional[float] = None, ax=None, figsize=(14, 8)):
    """
    Draw the tree as a rectangular dendrogram.

    If `cut_distance` is given, a cut line is drawn and leaves and branches
    are coloured by the cluster they fall in. Returns the Axes.
    """
    x_pos, y_pos, max_depth = compute_layout(tree)
    if ax is None:
        _, ax = plt.subplots(figsize=figsize)

    cluster_for_node: Dict[int, int] = {}
    colors: Dict[int, np.ndarray] = {}
    if cut_distance is not None:
        cluster_roots, cluster_for_node = compute_clusters_by_cut(tree, cut_distance)
        # colors assigned top-to-bottom
        order = sorted(range(len(cluster_roots)), key=lambda c: -y_pos[cluster_roots[c].index])
        colors = {cid: _cluster_color(i) for i, cid in enumerate(order)}
        logger.debug(f"Cut at {cut_distance}: {len(cluster_roots)} clusters")

    def color_of(node: TreeNode, default):
        cid = cluster_for_node.get(node.index)
        return default if cid is None else colors[cid]

    for node in tree.preorder():
        for ch in tree.children_of(node):
            xp, yp = x_pos[node.index], y_pos[node.index]
            xc, yc = x_pos[ch.index], y_pos[ch.index]
            col = color_of(ch, "0.6")
            ax.plot([xp, xp], [yp, yc], lw=1, color=col)
            ax.plot([xp, xc], [yc, yc], lw=1, color=col)

    text_offset = max_depth * 0.0075
    for leaf in tree.leaves():
        xn, yn = x_pos[leaf.index], y_pos[leaf.index]
        col = color_of(leaf, "0.3")
        ax.plot(xn, yn, marker="o", linestyle="", markersize=3, color=col)
        ax.text(xn + text_offset, yn, leaf.label, va="center", ha="left",
                fontsize=8, clip_on=False, color=col)

    if cut_distance is not None:
        ax.axvline(x=cut_distance, color="gray", linestyle="-", linewidth=1.0)

    span = max_depth if max_depth > 0 else 1.0
    ax.set_xlim(span * -0.05, span * 1.05)
    ax.set_ylim(-0.5, max(y_pos.values()) + 0.5)
    ax.set_yticks([])
    for spine in ax.spines.values():
        spine.set_visible(False)

    return ax
