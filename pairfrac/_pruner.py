"""
_pruner.py
==========
Minimal subtree spanning the taxa present in a pair of samples.
"""

import logging
from typing import List, NamedTuple

import numpy as np

from pairfrac._errors import PruneError
from pairfrac._tree import Tree

logger = logging.getLogger(__name__)


class PrunedSubtree(NamedTuple):
    """
    A pruned tree plus its leaf-column assignment.

    tree       : Tree          the rebuilt subtree (never the shared input)
    leaf_order : int64 [n_nodes]  leaf node ID → indicator column; -1 for
                                  internal nodes
    leaf_names : list[str]     leaf name for each indicator column
    """

    tree: Tree
    leaf_order: np.ndarray
    leaf_names: List[str]


def prune_to_pair(tree: Tree, table, i: int, j: int) -> PrunedSubtree:
    """
    Prune *tree* down to the taxa present in sample *i* or sample *j*.

    Parameters
    ----------
    tree : Tree
        Full tree; not modified.
    table : SampleTable
        Binarised presence table.
    i, j : int
        Sample columns.

    Raises
    ------
    PruneError
        If neither sample has any taxon that is a leaf of *tree*.
    """
    present_taxa = table.present_taxa(i, j)
    if not present_taxa:
        raise PruneError(
            f"Samples {i} and {j} have no taxa present; the subtree would be empty."
        )

    sub = tree.subtree(present_taxa)

    # Leaves already occupy node IDs 0 … n_leaves-1 in enumeration order.
    leaf_order = np.full(sub.n_nodes, -1, dtype=np.int64)
    leaf_order[: sub.n_leaves] = np.arange(sub.n_leaves)
    leaf_names = list(sub.leaf_names)

    logger.debug(
        "Pruned tree for samples %d,%d: %d present taxa, %d of %d leaves kept",
        i,
        j,
        len(present_taxa),
        sub.n_leaves,
        tree.n_leaves,
    )
    return PrunedSubtree(sub, leaf_order, leaf_names)
