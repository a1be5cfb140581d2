"""
_indicator.py
=============
Branch × leaf indicator matrices and per-sample branch presence vectors.

For a tree with N nodes and L leaves, ``construct_b`` returns

  B  : uint8  [N, L]   B[i, j] == 1 iff branch i lies on the path from
                       leaf j to the root (the branch of node i is the edge
                       from i to its parent).
  b  : float64[N]      b[i] = length of the edge above node i; b[root] = 0.

Projecting a sample through B marks every branch that has at least one
present leaf below it::

  p = clamp(B[:, present_leaves].sum(axis=1), 0, 1)

Both steps operate on a single tree instance: the full tree for the masked
method, or the pruned subtree of one pair.
"""

import numpy as np

from pairfrac._errors import DataInconsistencyError, PruneError


def construct_b(tree, leaf_order=None):
    """
    Build the indicator matrix B and branch-length vector b for *tree*.

    Nodes are visited in post-order so a parent's row is only merged after
    every child row is final.  Rows are merged with a bitwise OR; a leaf
    reaching the same branch along two paths means the arrays do not
    describe a tree and is reported instead of being absorbed.

    Parameters
    ----------
    tree : Tree
    leaf_order : array-like of int, optional
        ``leaf_order[node_id]`` is the column assigned to leaf *node_id*.
        Defaults to the identity (leaves occupy node IDs 0 … n_leaves-1).

    Returns
    -------
    (np.ndarray[uint8, (n_nodes, n_leaves)], np.ndarray[float64, (n_nodes,)])

    Raises
    ------
    PruneError
        If a leaf has no valid column, or two children share a leaf.
    """
    n_tips = tree.n_leaves
    n_branches = tree.n_nodes
    root = tree.root
    if leaf_order is None:
        leaf_order = np.arange(n_branches, dtype=np.int64)

    mat_b = np.zeros((n_branches, n_tips), dtype=np.uint8)
    brlens = np.zeros(n_branches, dtype=np.float64)

    for idx in tree.postorder():
        brlens[idx] = 0.0 if idx == root else tree.branch_length(idx)

        if tree.is_tip(idx):
            t_ord = int(leaf_order[idx])
            if t_ord < 0 or t_ord >= n_tips:
                raise PruneError(
                    f"Leaf node {idx} has column {t_ord}; expected 0 … {n_tips - 1}."
                )
            mat_b[idx, t_ord] = 1
            continue

        row = mat_b[idx]
        for c in tree.children(idx):
            child_row = mat_b[c]
            if np.any(row & child_row):
                raise PruneError(
                    f"Node {idx} receives the same leaf from two children; "
                    "the tree has a non-tree topology."
                )
            np.bitwise_or(row, child_row, out=row)

    return mat_b, brlens


def resolve_leaf_rows(leaf_names, taxon_index, strict: bool = True) -> np.ndarray:
    """
    Map each leaf name to its row in the sample table.

    Parameters
    ----------
    leaf_names : sequence of str
        Leaf names in indicator-column order.
    taxon_index : dict[str, int]
        Taxon name → table row, built once when the table is loaded.
    strict : bool
        If True an unknown leaf raises; otherwise it maps to -1.

    Raises
    ------
    DataInconsistencyError   (strict mode) for a leaf missing from the table.
    """
    rows = np.empty(len(leaf_names), dtype=np.int64)
    for col, name in enumerate(leaf_names):
        row = taxon_index.get(name)
        if row is None:
            if strict:
                raise DataInconsistencyError(
                    f"Tree leaf '{name}' has no row in the sample table."
                )
            row = -1
        rows[col] = row
    return rows


def sample_vector(mat_b, presence, leaf_names, taxon_index, sample_idx: int) -> np.ndarray:
    """
    Return the branch presence vector of one sample.

    Parameters
    ----------
    mat_b : uint8 (n_branches, n_leaves)
        Indicator matrix from ``construct_b``.
    presence : float64 (n_taxa, n_samples)
        Binarised sample table.
    leaf_names : sequence of str
        Name of the leaf in each column of *mat_b*.
    taxon_index : dict[str, int]
        Taxon name → row of *presence*.
    sample_idx : int
        Column of *presence*.

    Returns
    -------
    np.ndarray[float64, (n_branches,)]   values in {0.0, 1.0}.
    """
    rows = resolve_leaf_rows(leaf_names, taxon_index)
    present_cols = presence[rows, sample_idx] > 0.0
    p = mat_b[:, present_cols].sum(axis=1, dtype=np.float64)
    return (p > 0.0).astype(np.float64)


def sample_matrix(mat_b, presence, leaf_rows) -> np.ndarray:
    """
    Branch presence for every sample at once.

    Columns of *mat_b* whose ``leaf_rows`` entry is -1 are treated as absent
    from every sample.

    Returns
    -------
    np.ndarray[bool, (n_branches, n_samples)]
    """
    n_samples = presence.shape[1]
    leaf_presence = np.zeros((mat_b.shape[1], n_samples), dtype=np.float64)
    known = leaf_rows >= 0
    leaf_presence[known] = presence[leaf_rows[known]]
    return (mat_b.astype(np.float64) @ leaf_presence) > 0.0
