"""
_unifrac.py
===========
Pairwise unweighted UniFrac distances between the samples of a presence
table, over a shared phylogenetic tree.

Public API
----------
  UniFrac(tree, table)
      Bind a parsed ``Tree`` to a ``SampleTable``.
  UniFrac.from_files(tree_path, table_path)

  .pair_distance(i, j, method='pruned', backend='best') -> float
  .distance_matrix(method='pruned', backend='best')     -> np.ndarray

Definition
----------
For samples a and b over the minimal subtree spanning their present taxa,
kept rooted at the root of the full tree::

    shared   = Σ_k p_a[k] · p_b[k] · b[k]
    total    = Σ_k b[k]
    distance = 1 − shared / total

Methods
-------
pruned (default)
    Per pair: rebuild the minimal subtree, build its indicator matrix (B, b),
    project both samples, reduce.  No state is shared between pairs except
    the read-only full tree and table.

masked
    Build (B, b) for the full tree and the branch presence of every sample
    once, then restrict each pair to the branches reached by either sample.
    Branches the pruned method would merge into one edge are all reached by
    the same samples, so both methods give the same distances.

Logging
-------
On first import the module logs system and numba status at INFO level
through ``logging.getLogger('pairfrac._logging')``.  Each matrix run logs
its size, method and backend at INFO; per-pair details are DEBUG.
"""

import logging
import time
from typing import Union

import numpy as np

from pairfrac._backend import check_numba_available, get_available_backends
from pairfrac._errors import (
    DegenerateDistanceError,
    PairDistanceError,
    PruneError,
    UniFracError,
)
from pairfrac._indicator import (
    construct_b,
    resolve_leaf_rows,
    sample_matrix,
    sample_vector,
)
from pairfrac._logging import (
    install_numba_warning_filter,
    log_assembly_start,
    log_assembly_summary,
    log_backend_availability,
    log_optimization_status,
    log_table_statistics,
)
from pairfrac._overlap import select_backend, shared_branch_length, union_branch_length
from pairfrac._pruner import prune_to_pair
from pairfrac._table import SampleTable
from pairfrac._tree import Tree

logger = logging.getLogger(__name__)

METHODS = ("pruned", "masked")

_NUMBA_AVAILABLE = check_numba_available()

# Log system info and backend availability on module import
log_optimization_status(_NUMBA_AVAILABLE)
log_backend_availability(get_available_backends())
install_numba_warning_filter(_NUMBA_AVAILABLE)


class UniFrac:
    """
    Unweighted UniFrac over one tree and one sample table.

    Parameters
    ----------
    tree : Tree
        Parsed phylogenetic tree.  Shared read-only by every pair.
    table : SampleTable
        Binarised taxa × samples presence table.

    Attributes
    ----------
    tree, table
    sample_names : list[str]
    n_samples    : int

    Examples
    --------
    >>> tree = Tree('((T1:1,T2:1):1,(T3:1,T4:1):1);')
    >>> table = SampleTable(['T1', 'T2', 'T3', 'T4'], ['A', 'B'],
    ...                     [[1, 0], [1, 1], [1, 1], [1, 0]])
    >>> UniFrac(tree, table).pair_distance('A', 'B')
    0.33333333333333337
    """

    def __init__(self, tree: Tree, table: SampleTable) -> None:
        self.tree = tree
        self.table = table
        self.sample_names = table.sample_names
        self.n_samples = table.n_samples

        # Full-tree indicator data for the masked method, built on first use.
        self._full_brlens = None
        self._full_presence = None

        self._log_table_statistics_method()

    @classmethod
    def from_files(cls, tree_path, table_path) -> "UniFrac":
        """Load a NEWICK file and a tab-delimited sample table."""
        logger.info("Loading tree from %s", tree_path)
        tree = Tree.from_file(tree_path)
        logger.info("Loading sample table from %s", table_path)
        table = SampleTable.from_file(table_path)
        return cls(tree, table)

    def _log_table_statistics_method(self) -> None:
        """Compute and log how the table lines up with the tree."""
        leaf_set = set(self.tree.leaf_names)
        missing_from_tree = [t for t in self.table.taxa_order if t not in leaf_set]
        n_unobserved = sum(
            1 for name in leaf_set if name not in self.table.taxon_index
        )
        empty = ~self.table.presence.any(axis=0)
        empty_samples = [self.sample_names[k] for k in np.flatnonzero(empty)]

        log_table_statistics(
            self.table.n_taxa,
            self.n_samples,
            empty_samples,
            missing_from_tree,
            self.tree.n_leaves,
            n_unobserved,
        )

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def pair_distance(
        self,
        i: Union[int, str],
        j: Union[int, str],
        method: str = "pruned",
        backend: str = "best",
    ) -> float:
        """
        Unweighted UniFrac distance between samples *i* and *j*.

        Parameters
        ----------
        i, j : int | str
            Sample column indices or sample names.
        method : {'pruned', 'masked'}
        backend : str
            Reduction backend, see ``shared_branch_length``.

        Returns
        -------
        float in [0, 1].  0.0 when *i* and *j* are the same sample.

        Raises
        ------
        PruneError
            Neither sample has a taxon that is a leaf of the tree.
        DataInconsistencyError
            A leaf of the pruned tree has no row in the table.
        DegenerateDistanceError
            The subtree spanning both samples has zero total branch length,
            as on a one-leaf tree or one whose reached edges are all zero.
        """
        i = self._resolve_sample(i)
        j = self._resolve_sample(j)
        if method not in METHODS:
            raise ValueError(f"Unknown method {method!r}; expected one of {METHODS}")
        if i == j:
            return 0.0

        if method == "pruned":
            shared, total = self._pruned_lengths(i, j, backend)
        else:
            shared, total = self._masked_lengths(i, j, backend)

        if total <= 0.0:
            raise DegenerateDistanceError(
                f"Samples {i} and {j} span a subtree with total branch length "
                f"{total}; UniFrac is undefined."
            )

        distance = 1.0 - shared / total
        logger.debug(
            "Samples %d,%d: shared=%.6g total=%.6g distance=%.6f",
            i,
            j,
            shared,
            total,
            distance,
        )
        return distance

    def distance_matrix(self, method: str = "pruned", backend: str = "best") -> np.ndarray:
        """
        Symmetric matrix of pairwise distances between all samples.

        Every unordered pair is computed once; the diagonal is 0.  The first
        failing pair aborts the whole computation.

        Returns
        -------
        np.ndarray[float64, (n_samples, n_samples)]

        Raises
        ------
        PairDistanceError
            Wrapping the error of the failing pair (see ``__cause__``).
        """
        if method not in METHODS:
            raise ValueError(f"Unknown method {method!r}; expected one of {METHODS}")

        n = self.n_samples
        resolved_backend = select_backend(backend)
        log_assembly_start(n, method, resolved_backend)

        dist_matrix = np.zeros((n, n), dtype=np.float64)
        start = time.perf_counter()
        for i in range(n):
            for j in range(i + 1, n):
                try:
                    uni = self.pair_distance(i, j, method, resolved_backend)
                except UniFracError as err:
                    raise PairDistanceError(
                        i, j, self.sample_names[i], self.sample_names[j]
                    ) from err
                dist_matrix[i, j] = uni
                dist_matrix[j, i] = uni

        log_assembly_summary(n * (n - 1) // 2, time.perf_counter() - start)
        return dist_matrix

    # ================================================================== #
    # Private helper methods                                               #
    # ================================================================== #

    def _resolve_sample(self, sample: Union[int, str]) -> int:
        """
        **Private.**  Return the column index for *sample*.

        Accepts a sample name (str) or an already-resolved index (int).
        """
        if isinstance(sample, str):
            try:
                return self.sample_names.index(sample)
            except ValueError:
                raise KeyError(
                    f"Sample '{sample}' not found. Known samples: {self.sample_names}"
                ) from None
        idx = int(sample)
        if idx < 0 or idx >= self.n_samples:
            raise IndexError(
                f"Sample index {idx} out of range for {self.n_samples} samples."
            )
        return idx

    def _pruned_lengths(self, i: int, j: int, backend: str):
        """**Private.**  (shared, total) over the pair's pruned subtree."""
        pruned = prune_to_pair(self.tree, self.table, i, j)
        mat_b, brlens = construct_b(pruned.tree, pruned.leaf_order)

        presence = self.table.presence
        taxon_index = self.table.taxon_index
        p_a = sample_vector(mat_b, presence, pruned.leaf_names, taxon_index, i)
        p_b = sample_vector(mat_b, presence, pruned.leaf_names, taxon_index, j)

        # Every branch of the pruned tree is reached by one of the samples, so
        # the union length is the total; reducing it the same way as the
        # shared length keeps identical samples at exactly 0.
        shared = shared_branch_length(p_a, p_b, brlens, backend=backend)
        total = union_branch_length(p_a, p_b, brlens, backend=backend)
        return shared, total

    def _masked_lengths(self, i: int, j: int, backend: str):
        """**Private.**  (shared, total) restricted from the full tree."""
        if self._full_presence is None:
            self._build_full_tree_presence()

        p_a = self._full_presence[:, i]
        p_b = self._full_presence[:, j]
        reached = (p_a > 0.0) | (p_b > 0.0)
        if not reached.any():
            raise PruneError(
                f"Samples {i} and {j} have no taxa present among the tree "
                "leaves; the subtree would be empty."
            )

        brlens = self._full_brlens
        shared = shared_branch_length(p_a, p_b, brlens, backend=backend)
        total = union_branch_length(p_a, p_b, brlens, backend=backend)
        return shared, total

    def _build_full_tree_presence(self) -> None:
        """**Private.**  Indicator projection of every sample on the full tree."""
        logger.info(
            "Building full-tree indicator matrix (%d branches × %d leaves)",
            self.tree.n_nodes,
            self.tree.n_leaves,
        )
        mat_b, brlens = construct_b(self.tree)
        leaf_rows = resolve_leaf_rows(
            self.tree.leaf_names, self.table.taxon_index, strict=False
        )
        presence = sample_matrix(mat_b, self.table.presence, leaf_rows)

        self._full_brlens = brlens
        # Column-contiguous so each sample's vector is a contiguous slice.
        self._full_presence = np.asfortranarray(presence.astype(np.float64))
