"""
pairfrac
========

Pairwise unweighted UniFrac distances between biological samples, given a
phylogenetic tree and a per-taxon presence/absence table.

*pairfrac* derives, for every pair of samples, the minimal subtree spanning
the taxa present in either one, encodes it as a branch × leaf indicator
matrix, and reduces the two samples' branch presence vectors to the fraction
of branch length they do not share.

Main Classes
------------
UniFrac : Pairwise distances over one tree and one sample table
Tree : Single phylogenetic tree with NEWICK parsing and subtree pruning
SampleTable : Binarised taxa × samples presence table

Pipeline Functions
------------------
prune_to_pair : Minimal subtree spanning two samples
construct_b : Branch × leaf indicator matrix and branch lengths
sample_vector : Branch presence vector of one sample
shared_branch_length : Shared branch length of two samples (parallel)
write_distance_matrix : Tab-delimited matrix output

Context Managers
----------------
quiet : Suppress logging during operations
suppress_logger : Suppress specific logger
suppress_warnings : Suppress specific warnings
use_backend : Force specific computational backend
silent_benchmark : Combine quiet + backend selection + warning suppression

Backend Information
-------------------
get_available_backends : Query available computational backends
get_backend_info : Get comprehensive backend status
check_numba_available : Check if numba is available

Examples
--------
>>> from pairfrac import Tree, SampleTable, UniFrac
>>> tree = Tree('((T1:1,T2:1):1,(T3:1,T4:1):1);')
>>> table = SampleTable(['T1', 'T2', 'T3', 'T4'], ['A', 'B'],
...                     [[1, 0], [1, 1], [1, 1], [1, 0]])
>>> UniFrac(tree, table).distance_matrix()
array([[0.        , 0.33333333],
       [0.33333333, 0.        ]])

From files:

>>> uf = UniFrac.from_files('tree.nwk', 'table.tsv')
>>> with use_backend('numpy'):
...     dm = uf.distance_matrix()
"""

__version__ = "0.1.0"

# Exceptions
from ._errors import (
    UniFracError,
    TreeParseError,
    PruneError,
    DataInconsistencyError,
    DegenerateDistanceError,
    PairDistanceError,
)

# Main classes
from ._tree import Tree
from ._table import SampleTable, write_distance_matrix
from ._unifrac import UniFrac

# Pipeline functions
from ._pruner import PrunedSubtree, prune_to_pair
from ._indicator import construct_b, sample_vector
from ._overlap import shared_branch_length

# Context managers (user-facing utilities)
from ._context import (
    suppress_logger,
    quiet,
    suppress_warnings,
    use_backend,
    silent_benchmark,
)

# Utilities
from ._utils import binarize, format_newick

# Backend information (useful for checking capabilities)
from ._backend import (
    get_available_backends,
    get_backend_info,
    check_numba_available,
)

# Public API
__all__ = [
    # Exceptions
    "UniFracError",
    "TreeParseError",
    "PruneError",
    "DataInconsistencyError",
    "DegenerateDistanceError",
    "PairDistanceError",
    # Main classes
    "Tree",
    "SampleTable",
    "UniFrac",
    # Pipeline functions
    "PrunedSubtree",
    "prune_to_pair",
    "construct_b",
    "sample_vector",
    "shared_branch_length",
    "write_distance_matrix",
    # Context managers
    "suppress_logger",
    "quiet",
    "suppress_warnings",
    "use_backend",
    "silent_benchmark",
    # Utilities
    "binarize",
    "format_newick",
    # Backend information
    "get_available_backends",
    "get_backend_info",
    "check_numba_available",
    # Version info
    "__version__",
]
