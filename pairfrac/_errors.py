"""
_errors.py
==========
Exception hierarchy for pairfrac.

Every error raised by the distance pipeline derives from ``UniFracError``,
which is itself a ``ValueError`` so callers that already guard against bad
input with ``except ValueError`` keep working.  I/O problems are left as the
built-in ``OSError`` subclasses raised by ``open``.

  UniFracError
   ├── TreeParseError           malformed NEWICK input
   ├── PruneError               inconsistent node references, eliminated tree
   ├── DataInconsistencyError   table shape/value problems, unresolved taxa
   ├── DegenerateDistanceError  zero total branch length for a pair
   └── PairDistanceError        any of the above, tagged with the failing pair
"""

from typing import Optional


class UniFracError(ValueError):
    """Base class for all pairfrac errors."""


class TreeParseError(UniFracError):
    """The NEWICK string could not be parsed into a tree."""


class PruneError(UniFracError):
    """Pruning produced an inconsistent or empty subtree."""


class DataInconsistencyError(UniFracError):
    """
    The sample table is malformed or does not agree with the tree.

    Parameters
    ----------
    message : str
        Human-readable description.
    line : int, optional
        1-based line number in the input table, when the problem is tied to
        a specific line.
    """

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class DegenerateDistanceError(UniFracError):
    """The pruned subtree has zero total branch length."""


class PairDistanceError(UniFracError):
    """
    A pair computation failed inside the distance-matrix assembly.

    The original exception is available as ``__cause__``.

    Attributes
    ----------
    i, j : int
        Sample indices of the failing pair.
    sample_i, sample_j : str
        Sample names of the failing pair.
    """

    def __init__(self, i: int, j: int, sample_i: str, sample_j: str) -> None:
        super().__init__(
            f"UniFrac failed for samples '{sample_i}' (column {i}) "
            f"and '{sample_j}' (column {j})"
        )
        self.i = i
        self.j = j
        self.sample_i = sample_i
        self.sample_j = sample_j
