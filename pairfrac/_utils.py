"""
_utils.py
=========
General-purpose utility functions for pairfrac.

These are standalone functions that don't depend on the main classes
and could be useful in multiple contexts.
"""

import numpy as np


def format_newick(newick: str) -> str:
    """
    Format a NEWICK string for consistent representation.

    Ensures the NEWICK string:
    - Ends with a semicolon
    - Has no leading/trailing whitespace

    Parameters
    ----------
    newick : str
        NEWICK string to format.

    Returns
    -------
    str
        Formatted NEWICK string.

    Examples
    --------
    >>> format_newick('((A:1,B:1):1,(C:1,D:1):1)')
    '((A:1,B:1):1,(C:1,D:1):1);'

    >>> format_newick('  ((A:1,B:1):1);  ')
    '((A:1,B:1):1);'
    """
    newick = newick.strip()
    if not newick.endswith(';'):
        newick += ';'
    return newick


def binarize(values) -> np.ndarray:
    """
    Convert abundances to presence/absence.

    Any value strictly greater than zero becomes 1.0; everything else
    (zero, negative, NaN) becomes 0.0.

    Examples
    --------
    >>> binarize([10, 0, 0.5, -1])
    array([1., 0., 1., 0.])
    """
    return (np.asarray(values, dtype=np.float64) > 0.0).astype(np.float64)
