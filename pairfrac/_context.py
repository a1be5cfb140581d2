"""
_context.py
===========
Context managers for pairfrac.

Provides context managers for temporarily changing state:
- Logging control (suppress/change levels)
- Warning control (suppress specific warnings)
- Backend selection (force a specific reduction backend)

All context managers restore state on exit, even if exceptions occur.
"""

import logging
import warnings
from contextlib import contextmanager
from typing import Optional, Type


# Module-level state for backend override
_backend_override = None


# ============================================================================ #
# Logging Context Managers
# ============================================================================ #


@contextmanager
def suppress_logger(logger_name: str, level: int = logging.CRITICAL):
    """
    Temporarily change a logger's level.

    Parameters
    ----------
    logger_name : str
        Name of the logger to suppress (e.g. 'pairfrac._tree').
    level : int, default logging.CRITICAL
        Temporary logging level.

    Examples
    --------
    >>> # Hide multifurcation warnings while loading many trees
    >>> with suppress_logger('pairfrac._tree'):
    ...     trees = [Tree(nwk) for nwk in newicks]

    Notes
    -----
    Exception-safe and nesting-safe: the previous level is restored on exit.
    """
    logger = logging.getLogger(logger_name)
    original_level = logger.level

    try:
        logger.setLevel(level)
        yield
    finally:
        logger.setLevel(original_level)


@contextmanager
def quiet(level: int = logging.CRITICAL):
    """
    Temporarily suppress all pairfrac logging.

    Every module logger is a child of the 'pairfrac' logger, so raising its
    level silences the whole package.

    Examples
    --------
    >>> with quiet():
    ...     dm = UniFrac(tree, table).distance_matrix()

    >>> # Show only warnings
    >>> with quiet(logging.WARNING):
    ...     dm = UniFrac(tree, table).distance_matrix()
    """
    with suppress_logger("pairfrac", level):
        yield


# ============================================================================ #
# Warning Context Managers
# ============================================================================ #


@contextmanager
def suppress_warnings(category: Optional[Type[Warning]] = None):
    """
    Temporarily suppress warnings.

    Parameters
    ----------
    category : Type[Warning] or None, default None
        Warning category to suppress (e.g. NumbaPerformanceWarning).
        If None, suppresses all warnings.

    Examples
    --------
    >>> from numba.core.errors import NumbaPerformanceWarning
    >>> with suppress_warnings(NumbaPerformanceWarning):
    ...     shared = shared_branch_length(p_a, p_b, b, backend='cpu-parallel')
    """
    with warnings.catch_warnings():
        if category is None:
            warnings.simplefilter("ignore")
        else:
            warnings.filterwarnings("ignore", category=category)
        yield


# ============================================================================ #
# Backend Context Managers
# ============================================================================ #


@contextmanager
def use_backend(backend: str):
    """
    Temporarily force a specific backend for the overlap reduction.

    Parameters
    ----------
    backend : str
        'python', 'numpy', 'cpu-parallel' or 'best'.

    Raises
    ------
    ValueError
        If requested backend is not available.

    Examples
    --------
    >>> with use_backend('python'):
    ...     dm = uf.distance_matrix()   # reference loop, easy to debug

    Notes
    -----
    **Not thread-safe**: uses module-level state.  Pass ``backend=``
    directly to ``pair_distance`` / ``distance_matrix`` instead when
    computing from several threads.
    """
    global _backend_override

    from ._backend import get_available_backends

    available = get_available_backends()

    if backend != "best" and backend not in available:
        raise ValueError(
            f"Backend '{backend}' not available. "
            f"Available backends: {', '.join(available)}"
        )

    original_override = _backend_override

    try:
        _backend_override = backend
        yield
    finally:
        _backend_override = original_override


def get_backend_override() -> Optional[str]:
    """
    Get the current backend override, if any.

    Returns
    -------
    str or None
        Current backend override, or None if no override active.
    """
    return _backend_override


# ============================================================================ #
# Combined Context Managers
# ============================================================================ #


@contextmanager
def silent_benchmark(backend: str = "best"):
    """
    Suppress logging and warnings while forcing a specific backend.

    Examples
    --------
    >>> for backend in ['python', 'numpy', 'cpu-parallel']:
    ...     with silent_benchmark(backend):
    ...         start = time.time()
    ...         uf.distance_matrix()
    ...         print(f"{backend}: {time.time() - start:.3f}s")
    """
    with quiet():
        with use_backend(backend):
            with suppress_warnings():
                yield
