"""
_backend.py
===========
Backend detection and selection for the overlap reduction.

This module detects available execution backends (pure Python, vectorised
numpy, CPU-parallel via numba) and provides functions to query and select
the best backend.

Functions in this module have NO side effects - they only query system state.
Logging is done by the calling code, not here.
"""

from typing import List, Tuple, Optional


# Preference order, least to most optimised.
KNOWN_BACKENDS = ("python", "numpy", "cpu-parallel")


# ============================================================================ #
# Backend Detection (No Side Effects)
# ============================================================================ #


def check_numba_available() -> bool:
    """
    Check if numba is available for CPU parallelization.

    Returns
    -------
    bool
        True if numba can be imported, False otherwise.
    """
    try:
        import numba  # noqa: F401

        return True
    except ImportError:
        return False


def get_available_backends() -> List[str]:
    """
    Get list of available execution backends.

    Returns
    -------
    list[str]
        List of available backends in preference order.
        Always includes 'python' and 'numpy'.
        Includes 'cpu-parallel' if the numba kernels can be imported.

    Examples
    --------
    >>> get_available_backends()
    ['python', 'numpy', 'cpu-parallel']
    """
    backends = ["python", "numpy"]

    cpu_kernels_ok, _, _ = import_cpu_kernels()
    if cpu_kernels_ok:
        backends.append("cpu-parallel")

    return backends


def get_best_backend() -> str:
    """
    Get the most optimized available backend.

    Returns
    -------
    str
        Best available backend in preference order:
        'cpu-parallel' > 'numpy' > 'python'
    """
    backends = get_available_backends()
    # List is in preference order, last is best
    return backends[-1]


def resolve_backend(backend: str) -> str:
    """
    Resolve a backend specification to an actual backend.

    Parameters
    ----------
    backend : str
        Backend specification:
        - 'best': Use the best available backend
        - 'python', 'numpy', 'cpu-parallel': Use specific backend

    Returns
    -------
    str
        Resolved backend name.

    Raises
    ------
    ValueError
        If requested backend is unknown or not available.

    Examples
    --------
    >>> resolve_backend('best')
    'cpu-parallel'

    >>> resolve_backend('numpy')
    'numpy'
    """
    if backend == "best":
        return get_best_backend()

    if backend not in KNOWN_BACKENDS:
        raise ValueError(
            f"Unknown backend '{backend}'. "
            f"Known backends: {', '.join(KNOWN_BACKENDS)}, best"
        )

    available = get_available_backends()
    if backend not in available:
        raise ValueError(
            f"Backend '{backend}' not available. "
            f"Available backends: {', '.join(available)}"
        )

    return backend


# ============================================================================ #
# Kernel Import Helpers
# ============================================================================ #


def import_cpu_kernels() -> Tuple[bool, Optional[object], Optional[object]]:
    """
    Try to import CPU kernels from _cpu_kernels module.

    Returns
    -------
    tuple
        (success, shared_kernel, union_kernel)
        - success: Whether import succeeded
        - shared_kernel: _shared_length_njit function or None
        - union_kernel: _union_length_njit function or None
    """
    try:
        from pairfrac._cpu_kernels import _shared_length_njit, _union_length_njit

        return (True, _shared_length_njit, _union_length_njit)
    except ImportError:
        return (False, None, None)


# ============================================================================ #
# Module-Level State Query (Read-Only)
# ============================================================================ #


def get_backend_info() -> dict:
    """
    Get comprehensive backend information.

    Returns
    -------
    dict
        Dictionary with keys:
        - 'numba_available': bool
        - 'backends': list[str]
        - 'best_backend': str
        - 'cpu_kernels_available': bool

    Examples
    --------
    >>> info = get_backend_info()
    >>> info['backends']
    ['python', 'numpy', 'cpu-parallel']
    """
    cpu_kernels_ok, _, _ = import_cpu_kernels()

    return {
        "numba_available": check_numba_available(),
        "backends": get_available_backends(),
        "best_backend": get_best_backend(),
        "cpu_kernels_available": cpu_kernels_ok,
    }
