"""
_overlap.py
===========
Shared branch length of two samples: the reduction at the heart of
unweighted UniFrac.

    shared = Σ_k p_a[k] · p_b[k] · b[k]

Each term is independent and the sum is associative, so the reduction can be
split across threads.  Backends differ only in summation order; results agree
to within ~1e-12 relative on realistic inputs.

Backends
--------
  python        sequential reference loop (slow, always available)
  numpy         vectorised product and pairwise sum
  cpu-parallel  numba ``prange`` reduction (requires numba)

The backend is chosen per call with ``backend=`` or for a whole block with
``pairfrac.use_backend``; the context-manager override wins.
"""

import logging

import numpy as np

from pairfrac._backend import (
    KNOWN_BACKENDS,
    get_best_backend,
    import_cpu_kernels,
    resolve_backend,
)
from pairfrac._context import get_backend_override

logger = logging.getLogger(__name__)

_, _shared_length_njit, _union_length_njit = import_cpu_kernels()

# Track first calls to kernels for compilation logging
_kernel_first_call = {
    "cpu-parallel-shared": True,
    "cpu-parallel-union": True,
}


def select_backend(backend: str = "best") -> str:
    """
    Resolve *backend*, honouring an active ``use_backend`` override.

    An unknown name raises ``ValueError``.  A known backend that is not
    available on this machine is logged as a warning and replaced by the best
    available one.
    """
    backend_override = get_backend_override()
    if backend_override is not None:
        backend = backend_override

    if backend != "best" and backend not in KNOWN_BACKENDS:
        raise ValueError(
            f"Unknown backend '{backend}'. "
            f"Known backends: {', '.join(KNOWN_BACKENDS)}, best"
        )

    try:
        return resolve_backend(backend)
    except ValueError as e:
        logger.warning(str(e))
        return get_best_backend()


def _check_lengths(p_a, p_b, brlens):
    p_a = np.ascontiguousarray(p_a, dtype=np.float64)
    p_b = np.ascontiguousarray(p_b, dtype=np.float64)
    brlens = np.ascontiguousarray(brlens, dtype=np.float64)
    if not (p_a.shape == p_b.shape == brlens.shape) or brlens.ndim != 1:
        raise ValueError(
            "p_a, p_b and brlens must be 1-D arrays of equal length; got "
            f"shapes {p_a.shape}, {p_b.shape}, {brlens.shape}."
        )
    return p_a, p_b, brlens


def _log_first_call(kernel_key: str) -> None:
    if _kernel_first_call.get(kernel_key, False):
        logger.info("  Compiling %s kernel (cached for future calls)", kernel_key)
        _kernel_first_call[kernel_key] = False


def shared_branch_length(p_a, p_b, brlens, backend: str = "best") -> float:
    """
    Total branch length common to two samples.

    Parameters
    ----------
    p_a, p_b : array-like of float, shape (n_branches,)
        Branch presence vectors (values in {0, 1}).
    brlens : array-like of float, shape (n_branches,)
        Branch lengths.
    backend : str, default 'best'
        'python', 'numpy', 'cpu-parallel' or 'best'.

    Returns
    -------
    float

    Raises
    ------
    ValueError
        If the three vectors differ in length or the backend name is unknown.
    """
    p_a, p_b, brlens = _check_lengths(p_a, p_b, brlens)
    resolved_backend = select_backend(backend)

    if resolved_backend == "cpu-parallel":
        _log_first_call("cpu-parallel-shared")
        return float(_shared_length_njit(p_a, p_b, brlens))

    elif resolved_backend == "numpy":
        return float(np.sum(p_a * p_b * brlens))

    elif resolved_backend == "python":
        return _shared_length_python(p_a, p_b, brlens)

    else:
        raise RuntimeError(f"Internal error: unhandled backend {resolved_backend!r}")


def union_branch_length(p_a, p_b, brlens, backend: str = "best") -> float:
    """
    Total length of branches reached by either sample.

    Parameters and backends as for ``shared_branch_length``.
    """
    p_a, p_b, brlens = _check_lengths(p_a, p_b, brlens)
    resolved_backend = select_backend(backend)

    if resolved_backend == "cpu-parallel":
        _log_first_call("cpu-parallel-union")
        return float(_union_length_njit(p_a, p_b, brlens))

    elif resolved_backend == "numpy":
        return float(np.sum(np.where((p_a > 0.0) | (p_b > 0.0), brlens, 0.0)))

    elif resolved_backend == "python":
        total = 0.0
        for k in range(brlens.shape[0]):
            if p_a[k] > 0.0 or p_b[k] > 0.0:
                total += float(brlens[k])
        return total

    else:
        raise RuntimeError(f"Internal error: unhandled backend {resolved_backend!r}")


def _shared_length_python(p_a, p_b, brlens) -> float:
    """Unoptimised reference loop."""
    total = 0.0
    for k in range(brlens.shape[0]):
        total += float(p_a[k]) * float(p_b[k]) * float(brlens[k])
    return total
