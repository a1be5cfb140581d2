"""
_cpu_kernels.py
===============
CPU-accelerated shared-branch-length reduction using Numba.

This module contains ONLY numba-accelerated code and should not import other
project modules to avoid import-time complications.

Exported Functions
------------------
_shared_length_njit : njit function
    Parallel reduction of p_a * p_b * brlens over all branches.

_union_length_njit : njit function
    Parallel reduction of brlens over branches present in either sample.

Notes
-----
- prange splits the branch axis across numba's thread pool; each thread
  accumulates a private partial sum that numba combines at the end, so the
  summation order (and the last bits of the result) depend on the thread
  count.
- cache=True persists compiled binary to disk for faster subsequent runs
"""

from numba import njit, prange


# ======================================================================== #
# CPU Kernels                                                               #
# ======================================================================== #


@njit(parallel=True, cache=True)
def _shared_length_njit(p_a, p_b, brlens):
    """
    Numba-compiled shared branch length.

    Parameters
    ----------
    p_a, p_b : float64[n_branches]
        Branch presence vectors of the two samples.
    brlens : float64[n_branches]
        Branch lengths.

    Returns
    -------
    float
        sum_k p_a[k] * p_b[k] * brlens[k]
    """
    total = 0.0
    for k in prange(brlens.shape[0]):
        total += p_a[k] * p_b[k] * brlens[k]
    return total


@njit(parallel=True, cache=True)
def _union_length_njit(p_a, p_b, brlens):
    """
    Numba-compiled total branch length of the union of two samples.

    Used by the masked method, where the branch vectors cover the full tree
    and only branches reached by at least one sample count toward the total.
    """
    total = 0.0
    for k in prange(brlens.shape[0]):
        if p_a[k] > 0.0 or p_b[k] > 0.0:
            total += brlens[k]
    return total
