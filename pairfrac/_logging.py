"""
_logging.py
===========
Logging functions for pairfrac.

All functions in this module have NO side effects except logging. They take
computed data as parameters and format/emit log messages.
"""

import logging
from typing import List

logger = logging.getLogger(__name__)


# ============================================================================ #
# System and Backend Logging (called at module import time)
# ============================================================================ #


def log_optimization_status(numba_available: bool) -> None:
    """
    Log system capabilities and optimization library availability at INFO level.

    Called once at import of ``pairfrac._unifrac``.  Reports CPU count,
    memory (if psutil is installed), numba and llvmlite versions, and the
    threading configuration.

    Parameters
    ----------
    numba_available : bool
        Whether numba was successfully imported.
    """
    import os
    import platform

    cpu_count = os.cpu_count() or 1
    logger.info(
        f"System: {platform.machine()} ({platform.system()}), "
        f"{cpu_count} CPU cores, Python {platform.python_version()}"
    )

    try:
        import psutil

        mem = psutil.virtual_memory()
        logger.info(
            f"Memory: {mem.total / (1024**3):.1f} GB total, "
            f"{mem.available / (1024**3):.1f} GB available"
        )
    except ImportError:
        pass  # psutil not required

    if not numba_available:
        logger.info("Numba not installed: cpu-parallel backend unavailable")
        return

    import numba

    logger.info(f"Numba {numba.__version__} loaded successfully")

    try:
        import llvmlite

        logger.info(f"LLVM backend: llvmlite {llvmlite.__version__}")
    except (ImportError, AttributeError):
        pass  # LLVM version unavailable

    # threading_layer() raises until a parallel kernel has run
    try:
        logger.info(
            f"Numba threading: {numba.threading_layer()} layer, "
            f"{numba.get_num_threads()} threads active"
        )
    except ValueError:
        logger.info(f"Numba threading: {numba.get_num_threads()} threads configured")


def install_numba_warning_filter(numba_available: bool) -> None:
    """
    Capture NumbaPerformanceWarning and route it through our logger.

    numba issues performance warnings via Python's warnings module. This
    filter intercepts them and logs them at WARNING level so they appear in
    the same stream as other pairfrac diagnostics.

    Parameters
    ----------
    numba_available : bool
        Whether numba was successfully imported.
    """
    import warnings

    if not numba_available:
        return

    from numba.core.errors import NumbaPerformanceWarning

    original_showwarning = warnings.showwarning

    def custom_showwarning(message, category, filename, lineno, file=None, line=None):
        if issubclass(category, NumbaPerformanceWarning):
            logger.warning(f"Numba performance issue: {message}")
            logger.warning(f"  at {filename}:{lineno}")
            return
        original_showwarning(message, category, filename, lineno, file, line)

    warnings.showwarning = custom_showwarning


def log_backend_availability(backends_available: List[str]) -> None:
    """
    Log which execution backends are available for the overlap reduction.

    Parameters
    ----------
    backends_available : List[str]
        List of available backends (e.g., ['python', 'numpy', 'cpu-parallel'])
    """
    logger.info(f"Available backends: {', '.join(backends_available)}")

    if "cpu-parallel" in backends_available:
        logger.info("  cpu-parallel: LLVM-compiled parallel reduction (numba.njit + prange)")
    if "numpy" in backends_available:
        logger.info("  numpy: vectorised single-threaded reduction")
    if "python" in backends_available:
        logger.info("  python: unoptimized reference implementation")

    best = backends_available[-1]  # Last in list is most optimized
    logger.info(f"Default backend='best' will use: {best}")


# ============================================================================ #
# Input Logging (called while preparing a computation)
# ============================================================================ #


def log_table_statistics(
    n_taxa: int,
    n_samples: int,
    empty_samples: List[str],
    missing_from_tree: List[str],
    n_tree_leaves: int,
    n_unobserved_leaves: int,
) -> None:
    """
    Log sample-table statistics and disagreements with the tree.

    Parameters
    ----------
    n_taxa, n_samples : int
        Table dimensions.
    empty_samples : List[str]
        Samples with no taxon present.
    missing_from_tree : List[str]
        Table taxa that are not leaves of the tree (ignored when pruning).
    n_tree_leaves : int
        Number of leaves in the tree.
    n_unobserved_leaves : int
        Tree leaves that have no row in the table.
    """
    logger.info(
        "Sample table: %d taxa × %d samples; tree: %d leaves",
        n_taxa,
        n_samples,
        n_tree_leaves,
    )

    if missing_from_tree:
        shown = ", ".join(missing_from_tree[:5])
        more = len(missing_from_tree) - 5
        logger.warning(
            "%d table taxa are not leaves of the tree and will be ignored: %s%s",
            len(missing_from_tree),
            shown,
            f" (+{more} more)" if more > 0 else "",
        )

    if n_unobserved_leaves > 0:
        logger.info(
            "%d tree leaves have no row in the sample table", n_unobserved_leaves
        )

    if empty_samples:
        logger.warning(
            "%d sample(s) have no taxa present: %s. Pairs of empty samples "
            "cannot be compared.",
            len(empty_samples),
            ", ".join(empty_samples),
        )


def log_assembly_start(n_samples: int, method: str, backend: str) -> None:
    """Log the size and configuration of a distance-matrix run."""
    n_pairs = n_samples * (n_samples - 1) // 2
    logger.info(
        "Computing %d × %d UniFrac matrix (%d pairs, method=%r, backend=%r)",
        n_samples,
        n_samples,
        n_pairs,
        method,
        backend,
    )


def log_assembly_summary(n_pairs: int, elapsed: float) -> None:
    """Log the completion of a distance-matrix run."""
    rate = n_pairs / elapsed if elapsed > 0 else float("inf")
    logger.info(
        "Distance matrix complete: %d pairs in %.3f s (%.1f pairs/s)",
        n_pairs,
        elapsed,
        rate,
    )
