"""
conftest.py
===========
Session-level pytest configuration for the test suite.

Custom marks
------------
large_scale
    Applied to reducer agreement checks on vectors of 10^7 and 10^8
    branches.  These allocate several GB and are excluded from the default
    run; opt in with ``-m large_scale``.

Warning filters
---------------
NumbaPerformanceWarning messages are filtered out during tests.  Tiny test
vectors routinely trigger them and they say nothing about correctness.
"""

import warnings


def pytest_configure(config):
    """
    Configure pytest before test collection begins.

    This runs before any test modules are imported, which is important for
    catching warnings from numba kernel compilation.
    """
    config.addinivalue_line(
        "markers",
        "large_scale: reducer checks on 10^7+ element vectors "
        "(slow, several GB of memory; opt in with -m large_scale)",
    )
    if not config.option.markexpr:
        config.option.markexpr = "not large_scale"

    from numba.core.errors import NumbaPerformanceWarning

    warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)


def pytest_unconfigure(config):
    """Restore default warning behavior."""
    warnings.resetwarnings()
