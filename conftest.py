"""
conftest.py
===========
Session-level pytest configuration for the distree test suite.

Custom marks
------------
large_scale
    Applied to tests that build trees with thousands of leaves and compare
    full matrices across backends.  They run by default; deselect them with
    ``-m "not large_scale"`` for a quick run.

    Registration here suppresses PytestUnknownMarkWarning and makes the mark
    visible in ``pytest --markers``.

Warning filters
---------------
NumbaPerformanceWarning messages are filtered out during tests.  The test
trees are far too small for the parallel row kernel to pay off, and numba
says so; that is not informative for correctness testing.
"""

import pytest
import warnings


def pytest_configure(config):
    """
    Configure pytest before test collection begins.

    This runs before any test modules are imported, so the filter is in
    place before the first numba kernel is compiled.
    """
    config.addinivalue_line(
        "markers",
        "large_scale: tests on trees with thousands of leaves "
        "(slow; deselect with -m 'not large_scale')",
    )

    from numba.core.errors import NumbaPerformanceWarning

    warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)


def pytest_unconfigure(config):
    """Restore default warning behavior."""
    warnings.resetwarnings()
