"""
_backend.py
===========
Backend detection and worker-count resolution for the row scheduler.

Two backends compute distance rows:

  'python'        Pure-Python reference kernel, always available, one thread.
  'cpu-parallel'  Numba ``prange`` kernel on numba's thread pool.

Nothing here logs or mutates state; callers decide what to report.
"""

import os
from typing import List, Optional, Tuple


# ============================================================================ #
# Which backends can run
# ============================================================================ #


def check_numba_available() -> bool:
    """
    True when numba imports cleanly in this interpreter.
    """
    try:
        import numba  # noqa: F401

        return True
    except ImportError:
        return False


def get_available_backends() -> List[str]:
    """
    Backends usable in this interpreter, slowest first.

    The reference kernel is listed unconditionally; the compiled kernel
    only when numba is importable, so the last entry is what 'best' means.
    """
    if check_numba_available():
        return ["python", "cpu-parallel"]
    return ["python"]


def get_best_backend() -> str:
    """
    Get the most optimized available backend ('cpu-parallel' > 'python').
    """
    return get_available_backends()[-1]


def resolve_backend(backend: str) -> str:
    """
    Map 'best' to a concrete backend name and reject names that cannot run.

    Raises
    ------
    ValueError   naming the backends that are available.
    """
    usable = get_available_backends()
    if backend == "best":
        return usable[-1]
    if backend not in usable:
        raise ValueError(
            f"Backend '{backend}' not available. "
            f"Available backends: {', '.join(usable)}"
        )
    return backend


# ============================================================================ #
# Worker Pool Sizing
# ============================================================================ #


def max_workers() -> int:
    """
    Available hardware parallelism.

    With numba present this is the size of numba's thread pool
    (``NUMBA_NUM_THREADS``, which defaults to the CPU count and cannot be
    exceeded at run time); otherwise the CPU count.
    """
    try:
        from numba import config

        return max(1, int(config.NUMBA_NUM_THREADS))
    except ImportError:
        return os.cpu_count() or 1


def resolve_workers(n_workers: Optional[int] = None) -> int:
    """
    Turn a requested worker count into the one actually used.

    ``None`` means all available workers.  Requests above ``max_workers()``
    are clamped to it.

    Raises
    ------
    ValueError   if *n_workers* is less than 1.
    """
    limit = max_workers()
    if n_workers is None:
        return limit
    n_workers = int(n_workers)
    if n_workers < 1:
        raise ValueError(f"Worker count must be at least 1, got {n_workers}")
    return min(n_workers, limit)


# ============================================================================ #
# Compiled kernel lookup
# ============================================================================ #


def import_cpu_kernels() -> Tuple[bool, Optional[object]]:
    """
    ``(True, _distance_rows_njit)`` if the compiled kernel module imports,
    else ``(False, None)``.
    """
    try:
        from distree._cpu_kernels import _distance_rows_njit

        return (True, _distance_rows_njit)
    except ImportError:
        return (False, None)


def get_backend_info() -> dict:
    """
    Snapshot of backend state for bug reports and the test suite.

    Keys: 'numba_available', 'backends', 'best_backend',
    'cpu_kernels_available', 'max_workers'.
    """
    kernels_ok, _ = import_cpu_kernels()
    backends = get_available_backends()
    return dict(
        numba_available=check_numba_available(),
        backends=backends,
        best_backend=backends[-1],
        cpu_kernels_available=kernels_ok,
        max_workers=max_workers(),
    )
