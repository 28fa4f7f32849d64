"""
_context.py
===========
Context managers that temporarily change how distree runs.

Three kinds of state can be overridden for the duration of a ``with``
block, and every one is restored on exit, exceptions included:

  log levels        suppress_logger, quiet
  warning filters   suppress_warnings
  row scheduling    use_backend, use_workers

``silent_benchmark`` stacks all three for timing runs.

Scheduling overrides are module-level state read by ``DistanceMatrix``
when it resolves a backend or a worker count, and take precedence over
the arguments passed to it.  They are not thread-safe; pass ``backend=``
and ``n_workers=`` explicitly when driving several matrices from
different threads.
"""

import logging
import warnings
from contextlib import contextmanager
from typing import Optional, Type


_overrides = {"backend": None, "workers": None}


# ============================================================================ #
# Logging
# ============================================================================ #


@contextmanager
def suppress_logger(logger_name: str, level: int = logging.CRITICAL):
    """
    Raise one logger's threshold to *level* inside the block.

    Parameters
    ----------
    logger_name : str
        e.g. 'distree._lca' to hide index statistics only.
    level : int, default logging.CRITICAL

    Examples
    --------
    >>> with suppress_logger('distree._lca'):
    ...     index = tree.lca_index()
    """
    target = logging.getLogger(logger_name)
    saved = target.level
    target.setLevel(level)
    try:
        yield target
    finally:
        target.setLevel(saved)


@contextmanager
def quiet(level: int = logging.CRITICAL):
    """
    Silence every distree module below *level*.

    All module loggers are children of 'distree', so one threshold on the
    parent covers parsing, indexing, rerooting and scheduling messages.

    >>> with quiet():
    ...     compute(newick, sink=buffer)
    """
    with suppress_logger("distree", level):
        yield


# ============================================================================ #
# Warnings
# ============================================================================ #


@contextmanager
def suppress_warnings(category: Optional[Type[Warning]] = None):
    """
    Ignore warnings of *category* (all warnings when None) inside the block.

    >>> from numba.core.errors import NumbaPerformanceWarning
    >>> with suppress_warnings(NumbaPerformanceWarning):
    ...     matrix.write(sink)
    """
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=category or Warning)
        yield


# ============================================================================ #
# Row scheduling
# ============================================================================ #


@contextmanager
def _override(key: str, value):
    saved = _overrides[key]
    _overrides[key] = value
    try:
        yield
    finally:
        _overrides[key] = saved


@contextmanager
def use_backend(backend: str):
    """
    Compute rows on *backend* ('python', 'cpu-parallel' or 'best') inside
    the block, whatever ``backend=`` the caller passes.

    Raises
    ------
    ValueError   if *backend* is neither 'best' nor an available backend.

    Examples
    --------
    >>> with use_backend('python'):
    ...     reference = matrix.to_array()
    """
    from distree._backend import get_available_backends

    available = get_available_backends()
    if backend != "best" and backend not in available:
        raise ValueError(
            f"Backend '{backend}' not available. "
            f"Available backends: {', '.join(available)}"
        )
    with _override("backend", backend):
        yield


@contextmanager
def use_workers(n_workers: int):
    """
    Run row kernels on *n_workers* threads inside the block, whatever
    ``n_workers=`` the caller passes.  Counts above the numba pool size are
    clamped when the rows are computed.

    Raises
    ------
    ValueError   if *n_workers* is less than 1.

    Examples
    --------
    >>> with use_workers(1):
    ...     single = matrix.to_array()
    """
    n_workers = int(n_workers)
    if n_workers < 1:
        raise ValueError(f"Worker count must be at least 1, got {n_workers}")
    with _override("workers", n_workers):
        yield


def get_backend_override() -> Optional[str]:
    """Backend forced by ``use_backend``, or None."""
    return _overrides["backend"]


def get_worker_override() -> Optional[int]:
    """Worker count forced by ``use_workers``, or None."""
    return _overrides["workers"]


# ============================================================================ #
# Combined
# ============================================================================ #


@contextmanager
def silent_benchmark(backend: str = "best", n_workers: Optional[int] = None):
    """
    Time row production without log output or warnings, on a fixed backend
    and (optionally) a fixed worker count.

    >>> for n in (1, 2, 4, 8):
    ...     with silent_benchmark('cpu-parallel', n_workers=n):
    ...         start = time.perf_counter()
    ...         matrix.write(io.StringIO())
    ...         print(n, time.perf_counter() - start)
    """
    with quiet(), suppress_warnings(), use_backend(backend):
        if n_workers is None:
            yield
        else:
            with use_workers(n_workers):
                yield
