"""
_logging.py
===========
Message formatting for distree diagnostics.

Callers gather the numbers (tree sizes, index dimensions, schedules) and
pass them in; each function here only turns them into log records on the
'distree._logging' logger.  Tests drive these functions directly with
hand-made values and inspect the records through caplog.
"""

import logging
from typing import Any, List


logger = logging.getLogger(__name__)


# ============================================================================ #
# Runtime environment
# ============================================================================ #


def log_optimization_status(numba_available: bool) -> None:
    """
    INFO summary of the host: CPU count, memory (with psutil), and the numba
    and llvmlite versions plus thread configuration when numba imported.
    """
    import os
    import platform

    logger.info(
        "System: %s (%s), %d CPU cores, Python %s",
        platform.machine(),
        platform.system(),
        os.cpu_count() or 1,
        platform.python_version(),
    )

    try:
        import psutil

        vm = psutil.virtual_memory()
        gib = float(1 << 30)
        logger.info(
            "Memory: %.1f GB total, %.1f GB available", vm.total / gib, vm.available / gib
        )
    except ImportError:
        pass  # optional

    if numba_available:
        import numba

        logger.info("Numba %s available for compiled row kernels", numba.__version__)
        try:
            import llvmlite

            logger.info("  compiled through llvmlite %s", llvmlite.__version__)
        except (ImportError, AttributeError):
            pass

        # threading_layer() raises until a parallel kernel has run once
        try:
            logger.info(
                f"Numba threading: {numba.threading_layer()} layer, "
                f"{numba.get_num_threads()} threads active"
            )
        except ValueError:
            logger.info(
                f"Numba threading: {numba.get_num_threads()} threads "
                "(layer chosen on first parallel call)"
            )
    else:
        logger.info("Numba not installed; distance rows will run as pure Python")
        logger.info("Install numba for parallel row computation: pip install numba")


def install_numba_warning_filter(numba_available: bool) -> None:
    """
    Send NumbaPerformanceWarning to this logger at WARNING level instead of
    the default stderr printout; other warnings pass through unchanged.
    """
    import warnings

    if not numba_available:
        return
    try:
        from numba.core.errors import NumbaPerformanceWarning as perf_warning
    except ImportError:
        return

    previous = warnings.showwarning

    def showwarning(message, category, filename, lineno, file=None, line=None):
        if issubclass(category, perf_warning):
            logger.warning(f"Numba performance issue: {message}")
            logger.warning(f"  at {filename}:{lineno}")
            return
        previous(message, category, filename, lineno, file, line)

    warnings.showwarning = showwarning


def log_backend_availability(backends_available: List[str], numba_available: bool) -> None:
    """
    Log which execution backends are available for the row kernels.
    """
    logger.info("Available backends: %s", ", ".join(backends_available))
    if "cpu-parallel" in backends_available:
        logger.info("  cpu-parallel: LLVM-compiled parallel rows (numba.njit + prange)")
    elif numba_available:
        logger.info("  cpu-parallel: unavailable (kernel module failed to import)")

    logger.info("  python: unoptimized reference implementation")
    logger.info(f"Default backend='best' will use: {backends_available[-1]}")


# ============================================================================ #
# Trees, indexes and schedules
# ============================================================================ #


def log_tree_statistics(
    n_nodes: int, n_leaves: int, n_multifurcating: int, n_unary: int
) -> None:
    """
    Log the size of a freshly parsed tree.

    Parameters
    ----------
    n_nodes : int
        Total nodes in the arena.
    n_leaves : int
        Labelled leaves.
    n_multifurcating : int
        Internal nodes with more than two children.
    n_unary : int
        Internal nodes with exactly one child.
    """
    logger.info("Parsed tree: %d leaves, %d nodes", n_leaves, n_nodes)
    if n_multifurcating > 0:
        logger.info(
            "  %d multifurcating node(s) kept as-is (no zero-length resolution)",
            n_multifurcating,
        )
    if n_unary > 0:
        logger.info(
            "  %d unary node(s); each adds one edge to topological distances",
            n_unary,
        )


def log_midpoint_rooting(
    u_label: str, v_label: str, diameter: float, new_root: int, split: bool
) -> None:
    """
    Log where midpoint rooting placed the root.

    Parameters
    ----------
    u_label, v_label : str
        Labels of the diameter endpoints.
    diameter : float
        Weighted diameter length.
    new_root : int
        Node ID of the new root.
    split : bool
        True if a new node was inserted to split an edge.
    """
    logger.info(
        "Diameter: '%s' ↔ '%s', length %.6g", u_label, v_label, diameter
    )
    if split:
        logger.info("  Midpoint falls inside an edge; new root node %d inserted", new_root)
    else:
        logger.info("  Midpoint falls on existing node %d; used as root", new_root)


def log_index_statistics(
    n_nodes: int, tour_len: int, n_levels: int, max_depth: int, memory_bytes: int
) -> None:
    """
    Log LCA index dimensions and memory footprint.
    """
    logger.info(
        "LCA index built: nodes=%d, tour=%d, sparse_table=%dx%d, max_depth=%d",
        n_nodes,
        tour_len,
        n_levels,
        tour_len,
        max_depth,
    )

    if memory_bytes >= 1 << 30:
        logger.info("  Index memory footprint: %.2f GB", memory_bytes / float(1 << 30))
    else:
        logger.info("  Index memory footprint: %.1f MB", memory_bytes / float(1 << 20))


def log_schedule(
    mode: str, backend: str, n_workers: int, chunk_rows: int, n_leaves: int
) -> None:
    """
    Log how the matrix rows will be produced: backend, thread count, and
    the chunking that bounds memory to ``chunk_rows`` rows at a time.
    """
    n_chunks = (n_leaves + chunk_rows - 1) // chunk_rows
    logger.info(
        f"Distance matrix ({mode}): {n_leaves}x{n_leaves}, backend={backend!r}, "
        f"{n_workers} worker(s)"
    )
    logger.info(
        f"  {n_chunks} chunk(s) of up to {chunk_rows} rows "
        f"({chunk_rows * n_leaves * 8 / (1024**2):.1f} MB buffer)"
    )


# ============================================================================ #
# Measurements passed to the functions above
# ============================================================================ #


def compute_memory_footprint(index: Any) -> int:
    """
    Bytes held by the arrays of an LCA index.
    """
    names = (
        "depth",
        "root_distance",
        "euler_tour",
        "euler_depth",
        "first_occurrence",
        "sparse_table",
        "log2_table",
    )
    return sum(getattr(index, name).nbytes for name in names)
