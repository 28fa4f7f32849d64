"""
_matrix.py
==========
Row-streaming distance matrix over the leaves of a ``Tree``.

Public API
----------
  DistanceMatrix(tree, mode="patristic")
      Builds (or reuses) the tree's LCA index.  Nothing N×N is allocated.

  .rows(start, stop, backend="best", n_workers=None) -> float64[stop-start, N]
  .row(leaf, backend="best") -> float64[N]
  .iter_chunks(chunk_rows=None, backend="best", n_workers=None)
  .to_array(backend="best", n_workers=None) -> float64[N, N]
  .write(sink, precision=3, chunk_rows=None, backend="best", n_workers=None)

  compute(tree_text, mode="patristic", midpoint=False, sink=None, ...)
      Parse, optionally midpoint-root, and stream the TSV matrix.

Scheduling
----------
Rows are produced in contiguous chunks of ``chunk_rows`` rows (default
``n_workers * ROWS_PER_WORKER``).  On the 'cpu-parallel' backend each chunk
is one call to the numba ``prange`` kernel running on ``n_workers``
threads; each thread fills whole rows of the chunk buffer and reads only
the immutable index arrays.  The calling thread is the single writer: it
emits a chunk only after the kernel has joined, and chunks are produced in
row order, so output order never depends on thread completion order.  At
most one ``chunk_rows × N`` buffer is alive at a time.

Output format
-------------
Tab-separated, '\\n'-terminated lines.  The header is an empty cell
followed by the sorted leaf labels; each data row is a label followed by N
values in header order.  Patristic and LMM values use fixed-point with
``precision`` decimals; topological values are integers.

Logging
-------
On first import the module logs system and numba status at INFO level and
routes NumbaPerformanceWarning through the 'distree' loggers.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import numpy as np

from distree._tree import Tree
from distree._distance import (
    MODE_CODES,
    PATRISTIC,
    TOPOLOGICAL,
    distance_rows_python,
    resolve_mode,
)
from distree._backend import (
    check_numba_available,
    get_available_backends,
    get_best_backend,
    import_cpu_kernels,
    resolve_backend,
    resolve_workers,
)
from distree._context import get_backend_override, get_worker_override
from distree._logging import (
    install_numba_warning_filter,
    log_backend_availability,
    log_optimization_status,
    log_schedule,
)


_cpu_import_ok, _distance_rows_njit = import_cpu_kernels()
_NUMBA_AVAILABLE = check_numba_available()

if _cpu_import_ok:
    import numba

logger = logging.getLogger(__name__)

_BACKENDS_AVAILABLE = get_available_backends()

# Track the first call to the compiled kernel for compilation logging
_kernel_first_call = {"cpu-parallel": True}

log_optimization_status(_NUMBA_AVAILABLE)
log_backend_availability(_BACKENDS_AVAILABLE, _NUMBA_AVAILABLE)
install_numba_warning_filter(_NUMBA_AVAILABLE)


ROWS_PER_WORKER = 16
DEFAULT_PRECISION = 3


class DistanceMatrix:
    """
    Lazily computed N×N distance matrix over a tree's leaves, in label order.

    Attributes
    ----------
    tree     : Tree       Source tree (not mutated).
    mode     : str        'patristic', 'topological' or 'lmm'.
    index    : LcaIndex   Index the rows are computed from.
    labels   : list[str]  Leaf labels in row/column order.
    leaves   : int32[N]   Leaf node IDs in row/column order.
    n_leaves : int        N.
    """

    def __init__(self, tree: Tree, mode: str = PATRISTIC) -> None:
        self.tree = tree
        self.mode = resolve_mode(mode)
        self.index = tree.lca_index()
        self.labels = list(tree.labels)
        self.leaves = np.ascontiguousarray(tree.sorted_leaves, dtype=np.int32)
        self.n_leaves: int = len(self.labels)
        self._mode_code = MODE_CODES[self.mode]

    def __repr__(self) -> str:
        return f"DistanceMatrix(n_leaves={self.n_leaves}, mode={self.mode!r})"

    # ================================================================== #
    # Row computation                                                      #
    # ================================================================== #

    def rows(
        self,
        start: int,
        stop: int,
        backend: str = "best",
        n_workers: Optional[int] = None,
    ) -> np.ndarray:
        """
        Compute rows ``start`` (inclusive) to ``stop`` (exclusive).

        Returns
        -------
        float64 ndarray, shape (stop - start, n_leaves)
        """
        if not 0 <= start <= stop <= self.n_leaves:
            raise IndexError(
                f"Row range [{start}, {stop}) outside matrix of {self.n_leaves} rows."
            )
        resolved = self._resolve_backend(backend)
        n_workers = self._resolve_workers(n_workers)
        out = np.empty((stop - start, self.n_leaves), dtype=np.float64)
        self._fill(self.leaves[start:stop], out, resolved, n_workers)
        return out

    def row(self, leaf, backend: str = "best") -> np.ndarray:
        """
        Distances from *leaf* (label or node ID) to every leaf, in label order.
        """
        node = self.tree._resolve_node(leaf)
        pos = int(self.tree.leaf_position[node])
        if pos < 0:
            raise KeyError(f"Node {node} is not a leaf.")
        return self.rows(pos, pos + 1, backend=backend, n_workers=1)[0]

    def iter_chunks(
        self,
        chunk_rows: Optional[int] = None,
        backend: str = "best",
        n_workers: Optional[int] = None,
    ) -> Iterator[Tuple[int, np.ndarray]]:
        """
        Yield ``(start, block)`` pairs covering every row in order.

        *block* has shape (k, n_leaves) and holds rows start … start+k-1.
        The same buffer is reused for every chunk: copy a block if it must
        outlive the next iteration.
        """
        resolved = self._resolve_backend(backend)
        n_workers = self._resolve_workers(n_workers)
        if chunk_rows is None:
            chunk_rows = n_workers * ROWS_PER_WORKER
        elif chunk_rows < 1:
            raise ValueError(f"chunk_rows must be at least 1, got {chunk_rows}")
        chunk_rows = min(int(chunk_rows), self.n_leaves)

        log_schedule(self.mode, resolved, n_workers, chunk_rows, self.n_leaves)

        buffer = np.empty((chunk_rows, self.n_leaves), dtype=np.float64)
        for start in range(0, self.n_leaves, chunk_rows):
            stop = min(start + chunk_rows, self.n_leaves)
            block = buffer[: stop - start]
            self._fill(self.leaves[start:stop], block, resolved, n_workers)
            logger.debug("Computed rows %d-%d of %d", start, stop - 1, self.n_leaves)
            yield start, block

    def to_array(
        self, backend: str = "best", n_workers: Optional[int] = None
    ) -> np.ndarray:
        """
        Materialize the full matrix.  O(N²) memory: intended for small trees.
        """
        return self.rows(0, self.n_leaves, backend=backend, n_workers=n_workers)

    # ================================================================== #
    # Output                                                               #
    # ================================================================== #

    def header_line(self) -> str:
        return "\t" + "\t".join(self.labels) + "\n"

    def value_format(self, precision: int = DEFAULT_PRECISION) -> str:
        """printf-style format for one matrix cell under this mode."""
        if precision < 0:
            raise ValueError(f"precision must be non-negative, got {precision}")
        if self.mode == TOPOLOGICAL:
            return "%d"
        return f"%.{int(precision)}f"

    def write(
        self,
        sink,
        precision: int = DEFAULT_PRECISION,
        chunk_rows: Optional[int] = None,
        backend: str = "best",
        n_workers: Optional[int] = None,
    ) -> int:
        """
        Stream the matrix to *sink* as TSV.

        Parameters
        ----------
        sink : text stream
            Anything with a ``write(str)`` method.  Only this thread writes
            to it.
        precision : int
            Decimals for patristic/LMM values.

        Returns
        -------
        int   Number of data rows written.

        Raises
        ------
        OSError
            If writing fails.  Rows written before the failure stay written;
            no further rows are computed.
        """
        fmt = self.value_format(precision)
        labels = self.labels
        if chunk_rows is not None and chunk_rows < 1:
            raise ValueError(f"chunk_rows must be at least 1, got {chunk_rows}")
        self._resolve_workers(n_workers)

        sink.write(self.header_line())
        rows_written = 0
        try:
            for start, block in self.iter_chunks(
                chunk_rows=chunk_rows, backend=backend, n_workers=n_workers
            ):
                for k, values in enumerate(block.tolist()):
                    sink.write(
                        labels[start + k]
                        + "\t"
                        + "\t".join([fmt % v for v in values])
                        + "\n"
                    )
                    rows_written += 1
        except OSError:
            logger.error(
                "Output failed after %d of %d rows; stopping", rows_written, self.n_leaves
            )
            raise

        logger.info("Wrote %d x %d matrix", rows_written, self.n_leaves)
        return rows_written

    # ================================================================== #
    # Private                                                              #
    # ================================================================== #

    def _resolve_backend(self, backend: str) -> str:
        backend_override = get_backend_override()
        if backend_override is not None:
            backend = backend_override

        try:
            return resolve_backend(backend)
        except ValueError as e:
            # Backend not available, fall back to best available
            logger.warning(str(e))
            return get_best_backend()

    def _resolve_workers(self, n_workers: Optional[int]) -> int:
        worker_override = get_worker_override()
        if worker_override is not None:
            n_workers = worker_override
        return resolve_workers(n_workers)

    def _fill(self, row_nodes: np.ndarray, out: np.ndarray, backend: str, n_workers: int) -> None:
        index = self.index
        args = (
            row_nodes,
            self.leaves,
            self._mode_code,
            index.first_occurrence,
            index.depth,
            index.root_distance,
            index.euler_tour,
            index.euler_depth,
            index.sparse_table,
            index.log2_table,
            out,
        )

        if backend == "cpu-parallel":
            if _kernel_first_call["cpu-parallel"]:
                logger.info("  Compiling cpu-parallel row kernel (cached for future calls)")
                _kernel_first_call["cpu-parallel"] = False
            with _numba_threads(n_workers):
                _distance_rows_njit(*args)

        elif backend == "python":
            distance_rows_python(*args)

        else:
            raise RuntimeError(f"Internal error: unhandled backend {backend!r}")


@contextmanager
def _numba_threads(n_workers: int):
    """Run the enclosed block with numba's pool limited to *n_workers* threads."""
    original = numba.get_num_threads()
    numba.set_num_threads(n_workers)
    try:
        yield
    finally:
        numba.set_num_threads(original)


def compute(
    tree_text: str,
    mode: str = PATRISTIC,
    midpoint: bool = False,
    sink=None,
    n_workers: Optional[int] = None,
    backend: str = "best",
    precision: int = DEFAULT_PRECISION,
    chunk_rows: Optional[int] = None,
) -> int:
    """
    Parse *tree_text*, optionally midpoint-root it, and stream its distance
    matrix to *sink* (``sys.stdout`` by default).

    Parse and configuration errors are raised before anything is written.

    Returns
    -------
    int   Number of data rows written.

    Raises
    ------
    ParseError   malformed NEWICK.
    ValueError   unknown mode, worker count < 1, negative precision.
    OSError      writing to *sink* failed.

    Examples
    --------
    >>> import io
    >>> buf = io.StringIO()
    >>> compute("(A:1,(B:2,C:3):1);", mode="topological", sink=buf)
    3
    >>> buf.getvalue().splitlines()[1].split("\\t")
    ['A', '0', '3', '3']
    """
    mode = resolve_mode(mode)
    resolve_workers(n_workers)
    if precision < 0:
        raise ValueError(f"precision must be non-negative, got {precision}")
    if sink is None:
        sink = sys.stdout

    tree = Tree(tree_text)
    if midpoint:
        tree.reroot_at_midpoint()

    matrix = DistanceMatrix(tree, mode)
    return matrix.write(
        sink,
        precision=precision,
        chunk_rows=chunk_rows,
        backend=backend,
        n_workers=n_workers,
    )
