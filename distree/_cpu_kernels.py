"""
_cpu_kernels.py
===============
CPU-parallel distance-row kernels compiled with Numba.

This module contains ONLY numba-accelerated code and imports no other
project modules, so a failed numba import is contained here and surfaces
through ``_backend.import_cpu_kernels``.

Exported Functions
------------------
_rmq_nb : njit function
    O(1) range minimum query over one tree's Euler tour, returning the LCA
    node ID.

_distance_rows_njit : njit(parallel=True) function
    Fills a block of distance-matrix rows.  The outer loop over rows runs
    under ``prange``; every thread owns whole rows of ``out``, so no atomics
    or locks are needed.

Notes
-----
- The arithmetic mirrors ``_distance.distance_rows_python`` operation for
  operation, so both backends produce bit-identical float64 values.
- cache=True persists the compiled binary to disk for faster later runs.
- The number of threads used by ``prange`` is whatever
  ``numba.get_num_threads()`` returns at call time; ``DistanceMatrix`` sets
  it from the requested worker count.
"""

from numba import njit, prange


@njit(cache=True)
def _rmq_nb(l, r, sparse_table, euler_depth, log2_table, euler_tour):
    """
    O(1) RMQ over the Euler tour for the inclusive range [l, r].

    Parameters
    ----------
    l, r         : int        Tour positions, l <= r.
    sparse_table : int32[:, :]
    euler_depth  : int32[:]
    log2_table   : int32[:]
    euler_tour   : int32[:]

    Returns
    -------
    int
        Node ID of the LCA.
    """
    k = log2_table[r - l + 1]
    li = sparse_table[k, l]
    ri = sparse_table[k, r - (1 << k) + 1]
    if euler_depth[ri] < euler_depth[li]:
        return euler_tour[ri]
    return euler_tour[li]


@njit(parallel=True, cache=True)
def _distance_rows_njit(
        row_nodes,
        col_nodes,
        mode_code,
        first_occurrence,
        depth,
        root_distance,
        euler_tour,
        euler_depth,
        sparse_table,
        log2_table,
        out):
    """
    Numba-compiled block of distance rows.

    Parameters
    ----------
    row_nodes : int32[n_rows]
        Node IDs of the leaves heading each row of the block.
    col_nodes : int32[n_cols]
        Node IDs of the leaves in column order (sorted by label).
    mode_code : int
        0 = patristic, 1 = topological, 2 = lmm.
    first_occurrence, depth, root_distance, euler_tour, euler_depth,
    sparse_table, log2_table
        Arrays from an LcaIndex.
    out : float64[n_rows, n_cols]
        Output block, fully overwritten.
    """
    n_cols = col_nodes.shape[0]
    for ri in prange(row_nodes.shape[0]):
        u = row_nodes[ri]
        for ci in range(n_cols):
            v = col_nodes[ci]
            if u == v:
                m = u
            else:
                l = first_occurrence[u]
                r = first_occurrence[v]
                if l > r:
                    l, r = r, l
                m = _rmq_nb(l, r, sparse_table, euler_depth, log2_table,
                            euler_tour)

            if mode_code == 0:
                out[ri, ci] = (root_distance[u] + root_distance[v]
                               - 2.0 * root_distance[m])
            elif mode_code == 1:
                out[ri, ci] = depth[u] + depth[v] - 2 * depth[m]
            else:
                out[ri, ci] = root_distance[m]
