"""
_distance.py
============
Distance modes and the pair formulas built on one LCA query.

  patristic    rd(i) + rd(j) - 2 * rd(lca)        diagonal 0
  topological  depth(i) + depth(j) - 2 * depth(lca)  diagonal 0
  lmm          rd(lca)                             diagonal rd(i)

where ``rd`` is ``LcaIndex.root_distance`` and ``depth`` is
``LcaIndex.depth``.  Every formula is symmetric because LCA is.

``distance_rows_python`` is the pure-Python reference row kernel used by
the 'python' backend; it has the same signature as the numba kernel
``_cpu_kernels._distance_rows_njit`` and must produce identical values.
"""

import numpy as np

from distree._lca import LcaIndex


PATRISTIC = "patristic"
TOPOLOGICAL = "topological"
LMM = "lmm"

DISTANCE_MODES = (PATRISTIC, TOPOLOGICAL, LMM)

# Integer codes passed to the row kernels.
MODE_CODES = {PATRISTIC: 0, TOPOLOGICAL: 1, LMM: 2}


def select_mode(lmm: bool = False, topology: bool = False) -> str:
    """
    Pick the distance mode from command-line style flags.

    *lmm* wins over *topology*; with neither set the mode is patristic.

    Examples
    --------
    >>> select_mode()
    'patristic'
    >>> select_mode(topology=True)
    'topological'
    >>> select_mode(lmm=True, topology=True)
    'lmm'
    """
    if lmm:
        return LMM
    if topology:
        return TOPOLOGICAL
    return PATRISTIC


def resolve_mode(mode: str) -> str:
    """
    Validate and normalise a mode name.

    Raises
    ------
    ValueError   if *mode* is not one of DISTANCE_MODES.
    """
    name = str(mode).lower()
    if name not in DISTANCE_MODES:
        raise ValueError(
            f"Unknown distance mode '{mode}'. "
            f"Valid modes: {', '.join(DISTANCE_MODES)}"
        )
    return name


def patristic_distance(index: LcaIndex, i: int, j: int) -> float:
    """Sum of branch lengths on the path between nodes *i* and *j*."""
    m = index.lca(i, j)
    rd = index.root_distance
    return float(rd[i]) + float(rd[j]) - 2.0 * float(rd[m])


def topological_distance(index: LcaIndex, i: int, j: int) -> int:
    """Number of edges on the path between nodes *i* and *j*."""
    m = index.lca(i, j)
    depth = index.depth
    return int(depth[i]) + int(depth[j]) - 2 * int(depth[m])


def lmm_covariance(index: LcaIndex, i: int, j: int) -> float:
    """Weighted depth of the LCA of *i* and *j* (var-covar matrix entry)."""
    return float(index.root_distance[index.lca(i, j)])


_PAIR_FUNCTIONS = {
    PATRISTIC: patristic_distance,
    TOPOLOGICAL: topological_distance,
    LMM: lmm_covariance,
}


def pair_distance(index: LcaIndex, i: int, j: int, mode: str = PATRISTIC):
    """Dispatch to the formula for *mode*."""
    return _PAIR_FUNCTIONS[resolve_mode(mode)](index, i, j)


def distance_rows_python(
    row_nodes: np.ndarray,
    col_nodes: np.ndarray,
    mode_code: int,
    first_occurrence: np.ndarray,
    depth: np.ndarray,
    root_distance: np.ndarray,
    euler_tour: np.ndarray,
    euler_depth: np.ndarray,
    sparse_table: np.ndarray,
    log2_table: np.ndarray,
    out: np.ndarray,
) -> None:
    """
    **Reference kernel.**  Fill ``out[ri, ci]`` with the distance between
    ``row_nodes[ri]`` and ``col_nodes[ci]``.

    Parameters
    ----------
    row_nodes, col_nodes : int32 arrays of node IDs
    mode_code            : int   MODE_CODES value
    first_occurrence … log2_table : arrays from an LcaIndex
    out                  : float64 (len(row_nodes), len(col_nodes)), filled in place
    """
    for ri in range(row_nodes.shape[0]):
        u = int(row_nodes[ri])
        for ci in range(col_nodes.shape[0]):
            v = int(col_nodes[ci])
            if u == v:
                m = u
            else:
                l = int(first_occurrence[u])
                r = int(first_occurrence[v])
                if l > r:
                    l, r = r, l
                m = int(
                    euler_tour[
                        LcaIndex._rmq(l, r, sparse_table, euler_depth, log2_table)
                    ]
                )

            if mode_code == 0:
                out[ri, ci] = (
                    float(root_distance[u])
                    + float(root_distance[v])
                    - 2.0 * float(root_distance[m])
                )
            elif mode_code == 1:
                out[ri, ci] = int(depth[u]) + int(depth[v]) - 2 * int(depth[m])
            else:
                out[ri, ci] = float(root_distance[m])
