"""
_lca.py
=======
Build-once Lowest Common Ancestor index over a frozen ``Tree``.

The index is an Euler tour of the tree annotated with per-visit depths,
plus a sparse-table Range Minimum Query structure over those depths.  The
same traversal fills the depth table (edge depth and cumulative branch
length from the root) that the distance formulas read.

All arrays are plain numpy arrays with explicit dtypes so the numba row
kernel in ``_cpu_kernels`` can take them directly.  Nothing here is mutated
after ``__init__`` returns, so any number of threads may query one index.
"""

import math
import numpy as np

from distree._errors import ContractViolation
from distree._logging import compute_memory_footprint, log_index_statistics


class LcaIndex:
    """
    Euler-tour + sparse-table LCA index with O(1) queries.

    Attributes
    ----------
    n_nodes   : int   Number of nodes in the indexed tree.
    root      : int   Root node ID at build time.
    max_depth : int   Largest edge depth.

    Arrays: depth table
    -------------------
    depth         : int32  [n_nodes]   Edge count from root.
    root_distance : float64[n_nodes]   Cumulative branch length from root.

    Arrays: Euler tour
    ------------------
    euler_tour       : int32[2n-1]        Node ID at each tour position.
    euler_depth      : int32[2n-1]        Depth at each tour position.
    first_occurrence : int32[n_nodes]     First tour index for each node.
    sparse_table     : int32[LOG, 2n-1]   Tour index of the depth minimum
                                          over [i, i + 2^k - 1].
    log2_table       : int32[2n]          floor(log2(i)).
    """

    def __init__(self, tree) -> None:
        self._build(tree.root, tree.children, tree.distance)

        self.n_nodes: int = int(self.depth.shape[0])
        self.root: int = int(tree.root)
        self.max_depth: int = int(np.max(self.depth))

        log_index_statistics(
            self.n_nodes,
            int(self.euler_tour.shape[0]),
            int(self.sparse_table.shape[0]),
            self.max_depth,
            compute_memory_footprint(self),
        )

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def lca(self, u: int, v: int) -> int:
        """
        Return the node ID of the Lowest Common Ancestor of *u* and *v*.

        Raises
        ------
        ContractViolation   if either ID is outside [0, n_nodes).
        """
        self._check_node(u)
        self._check_node(v)
        if u == v:
            return int(u)

        l = int(self.first_occurrence[u])
        r = int(self.first_occurrence[v])
        if l > r:
            l, r = r, l

        idx = LcaIndex._rmq(l, r, self.sparse_table, self.euler_depth, self.log2_table)
        return int(self.euler_tour[idx])

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    def _check_node(self, node: int) -> None:
        if not 0 <= node < self.n_nodes:
            raise ContractViolation(
                f"Node ID {node} outside tree of {self.n_nodes} nodes."
            )

    def _build(self, root: int, children, distance) -> None:
        """
        **Private.**  Euler tour, depth table and sparse table.

        Iterative Euler tour
        --------------------
        Each stack frame holds a node and the index of the next child to
        descend into.  A node is appended to the tour on entry and again
        each time control returns to it from a child, giving 2n-1 visits.

        Sparse table
        ------------
        ``sparse_table[k, i]`` stores the tour index j ∈ [i, i+2^k-1] where
        ``euler_depth[j]`` is minimised (left-biased on ties).  Built
        level-by-level with NumPy element-wise operations.
        """
        n_nodes = len(children)
        tour_len = 2 * n_nodes - 1

        depth = np.zeros(n_nodes, dtype=np.int32)
        root_distance = np.zeros(n_nodes, dtype=np.float64)
        euler_tour = np.zeros(tour_len, dtype=np.int32)
        euler_depth = np.zeros(tour_len, dtype=np.int32)
        first_occurrence = np.full(n_nodes, -1, dtype=np.int32)

        euler_tour[0] = root
        first_occurrence[root] = 0
        tour_pos = 1

        stack_node = [root]
        stack_next = [0]
        while stack_node:
            node = stack_node[-1]
            k = stack_next[-1]
            kids = children[node]

            if k < len(kids):
                stack_next[-1] = k + 1
                child = kids[k]
                depth[child] = depth[node] + 1
                root_distance[child] = root_distance[node] + distance[child]

                euler_tour[tour_pos] = child
                euler_depth[tour_pos] = depth[child]
                first_occurrence[child] = tour_pos
                tour_pos += 1

                stack_node.append(child)
                stack_next.append(0)
            else:
                stack_node.pop()
                stack_next.pop()
                if stack_node:
                    back = stack_node[-1]
                    euler_tour[tour_pos] = back
                    euler_depth[tour_pos] = depth[back]
                    tour_pos += 1

        # Sparse table
        LOG = int(math.floor(math.log2(tour_len))) + 1 if tour_len > 1 else 1
        sparse_table = np.zeros((LOG, tour_len), dtype=np.int32)
        sparse_table[0] = np.arange(tour_len, dtype=np.int32)

        for k in range(1, LOG):
            half = 1 << (k - 1)
            valid = tour_len - half
            left_pos = sparse_table[k - 1, :valid]
            right_pos = sparse_table[k - 1, half:tour_len]
            sparse_table[k, :valid] = np.where(
                euler_depth[right_pos] < euler_depth[left_pos], right_pos, left_pos
            )
            sparse_table[k, valid:] = sparse_table[k - 1, valid:]

        # floor(log2) lookup table
        log2_table = np.zeros(tour_len + 1, dtype=np.int32)
        for i in range(2, tour_len + 1):
            log2_table[i] = log2_table[i >> 1] + 1

        self.depth = depth
        self.root_distance = root_distance
        self.euler_tour = euler_tour
        self.euler_depth = euler_depth
        self.first_occurrence = first_occurrence
        self.sparse_table = sparse_table
        self.log2_table = log2_table

    # ================================================================== #
    # Private static methods (pure computational kernels)                  #
    # ================================================================== #

    @staticmethod
    def _rmq(l: int, r: int, sparse_table, euler_depth, log2_table) -> int:
        """
        **Private static.**  O(1) Range Minimum Query on ``euler_depth``.

        Returns the tour index in ``[l, r]`` (caller ensures l ≤ r) with the
        smallest depth, left-biased on ties.  ``_cpu_kernels._rmq_nb`` is
        the compiled twin of this function.
        """
        k = int(log2_table[r - l + 1])
        li = int(sparse_table[k, l])
        ri = int(sparse_table[k, r - (1 << k) + 1])
        if int(euler_depth[ri]) < int(euler_depth[li]):
            return ri
        return li
