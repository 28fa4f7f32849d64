"""
_tree.py
========
A single phylogenetic tree held as a node arena: parallel numpy arrays for
per-node scalars plus a per-node list of child IDs.

Public API
----------
  Tree(newick_string)
      Constructor.  Parses the NEWICK string into the arena and registers
      the leaves in label order.

  Tree.from_file(path)
  .reroot_at_midpoint()
  .diameter()
  .lca_index()
  .lca(u, v)
  .pair_distance(u, v, mode="patristic")
  .is_leaf(node)

Arena notes
-----------
* Nodes are dense integer IDs.  ``parent``, ``distance`` and ``names`` are
  indexed by node ID; ``children[node]`` is the ordered child list.
* The root has ``parent == -1`` and ``distance == -1.0``.
* A leaf is a childless node with a non-empty name.  Leaf labels are unique
  and sorted with plain ``str`` ordering (code-point order) for output.
* The arena is mutated at most once, by midpoint rerooting.  Anything
  derived from the topology (leaf registry, LCA index, name index) is
  rebuilt after that mutation via ``_refresh``.
"""

import logging
import numpy as np

from distree._newick import parse_newick
from distree._lca import LcaIndex
from distree._midpoint import find_diameter, midpoint_root
from distree._distance import pair_distance
from distree._errors import ContractViolation
from distree._logging import log_tree_statistics
from distree._utils import read_newick


logger = logging.getLogger(__name__)


class Tree:
    """
    A rooted phylogenetic tree with any number of children per node.

    Attributes
    ----------
    n_nodes  : int           Total number of nodes in the arena.
    n_leaves : int           Number of labelled leaves (taxa).
    root     : int           Node ID of the root.
    names    : list[str]     Label per node; '' where absent.

    Arrays: arena
    -------------
    parent   : int32  [n_nodes]   Parent ID; -1 for root.
    distance : float64[n_nodes]   Branch length to parent; -1.0 for root.
    children : list[list[int]]    Child IDs per node, left-to-right.

    Arrays: leaf registry
    ---------------------
    leaves        : int32[n_leaves]   Leaf IDs in arena order.
    sorted_leaves : int32[n_leaves]   Leaf IDs in ascending label order.
    leaf_position : int32[n_nodes]    Output position of each leaf; -1 otherwise.
    labels        : list[str]         Leaf labels in ascending order.
    """

    def __init__(self, newick_string: str) -> None:
        """
        Parse *newick_string* and build the leaf registry.

        Raises
        ------
        ParseError   if the string is not a valid single NEWICK tree.
        """
        names, parent, distance, children = parse_newick(newick_string)

        self.names = names
        self.parent = parent
        self.distance = distance
        self.children = children
        self.root: int = 0  # parse_newick invariant

        self._refresh()

        n_multifurcating = sum(1 for kids in self.children if len(kids) > 2)
        n_unary = sum(1 for kids in self.children if len(kids) == 1)
        log_tree_statistics(self.n_nodes, self.n_leaves, n_multifurcating, n_unary)

    @classmethod
    def from_file(cls, path) -> "Tree":
        """Read a NEWICK file and construct a Tree from its contents."""
        return cls(read_newick(path))

    def __repr__(self) -> str:
        return (
            f"Tree(n_leaves={self.n_leaves}, n_nodes={self.n_nodes}, "
            f"root={self.root})"
        )

    # ================================================================== #
    # Structure                                                            #
    # ================================================================== #

    def is_leaf(self, node) -> bool:
        node_id = self._resolve_node(node)
        return not self.children[node_id] and self.names[node_id] != ""

    def diameter(self):
        """
        Return ``(u, v, length)``: the endpoints and weighted length of a
        longest leaf-to-leaf path.
        """
        u, v, length, _ = find_diameter(self)
        return u, v, length

    def reroot_at_midpoint(self) -> int:
        """
        Move the root to the midpoint of the tree's diameter, in place.

        Any previously built LCA index is discarded; the next call to
        ``lca_index()`` builds a fresh one over the new topology.

        Returns
        -------
        int   Node ID of the new root.
        """
        new_root = midpoint_root(self)
        self._refresh()
        return new_root

    # ================================================================== #
    # Queries                                                              #
    # ================================================================== #

    def lca_index(self) -> LcaIndex:
        """Return the LCA index for the current topology, building it once."""
        if self._lca_index is None:
            self._lca_index = LcaIndex(self)
        return self._lca_index

    def lca(self, u, v) -> int:
        """
        Return the node ID of the Lowest Common Ancestor of *u* and *v*.

        Parameters
        ----------
        u, v : int | str   Node IDs or leaf labels.
        """
        return self.lca_index().lca(self._resolve_node(u), self._resolve_node(v))

    def pair_distance(self, u, v, mode: str = "patristic") -> float:
        """
        Distance between *u* and *v* under *mode* ('patristic',
        'topological' or 'lmm').  Accepts node IDs or leaf labels.
        """
        return pair_distance(
            self.lca_index(), self._resolve_node(u), self._resolve_node(v), mode
        )

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    def _refresh(self) -> None:
        """
        **Private.**  Rebuild everything derived from the arena topology.

        Populates
        ---------
        self.n_nodes, self.n_leaves, self.leaves, self.sorted_leaves,
        self.leaf_position, self.labels
        """
        n_nodes = len(self.names)
        names = self.names
        children = self.children

        leaves = [
            node for node in range(n_nodes) if not children[node] and names[node]
        ]
        order = sorted(leaves, key=lambda node: names[node])

        leaf_position = np.full(n_nodes, -1, dtype=np.int32)
        for pos, node in enumerate(order):
            leaf_position[node] = pos

        self.n_nodes: int = n_nodes
        self.n_leaves: int = len(leaves)
        self.leaves = np.array(leaves, dtype=np.int32)
        self.sorted_leaves = np.array(order, dtype=np.int32)
        self.leaf_position = leaf_position
        self.labels = [names[node] for node in order]

        self._lca_index = None
        self._name_index = None

    def _resolve_node(self, node) -> int:
        """
        **Private.**  Return the integer node ID for *node*.

        Integers are range-checked; strings are looked up among leaf labels.

        Raises
        ------
        ContractViolation   if *node* is an integer outside the arena.
        KeyError            if *node* is a string that is not a leaf label.
        """
        if isinstance(node, (int, np.integer)):
            if not 0 <= node < self.n_nodes:
                raise ContractViolation(
                    f"Node ID {node} outside tree of {self.n_nodes} nodes."
                )
            return int(node)
        if self._name_index is None:
            self._name_index = {self.names[n]: int(n) for n in self.leaves}
        if node not in self._name_index:
            raise KeyError(f"No leaf with label '{node}' found in tree.")
        return self._name_index[node]
