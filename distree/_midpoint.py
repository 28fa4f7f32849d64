"""
_midpoint.py
============
Midpoint rerooting of a ``Tree`` arena, in place.

The diameter is found with the usual two sweeps (first leaf → farthest leaf
u, then u → farthest leaf v).  The u–v path is walked until the running
length reaches half the diameter; the root moves onto the node found there,
or onto a new node that splits the edge containing the midpoint.  Parent
links along the old-root → new-root path are then reversed.

The tree is treated as undirected during the sweeps: neighbours of a node
are its children plus its parent, and the length of the edge (p, c) is
always ``distance[c]``.
"""

import logging
import numpy as np

from distree._logging import log_midpoint_rooting


logger = logging.getLogger(__name__)


def farthest_leaf(tree, start: int):
    """
    Return ``(leaf, length, trace)`` for the leaf farthest from *start*.

    *trace[n]* is the neighbour through which node *n* was reached (-1 for
    *start*), so the path from any node back to *start* can be rebuilt.
    Ties keep the first leaf found.
    """
    parent = tree.parent
    distance = tree.distance
    children = tree.children
    names = tree.names
    n_nodes = len(children)

    trace = np.full(n_nodes, -1, dtype=np.int32)
    visited = np.zeros(n_nodes, dtype=np.bool_)
    visited[start] = True

    best_leaf = start
    best_length = 0.0
    stack = [(start, 0.0)]
    while stack:
        node, length = stack.pop()
        if not children[node] and names[node] and length > best_length:
            best_leaf = node
            best_length = length

        p = int(parent[node])
        if p != -1 and not visited[p]:
            visited[p] = True
            trace[p] = node
            stack.append((p, length + float(distance[node])))
        for child in children[node]:
            if not visited[child]:
                visited[child] = True
                trace[child] = node
                stack.append((child, length + float(distance[child])))

    return best_leaf, best_length, trace


def find_diameter(tree):
    """
    Return ``(u, v, length, path)`` for a diameter of *tree*.

    *path* lists node IDs from u to v inclusive.
    """
    start = int(tree.leaves[0])
    u, _, _ = farthest_leaf(tree, start)
    v, length, trace = farthest_leaf(tree, u)

    path = [v]
    while path[-1] != u:
        path.append(int(trace[path[-1]]))
    path.reverse()
    return u, v, length, path


def midpoint_root(tree) -> int:
    """
    Reroot *tree* at the midpoint of its diameter.

    Mutates ``tree.parent``, ``tree.distance``, ``tree.children``,
    ``tree.names`` and ``tree.root``; the caller is responsible for
    rebuilding anything derived from them.

    Returns
    -------
    int   Node ID of the new root.
    """
    u, v, length, path = find_diameter(tree)
    half = length / 2.0

    if length == 0.0:
        logger.warning(
            "Tree diameter is zero; midpoint rooting places the root next to "
            "leaf '%s'.",
            tree.names[u],
        )

    if len(path) == 1:
        # every leaf sits at distance 0 from u; start from u's own edge
        path.append(int(tree.parent[u]))

    accum = 0.0
    new_root = -1
    split = False
    for k in range(len(path) - 1):
        a = path[k]
        b = path[k + 1]
        child = b if int(tree.parent[b]) == a else a
        edge_len = float(tree.distance[child])

        if accum + edge_len >= half:
            offset = min(half - accum, edge_len)  # measured from a towards b
            if offset == 0.0 and tree.children[a]:
                new_root = a
            elif offset == edge_len and tree.children[b]:
                new_root = b
            else:
                new_root = _split_edge(tree, a, b, offset)
                split = True
            break
        accum += edge_len

    _reorient(tree, new_root)
    log_midpoint_rooting(
        tree.names[u], tree.names[v], length, new_root, split
    )
    return new_root


def _split_edge(tree, a: int, b: int, offset: float) -> int:
    """
    **Private.**  Insert a new node on the edge a–b, *offset* away from a.

    The new node takes the child's place in the parent's child list, so the
    left-to-right order of the parent's other children is kept.
    """
    if int(tree.parent[b]) == a:
        p, c = a, b
        to_parent = offset
    else:
        p, c = b, a
        to_parent = float(tree.distance[c]) - offset
    to_child = float(tree.distance[c]) - to_parent

    m = len(tree.children)
    tree.parent = np.append(tree.parent, np.int32(p)).astype(np.int32)
    tree.distance = np.append(tree.distance, to_parent)
    tree.names.append("")
    tree.children.append([c])

    kids = tree.children[p]
    kids[kids.index(c)] = m
    tree.parent[c] = m
    tree.distance[c] = to_child
    return m


def _reorient(tree, new_root: int) -> None:
    """
    **Private.**  Reverse parent links on the path from *new_root* up to
    the current root, making *new_root* parentless.

    Each former parent is appended after the existing children of the node
    it now hangs from.
    """
    parent = tree.parent
    distance = tree.distance
    children = tree.children

    node = new_root
    new_parent = -1
    new_length = -1.0
    while node != -1:
        old_parent = int(parent[node])
        old_length = float(distance[node])

        parent[node] = new_parent
        distance[node] = new_length
        if old_parent != -1:
            children[old_parent].remove(node)
            children[node].append(old_parent)

        new_parent = node
        new_length = old_length
        node = old_parent

    tree.root = new_root
