"""
_newick.py
==========
Iterative NEWICK parser producing the flat node arena used by ``Tree``.

Grammar
-------
  subtree := '(' subtree (',' subtree)* ')' [label] [':' length]
           | label [':' length]
  tree    := subtree ';'

Accepted beyond the bare grammar: whitespace between tokens, bracketed
comments ``[...]`` (skipped wherever whitespace is allowed), single-quoted
labels with ``''`` as an escaped quote, labels on internal nodes (kept in
``names`` but never treated as taxa) and nodes with any number of children.
A missing ``:length`` means a branch of length 0.0.

Node-ID conventions
-------------------
IDs are assigned in pre-order as nodes are opened, so the root is always
node 0 in a freshly parsed tree.  Children keep their left-to-right order
from the NEWICK string.

Every rejection raises ``ParseError`` with the character offset of the
offending token.
"""

import math
import numpy as np

from distree._errors import ParseError


_WHITESPACE = " \t\r\n"
_LABEL_STOP = ":,();[" + _WHITESPACE
_LENGTH_STOP = ",();[" + _WHITESPACE
_FORBIDDEN_IN_LABEL = "\t\n\r"


def parse_newick(newick_string: str):
    """
    Parse *newick_string* into arena arrays.

    Parameters
    ----------
    newick_string : str
        Exactly one NEWICK tree, terminated by ';'.

    Returns
    -------
    names    : list[str]          Label per node; '' when absent.
    parent   : int32  [n_nodes]   Parent ID; -1 for the root.
    distance : float64[n_nodes]   Branch length to parent; -1.0 for the root.
    children : list[list[int]]    Ordered child IDs per node.

    Raises
    ------
    ParseError
        Unbalanced parentheses, missing ';', invalid branch length, empty,
        duplicate or tab/newline-containing leaf label, fewer than two
        leaves, or any other unexpected character.
    """
    s = newick_string
    n_chars = len(s)

    names = []
    parents = []
    lengths = []
    children = []
    leaf_ids = {}

    stack = []  # open internal nodes, innermost last
    expect_node = True
    terminated = False

    i = _skip(s, 0)
    while i < n_chars:
        c = s[i]

        if c == "(":
            if not expect_node:
                raise ParseError("Unexpected '('", i)
            node_id = _new_node(names, parents, lengths, children, stack)
            stack.append(node_id)
            i = _skip(s, i + 1)
            continue

        if c == ",":
            if expect_node:
                raise ParseError("Empty leaf label", i)
            if not stack:
                raise ParseError("Unexpected ',' outside parentheses", i)
            expect_node = True
            i = _skip(s, i + 1)
            continue

        if c == ")":
            if expect_node:
                raise ParseError("Empty leaf label", i)
            if not stack:
                raise ParseError("Unbalanced parentheses: unmatched ')'", i)
            node_id = stack.pop()
            label, i = _read_label(s, _skip(s, i + 1))
            names[node_id] = label
            i = _read_length(s, i, node_id, parents, lengths)
            expect_node = False
            continue

        if c == ";":
            if stack:
                raise ParseError(
                    f"Unbalanced parentheses: {len(stack)} unclosed '('", i
                )
            if expect_node:
                raise ParseError("Empty tree", i)
            terminated = True
            i = _skip(s, i + 1)
            if i < n_chars:
                raise ParseError("Unexpected text after ';'", i)
            break

        # Leaf
        if not expect_node:
            raise ParseError(f"Unexpected character {c!r}", i)
        start = i
        label, i = _read_label(s, i)
        if label == "":
            raise ParseError("Empty leaf label", start)
        for ch in _FORBIDDEN_IN_LABEL:
            if ch in label:
                raise ParseError(
                    f"Leaf label {label!r} contains a tab or newline", start
                )
        if label in leaf_ids:
            raise ParseError(f"Duplicate leaf label {label!r}", start)

        node_id = _new_node(names, parents, lengths, children, stack)
        names[node_id] = label
        leaf_ids[label] = node_id
        i = _read_length(s, i, node_id, parents, lengths)
        expect_node = False

    if not terminated:
        if stack:
            raise ParseError(
                f"Unbalanced parentheses: {len(stack)} unclosed '('", n_chars
            )
        raise ParseError("Missing terminating ';'", n_chars)

    if len(leaf_ids) < 2:
        raise ParseError(
            f"Tree has {len(leaf_ids)} leaf label(s); at least two are required",
            n_chars,
        )

    parent = np.array(parents, dtype=np.int32)
    distance = np.array(lengths, dtype=np.float64)
    return names, parent, distance, children


def _new_node(names, parents, lengths, children, stack) -> int:
    """**Private.**  Append a node under the innermost open parenthesis."""
    node_id = len(names)
    names.append("")
    children.append([])
    if stack:
        p = stack[-1]
        parents.append(p)
        lengths.append(0.0)
        children[p].append(node_id)
    else:
        parents.append(-1)
        lengths.append(-1.0)
    return node_id


def _skip(s: str, i: int) -> int:
    """**Private.**  Advance past whitespace and ``[...]`` comments."""
    n = len(s)
    while i < n:
        c = s[i]
        if c in _WHITESPACE:
            i += 1
        elif c == "[":
            close = s.find("]", i + 1)
            if close == -1:
                raise ParseError("Unterminated comment", i)
            i = close + 1
        else:
            break
    return i


def _read_label(s: str, i: int):
    """
    **Private.**  Read an optional (possibly quoted) label starting at *i*.

    Returns ``(label, j)`` where *j* is the next significant position.
    An absent label is returned as ''.
    """
    n = len(s)
    if i < n and s[i] == "'":
        buf = []
        k = i + 1
        while True:
            if k >= n:
                raise ParseError("Unterminated quoted label", i)
            c = s[k]
            if c == "'":
                if k + 1 < n and s[k + 1] == "'":
                    buf.append("'")
                    k += 2
                    continue
                k += 1
                break
            buf.append(c)
            k += 1
        return "".join(buf), _skip(s, k)

    k = i
    while k < n and s[k] not in _LABEL_STOP:
        k += 1
    return s[i:k], _skip(s, k)


def _read_length(s: str, i: int, node_id: int, parents, lengths) -> int:
    """
    **Private.**  Read an optional ``:length`` suffix for *node_id*.

    The root keeps its -1.0 sentinel even when the input gives it a length;
    the value is still validated.
    """
    n = len(s)
    if i >= n or s[i] != ":":
        return i

    j = _skip(s, i + 1)
    k = j
    while k < n and s[k] not in _LENGTH_STOP:
        k += 1
    text = s[j:k]
    if text == "":
        raise ParseError("Missing branch length after ':'", j)
    try:
        value = float(text)
    except ValueError:
        raise ParseError(f"Invalid branch length {text!r}", j) from None
    if not math.isfinite(value) or value < 0.0:
        raise ParseError(
            f"Branch length must be finite and non-negative, got {text!r}", j
        )

    if parents[node_id] != -1:
        # -0.0 would print as '-0.000' once it reaches a root distance
        lengths[node_id] = value if value != 0.0 else 0.0
    return _skip(s, k)
