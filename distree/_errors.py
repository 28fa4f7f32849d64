"""
_errors.py
==========
Exception types raised by distree.

Input problems surface as ``ParseError`` (a ``ValueError``), internal misuse
of node IDs as ``ContractViolation`` (an ``IndexError``).  I/O failures are
left as the builtin ``OSError``.
"""


class DistreeError(Exception):
    """Base class for all distree errors."""


class ParseError(DistreeError, ValueError):
    """
    Malformed NEWICK input.

    Attributes
    ----------
    message : str   Description of the problem.
    offset  : int   Character offset into the input string where it was found.
    """

    def __init__(self, message: str, offset: int) -> None:
        self.message = message
        self.offset = offset
        super().__init__(f"{message} at offset {offset}")


class ContractViolation(DistreeError, IndexError):
    """A node ID outside the tree was passed to an index query."""
