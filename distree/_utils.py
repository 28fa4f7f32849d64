"""
_utils.py
=========
Small I/O helpers shared by the library entry points and the CLI.
"""

import sys
from contextlib import contextmanager
from typing import Optional

from distree._errors import ParseError


def read_newick(path) -> str:
    """
    Return the text of the NEWICK file at *path*.

    Raises
    ------
    OSError      if the file cannot be opened or read.
    ParseError   if the file is not valid UTF-8; the offset is in bytes.
    """
    with open(path, "rb") as fh:
        data = fh.read()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"Invalid UTF-8 byte 0x{data[e.start]:02x}", e.start) from e


@contextmanager
def open_sink(path: Optional[str] = None):
    """
    Yield a text stream for matrix output.

    With *path* None or '-', yields ``sys.stdout`` (left open on exit).
    Otherwise opens *path* for writing with Unix line endings and closes it
    on exit.

    Examples
    --------
    >>> with open_sink("matrix.tsv") as sink:
    ...     matrix.write(sink)
    """
    if path is None or path == "-":
        yield sys.stdout
        sys.stdout.flush()
        return

    with open(path, "w", encoding="utf-8", newline="\n") as fh:
        yield fh
