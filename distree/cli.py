"""
cli.py
======
Command-line entry point: ``distree PHYLOGENY [options]``.

Extracts a distance matrix from a NEWICK phylogeny and writes it as TSV to
stdout or to ``--output``.  The tree is parsed and indexed before the
output file is opened, so a malformed tree never leaves a partial file.

Exit status: 0 on success, 1 on a parse or I/O error, 2 on a usage error.
"""

import argparse
import logging
import sys

from distree import __version__
from distree._errors import ParseError
from distree._tree import Tree
from distree._distance import select_mode
from distree._matrix import DEFAULT_PRECISION, DistanceMatrix
from distree._utils import open_sink, read_newick


logger = logging.getLogger(__name__)


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def _non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative, got {value}")
    return value


def get_options(argv=None):
    description = "Extract a distance matrix from a phylogeny (parallel, low-memory)"
    parser = argparse.ArgumentParser(prog="distree", description=description)

    parser.add_argument("phylogeny", help="Tree file")

    parser.add_argument(
        "--format",
        default="newick",
        choices=["newick"],
        help="Format of tree file [Default: newick]",
    )
    parser.add_argument(
        "--midpoint",
        action="store_true",
        default=False,
        help="Midpoint root the tree before calculating distances.",
    )
    parser.add_argument(
        "--lmm",
        "--calc-C",
        action="store_true",
        default=False,
        help="Produce var-covar matrix C (depth of the MRCA in branch "
        "lengths). Takes precedence over --topology.",
    )
    parser.add_argument(
        "--topology",
        action="store_true",
        default=False,
        help="Ignore branch lengths, and only use topological distances",
    )
    parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        default=None,
        help="Write the TSV matrix to FILE [Default: stdout]",
    )
    parser.add_argument(
        "-t",
        "--threads",
        type=_positive_int,
        default=None,
        help="Worker threads [Default: all available cores]",
    )
    parser.add_argument(
        "--precision",
        type=_non_negative_int,
        default=DEFAULT_PRECISION,
        help=f"Decimals for branch-length values [Default: {DEFAULT_PRECISION}]",
    )
    parser.add_argument(
        "--backend",
        default="best",
        choices=["best", "python", "cpu-parallel"],
        help="Row computation backend [Default: best]",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for debug output)",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=False,
        help="Only log errors",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    return parser.parse_args(argv)


def _configure_logging(options) -> None:
    if options.quiet:
        level = logging.ERROR
    elif options.verbose >= 2:
        level = logging.DEBUG
    elif options.verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv=None) -> int:
    options = get_options(argv)
    _configure_logging(options)

    mode = select_mode(lmm=options.lmm, topology=options.topology)
    if options.lmm and options.topology:
        logger.warning("--lmm given together with --topology; using --lmm")

    try:
        tree = Tree(read_newick(options.phylogeny))
    except ParseError as e:
        logger.error("Could not parse '%s': %s", options.phylogeny, e)
        return 1
    except OSError as e:
        logger.error("Could not read '%s': %s", options.phylogeny, e)
        return 1

    if options.midpoint:
        tree.reroot_at_midpoint()

    matrix = DistanceMatrix(tree, mode)

    destination = options.output or "<stdout>"
    try:
        with open_sink(options.output) as sink:
            matrix.write(
                sink,
                precision=options.precision,
                backend=options.backend,
                n_workers=options.threads,
            )
    except OSError as e:
        logger.error("Could not write '%s': %s", destination, e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
