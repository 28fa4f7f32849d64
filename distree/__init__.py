"""
distree
=======

Low-memory, parallel extraction of pairwise leaf distance matrices from
NEWICK phylogenies.

A tree is parsed into a flat node arena, optionally rerooted at the midpoint
of its diameter, and indexed once for O(1) lowest-common-ancestor queries.
Matrix rows are then produced in chunks on numba's thread pool and streamed
as TSV in label order, so the full N×N matrix is never held in memory.

Distance modes
--------------
patristic   : sum of branch lengths between two leaves
topological : number of edges between two leaves
lmm         : weighted depth of the two leaves' LCA (var-covar matrix C)

Core types
----------
Tree : Phylogenetic tree with NEWICK parsing and midpoint rerooting
LcaIndex : Euler-tour + sparse-table LCA index over a Tree
DistanceMatrix : Row-streaming distance matrix over a Tree's leaves

Functions
---------
compute : Parse, optionally reroot, and stream a TSV matrix to a sink
parse_newick : Parse a NEWICK string into arena arrays
select_mode : Pick a distance mode from --lmm / --topology style flags

Temporary settings (with-blocks)
--------------------------------
quiet : Hide all distree log output below CRITICAL
suppress_logger : Raise the threshold of one named logger
suppress_warnings : Ignore one warning category, or all of them
use_backend : Compute rows on a fixed backend
use_workers : Compute rows on a fixed number of threads
silent_benchmark : quiet, warning-free and pinned to a backend for timing

Runtime checks
--------------
get_available_backends : Backends this interpreter can run
get_backend_info : Dict of backend and worker-pool state
check_numba_available : Whether the compiled kernel can be used

Examples
--------
Basic usage:

>>> import io
>>> from distree import compute
>>> buf = io.StringIO()
>>> compute("(A:1,(B:2,C:3):1);", sink=buf)
3
>>> buf.getvalue().splitlines()[1].split()
['A', '0.000', '4.000', '5.000']

Working with the tree directly:

>>> from distree import Tree, DistanceMatrix, quiet
>>> with quiet():
...     tree = Tree.from_file("tree.nwk")
...     tree.reroot_at_midpoint()
...     matrix = DistanceMatrix(tree, mode="lmm")
...     with open("C.tsv", "w") as fh:
...         matrix.write(fh, n_workers=4)
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Core types
from ._tree import Tree
from ._lca import LcaIndex
from ._matrix import DistanceMatrix, compute

# Parsing and distance modes
from ._newick import parse_newick
from ._distance import (
    PATRISTIC,
    TOPOLOGICAL,
    LMM,
    DISTANCE_MODES,
    select_mode,
)

# Errors
from ._errors import DistreeError, ParseError, ContractViolation

# Temporary settings
from ._context import (
    quiet,
    suppress_logger,
    suppress_warnings,
    use_backend,
    use_workers,
    silent_benchmark,
)

# Runtime checks
from ._backend import (
    check_numba_available,
    get_available_backends,
    get_backend_info,
)

# Public API
__all__ = [
    # Core types
    "Tree",
    "LcaIndex",
    "DistanceMatrix",
    "compute",
    # Parsing and modes
    "parse_newick",
    "select_mode",
    "PATRISTIC",
    "TOPOLOGICAL",
    "LMM",
    "DISTANCE_MODES",
    # Errors
    "DistreeError",
    "ParseError",
    "ContractViolation",
    # Temporary settings
    "quiet",
    "suppress_logger",
    "suppress_warnings",
    "use_backend",
    "use_workers",
    "silent_benchmark",
    # Runtime checks
    "check_numba_available",
    "get_available_backends",
    "get_backend_info",
    "__version__",
]
