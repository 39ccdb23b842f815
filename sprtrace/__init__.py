"""
sprtrace
========

Replay and verify subtree-pruning-and-regrafting (SPR) search traces.

Given the trace a tree search writes while it works, *sprtrace* rebuilds
every intermediate topology the search claims to have visited, checks that
each tip-name set in the trace is a real edge of the tree, and writes the
topologies to disk for inspection.

Main Classes
------------
ReplayDriver : Walks a trace through its tree / subtree / insertion levels
TraceReader : Line scanner producing typed trace records
Tree : Unrooted tree parsed from NEWICK into a NodePool
NodePool : numpy-backed node arena with mark-and-sweep reclamation
SplitIndex : Canonical split -> edge lookup for one tree
TopologyEditor : Scoped, always-reverting prune and splice

Functions
---------
replay_file : Replay a trace file
compute_splits : Index every edge of a tree by its split
resolve : Find the edge that separates a set of tips
write_newick : Serialise a tree or clade from a NodePool

Context Managers
----------------
quiet : Suppress sprtrace logging during operations
suppress_logger : Suppress a specific logger

Examples
--------
Replay a trace from the command line::

    $ sprtrace search.trace

or from Python:

>>> from sprtrace import replay_file
>>> stats = replay_file('search.trace', output_dir='replay')
>>> stats.trees, stats.subtrees, stats.insertions
(1, 1, 1)

Look up an edge by the tips on one side of it:

>>> from sprtrace import Tree, compute_splits
>>> tree = Tree('(A,B,(C,D));')
>>> index, names = compute_splits(tree)
>>> len(index), names
(5, ['A', 'B', 'C', 'D'])
>>> edge = index.resolve(['C', 'D'])
"""

__version__ = "0.1.0"
__license__ = "MIT"

from ._errors import (
    ReplayError,
    MalformedTreeError,
    EmptyTreeError,
    UnknownTipError,
    SplitNotFoundError,
    StateMismatchError,
    MalformedRecordError,
    EndOfStreamError,
    ConsistencyError,
)
from ._pool import NodePool
from ._tree import Tree, write_newick
from ._splits import Edge, SplitIndex, compute_splits, resolve
from ._trace import (
    RecordKind,
    TraceRecord,
    TreeRecord,
    SubtreeRecord,
    InsertionRecord,
    EndRecord,
    TraceReader,
)
from ._editor import TopologyEditor, PruneTransaction, SpliceTransaction
from ._replay import (
    ReplayDriver,
    ReplayStats,
    replay_file,
    DEFAULT_OUTPUT_DIR,
    ERROR_TREE_NAME,
)
from ._context import quiet, suppress_logger
from ._utils import format_newick

__all__ = [
    # Errors
    "ReplayError",
    "MalformedTreeError",
    "EmptyTreeError",
    "UnknownTipError",
    "SplitNotFoundError",
    "StateMismatchError",
    "MalformedRecordError",
    "EndOfStreamError",
    "ConsistencyError",
    # Trees
    "NodePool",
    "Tree",
    "write_newick",
    "format_newick",
    # Splits
    "Edge",
    "SplitIndex",
    "compute_splits",
    "resolve",
    # Trace
    "RecordKind",
    "TraceRecord",
    "TreeRecord",
    "SubtreeRecord",
    "InsertionRecord",
    "EndRecord",
    "TraceReader",
    # Editing
    "TopologyEditor",
    "PruneTransaction",
    "SpliceTransaction",
    # Replay
    "ReplayDriver",
    "ReplayStats",
    "replay_file",
    "DEFAULT_OUTPUT_DIR",
    "ERROR_TREE_NAME",
    # Context managers
    "quiet",
    "suppress_logger",
    # Version info
    "__version__",
]
