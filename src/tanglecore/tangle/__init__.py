"""Tangle ordering engine: adjacency index, oracles, comparator and heads."""

from tanglecore.tangle.events import TangleEvent, TangleEventLogger
from tanglecore.tangle.index import AdjacencyIndex, build_index
from tanglecore.tangle.sorter import TangleSorter, sort_tangle

__all__ = [
    "AdjacencyIndex",
    "build_index",
    "TangleSorter",
    "sort_tangle",
    "TangleEvent",
    "TangleEventLogger",
]
