"""
tanglecore - identity and causal ordering primitives for tangles.

A tangle is a directed acyclic graph of messages linked by "previous"
references and rooted at a single origin message. tanglecore orders such a
message set so that every message follows everything it causally depends
on, and reports the current heads (tips) of the graph.

Example usage:
    from tanglecore import TangleSorter

    sorter = TangleSorter(messages, "post")
    for msg in sorter.sort():
        print(msg.identity().short_sigil(), sorter.hops_to_root(msg.identity()))
    print(sorter.heads())
"""

__version__ = "0.1.0"
__all__ = [
    "MessageRef",
    "parse_message_ref",
    "KeyedMessage",
    "Post",
    "TanglePoint",
    "TangledPost",
    "AdjacencyIndex",
    "build_index",
    "TangleSorter",
    "sort_tangle",
    "TangleError",
    "MissingRootError",
    "MultipleRootsError",
    "MalformedTangleError",
    "UnknownReferenceError",
    "TangleSizeError",
    "InvalidRefError",
    "__version__",
]

from tanglecore.errors import (
    InvalidRefError,
    MalformedTangleError,
    MissingRootError,
    MultipleRootsError,
    TangleError,
    TangleSizeError,
    UnknownReferenceError,
)
from tanglecore.refs import MessageRef, parse_message_ref
from tanglecore.messages import KeyedMessage, Post, TangledPost, TanglePoint


# Lazy imports keep opentelemetry out of plain ref/model use
def __getattr__(name: str):
    if name in ("AdjacencyIndex", "build_index"):
        from tanglecore.tangle import index
        return getattr(index, name)
    if name in ("TangleSorter", "sort_tangle"):
        from tanglecore.tangle import sorter
        return getattr(sorter, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
