"""
Causal ordering of a tangle.

TangleSorter takes an unordered set of messages, builds the adjacency index
and orders the messages so that every message comes after everything it
(transitively) points to. Messages that are not causally related are ranked
by their hops to root, the longest path back to the root message. Equal-depth
concurrent messages are ordered by ref byte order (``tie_break="identity"``,
the default) or left in input order (``tie_break="input"``).

Both oracles are memoized per sort and walk the graph with an explicit
stack, so wide merge patterns stay polynomial and deep chains do not hit the
interpreter recursion limit. Reachability searches are pruned by depth but
not indexed; the design targets tangles of tens to a few thousand messages,
not huge DAGs.

Usage:
    from tanglecore.tangle.sorter import TangleSorter, sort_tangle

    sorter = TangleSorter(messages, "post")
    ordered = sorter.sort()
    tips = sorter.heads()

    # or in one go
    ordered, tips = sort_tangle(messages, "post")
"""

from __future__ import annotations

import functools
import logging
from typing import Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

from opentelemetry import trace
from opentelemetry.trace import SpanKind

from tanglecore.config import get_config
from tanglecore.errors import MalformedTangleError, TangleError, TangleSizeError, UnknownReferenceError
from tanglecore.messages import TangledPost
from tanglecore.refs import MessageRef
from tanglecore.tangle.events import (
    HEADS_COMPUTED,
    INDEX_BUILT,
    SORT_COMPLETED,
    TANGLE_FAILED,
    EventHook,
    TangleEvent,
)
from tanglecore.tangle.index import AdjacencyIndex, build_index

__all__ = ["TIE_BREAK_POLICIES", "TangleSorter", "sort_tangle"]

logger = logging.getLogger(__name__)

TIE_BREAK_POLICIES = ("identity", "input")

P = TypeVar("P", bound=TangledPost)


class TangleSorter(Generic[P]):
    """
    Sorter state for one message set.

    Owns the items, their adjacency index and the memo tables of both
    oracles. Create one per sort; an instance must not be shared between
    concurrent callers.
    """

    def __init__(
        self,
        items: Sequence[P],
        tangle_name: Optional[str] = None,
        tie_break: Optional[str] = None,
        strict_root: Optional[bool] = None,
        max_messages: Optional[int] = None,
        on_event: Optional[EventHook] = None,
    ) -> None:
        """
        Build the adjacency index for ``items``.

        Args:
            items: Messages exposing ``identity()`` and ``tangle(name)``
            tangle_name: Tangle to order (config ``default_tangle`` if None)
            tie_break: ``identity`` or ``input`` (config ``tie_break`` if None)
            strict_root: See ``build_index`` (config ``strict_root`` if None)
            max_messages: Input-size bound (config ``max_messages`` if None)
            on_event: Optional observability hook receiving TangleEvents

        Raises:
            ValueError: Unknown tie-break policy
            TangleSizeError: More items than ``max_messages``
            TangleError: Any index construction failure
        """
        config = get_config()
        self.tangle = config.default_tangle if tangle_name is None else tangle_name
        self.tie_break = tie_break or config.tie_break
        if self.tie_break not in TIE_BREAK_POLICIES:
            raise ValueError(
                f"unknown tie-break policy {self.tie_break!r}, expected one of {TIE_BREAK_POLICIES}"
            )

        self.items: List[P] = list(items)
        self._on_event = on_event
        self._reach: Dict[Tuple[MessageRef, MessageRef], bool] = {}
        self._hops: Dict[MessageRef, int] = {}

        limit = config.max_messages if max_messages is None else max_messages
        try:
            if len(self.items) > limit:
                raise TangleSizeError(len(self.items), limit, tangle=self.tangle)
            self.index: AdjacencyIndex = build_index(
                self.items,
                self.tangle,
                strict_root=config.strict_root if strict_root is None else strict_root,
            )
        except TangleError as e:
            self._emit(TANGLE_FAILED, e.to_failure_event())
            raise

        self._hops[self.index.root] = 0
        self._emit(
            INDEX_BUILT,
            {
                "message_count": len(self.index),
                "edge_count": self.index.edge_count(),
                "root": self.index.root.ref(),
            },
        )

    def __len__(self) -> int:
        return len(self.items)

    @property
    def root(self) -> MessageRef:
        return self.index.root

    def _emit(self, name: str, attributes: Dict) -> None:
        if self._on_event is not None:
            self._on_event(TangleEvent(name=name, tangle=self.tangle, attributes=attributes))

    def _previous(self, key: MessageRef, source: Optional[MessageRef] = None) -> Tuple[MessageRef, ...]:
        try:
            return self.index.previous(key)
        except KeyError:
            if source is None:
                raise KeyError(f"{key} is not part of tangle {self.tangle!r}") from None
            raise UnknownReferenceError(source, key, tangle=self.tangle) from None

    def hops_to_root(self, key: MessageRef) -> int:
        """
        Length of the longest previous-path from ``key`` back to the root.

        Walks previous edges depth first with an explicit stack and fills the
        depth memo in post order, so every message is evaluated once.

        Raises:
            KeyError: ``key`` is not part of the tangle
            MalformedTangleError: A node on the active path is revisited, or
                the path grows longer than the message count
            UnknownReferenceError: An edge leaves the index
        """
        if key in self._hops:
            return self._hops[key]

        limit = len(self.index)
        stack = [(key, iter(self._previous(key)))]
        on_path = {key}
        while stack:
            node, pending = stack[-1]
            for ref in pending:
                if ref in self._hops:
                    continue
                if ref in on_path:
                    cycle = [n for n, _ in stack]
                    cycle = cycle[cycle.index(ref):]
                    raise MalformedTangleError(
                        f"cycle through {ref}", identities=cycle, tangle=self.tangle
                    )
                if len(stack) >= limit:
                    raise MalformedTangleError(
                        f"path from {key} exceeds {limit} messages",
                        identities=[key],
                        tangle=self.tangle,
                    )
                stack.append((ref, iter(self._previous(ref, source=node))))
                on_path.add(ref)
                break
            else:
                stack.pop()
                on_path.discard(node)
                self._hops[node] = 1 + max(self._hops[ref] for ref in self.index.previous(node))
        return self._hops[key]

    def points_to(self, x: MessageRef, y: MessageRef) -> bool:
        """
        True iff ``x`` causally follows ``y`` (direct or transitive edge).

        Every message on a path from ``x`` down to ``y`` is strictly deeper
        than ``y``, so the search never descends into messages at or below
        ``y``'s depth. Answers are memoized per (x, y) pair.
        """
        pair = (x, y)
        if pair in self._reach:
            return self._reach[pair]

        target_hops = self.hops_to_root(y)
        found = False
        if self.hops_to_root(x) > target_hops:
            stack = list(self.index.previous(x))
            visited = set(stack)
            while stack:
                node = stack.pop()
                if node == y:
                    found = True
                    break
                if self._hops[node] <= target_hops:
                    continue
                for ref in self.index.previous(node):
                    if ref not in visited:
                        visited.add(ref)
                        stack.append(ref)

        self._reach[pair] = found
        return found

    def less(self, i: int, j: int) -> bool:
        """Comparator on item positions, see ``_less``."""
        return self._less(self.items[i].identity(), self.items[j].identity())

    def _less(self, key_i: MessageRef, key_j: MessageRef) -> bool:
        # dependents never sort before their dependencies
        if self.points_to(key_i, key_j):
            return False

        hops_i, hops_j = self.hops_to_root(key_i), self.hops_to_root(key_j)
        if hops_i != hops_j:
            return hops_i < hops_j

        if self.tie_break == "identity":
            return key_i < key_j
        return False

    def _compare(self, a: TangledPost, b: TangledPost) -> int:
        key_a, key_b = a.identity(), b.identity()
        if self._less(key_a, key_b):
            return -1
        if self._less(key_b, key_a):
            return 1
        return 0

    def sort(self) -> List[P]:
        """
        Order the items in place and return them.

        Raises:
            TangleError: A traversal found a malformed tangle
        """
        try:
            self.items.sort(key=functools.cmp_to_key(self._compare))
        except TangleError as e:
            self._emit(TANGLE_FAILED, e.to_failure_event())
            raise

        max_hops = max(self._hops.values())
        logger.debug(
            "tangle %r: sorted %d messages, max hops %d, %d depths memoized",
            self.tangle, len(self.items), max_hops, len(self._hops),
        )
        self._emit(SORT_COMPLETED, {"message_count": len(self.items), "max_hops": max_hops})
        return self.items

    def heads(self) -> List[MessageRef]:
        """
        Messages no other message lists as previous, in ascending ref order.

        More than one head means an open fork that a future message should
        merge.
        """
        pointed = self.index.targets()
        tips = sorted(key for key in self.index.identities() if key not in pointed)
        if len(tips) > 1:
            logger.debug("tangle %r: %d open heads", self.tangle, len(tips))
        self._emit(HEADS_COMPUTED, {"head_count": len(tips), "heads": [t.ref() for t in tips]})
        return tips

    def depths(self) -> Dict[MessageRef, int]:
        """Hops to root of every message, in item order."""
        return {item.identity(): self.hops_to_root(item.identity()) for item in self.items}


def sort_tangle(
    messages: Sequence[P],
    tangle_name: Optional[str] = None,
    tie_break: Optional[str] = None,
    on_event: Optional[EventHook] = None,
) -> Tuple[List[P], List[MessageRef]]:
    """
    Order a message set and report its heads.

    Runs inside a ``tangle.sort`` span. The input sequence is not modified.

    Args:
        messages: Messages of one tangle
        tangle_name: Tangle to order (config ``default_tangle`` if None)
        tie_break: ``identity`` or ``input`` (config ``tie_break`` if None)
        on_event: Optional observability hook

    Returns:
        (ordered messages, heads)

    Raises:
        TangleSizeError: More messages than config ``max_messages``
        TangleError: Any ordering failure
    """
    config = get_config()
    name = config.default_tangle if tangle_name is None else tangle_name

    tracer = trace.get_tracer("tanglecore.tangle")
    with tracer.start_as_current_span("tangle.sort", kind=SpanKind.INTERNAL) as span:
        span.set_attribute("tangle.name", name)
        span.set_attribute("tangle.message_count", len(messages))

        sorter = TangleSorter(messages, name, tie_break=tie_break, on_event=on_event)
        ordered = sorter.sort()
        tips = sorter.heads()

        span.set_attribute("tangle.root", sorter.root.ref())
        span.set_attribute("tangle.head_count", len(tips))
        return ordered, tips
