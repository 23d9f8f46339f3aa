"""
Adjacency index for a tangle.

Built once per sort from a fixed snapshot of messages. Maps every non-root
message to the refs it directly points to (its previous set) and records the
single root. The index is the only state the reachability and depth oracles
read.

Construction validates the structural invariants up front:
- exactly one message has an empty previous set (the root)
- every previous entry names a message of the set
- no identity appears twice and no message points to itself
- every message reaches the root without passing through a cycle
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Set, Tuple

from tanglecore.errors import (
    MalformedTangleError,
    MissingRootError,
    MultipleRootsError,
    UnknownReferenceError,
)
from tanglecore.messages import TangledPost
from tanglecore.refs import MessageRef

__all__ = ["AdjacencyIndex", "build_index"]

logger = logging.getLogger(__name__)


@dataclass
class AdjacencyIndex:
    """
    Points-to edges of a tangle.

    Attributes:
        root: Identity of the message with the empty previous set
        before: Non-root identity -> its previous refs, in declaration order
        tangle: Name of the tangle the edges were read from
    """
    root: MessageRef
    before: Dict[MessageRef, Tuple[MessageRef, ...]] = field(default_factory=dict)
    tangle: str = ""

    def __len__(self) -> int:
        return len(self.before) + 1

    def __contains__(self, key: object) -> bool:
        return key == self.root or key in self.before

    def __iter__(self) -> Iterator[MessageRef]:
        return iter(self.identities())

    def identities(self) -> List[MessageRef]:
        """All message identities, root first."""
        return [self.root, *self.before]

    def previous(self, key: MessageRef) -> Tuple[MessageRef, ...]:
        """
        Direct previous refs of ``key``; empty for the root.

        Raises:
            KeyError: If ``key`` is not part of the index
        """
        if key == self.root:
            return ()
        return self.before[key]

    def targets(self) -> Set[MessageRef]:
        """Every identity referenced as previous by some message."""
        pointed: Set[MessageRef] = set()
        for refs in self.before.values():
            pointed.update(refs)
        return pointed

    def edge_count(self) -> int:
        return sum(len(refs) for refs in self.before.values())

    def verify(self) -> None:
        """
        Check that every message is reachable from the root in topological
        order, i.e. the edges form a DAG hanging off the root.

        Raises:
            UnknownReferenceError: If an edge leaves the index
            MalformedTangleError: If some messages sit on or behind a cycle
        """
        children: Dict[MessageRef, List[MessageRef]] = {}
        pending: Dict[MessageRef, int] = {}
        for key, refs in self.before.items():
            pending[key] = len(refs)
            for ref in refs:
                if ref not in self:
                    raise UnknownReferenceError(key, ref, tangle=self.tangle)
                children.setdefault(ref, []).append(key)

        queue = deque([self.root])
        resolved = 0
        while queue:
            current = queue.popleft()
            resolved += 1
            for child in children.get(current, ()):
                pending[child] -= 1
                if pending[child] == 0:
                    queue.append(child)

        if resolved != len(self):
            stuck = sorted(key for key, left in pending.items() if left > 0)
            raise MalformedTangleError(
                f"{len(stuck)} message(s) never reach the root (cycle)",
                identities=stuck,
                tangle=self.tangle,
            )


def _ordered_unique(refs: Iterable[MessageRef]) -> Tuple[MessageRef, ...]:
    seen: Set[MessageRef] = set()
    out = []
    for ref in refs:
        if ref not in seen:
            seen.add(ref)
            out.append(ref)
    return tuple(out)


def build_index(
    messages: Iterable[TangledPost],
    tangle_name: str,
    strict_root: bool = False,
) -> AdjacencyIndex:
    """
    Build the adjacency index of a tangle.

    Args:
        messages: Messages exposing ``identity()`` and ``tangle(name)``
        tangle_name: Which tangle of each message to read
        strict_root: Raise instead of warn when a message declares a root
            other than the one found in the set

    Returns:
        A verified AdjacencyIndex

    Raises:
        MissingRootError: No message has an empty previous set
        MultipleRootsError: More than one message has an empty previous set
        UnknownReferenceError: A previous entry is not among ``messages``
        MalformedTangleError: Duplicate identity, self reference or cycle
    """
    roots: List[MessageRef] = []
    before: Dict[MessageRef, Tuple[MessageRef, ...]] = {}
    declared: Dict[MessageRef, MessageRef] = {}
    seen: Set[MessageRef] = set()

    for msg in messages:
        key = msg.identity()
        if key in seen:
            raise MalformedTangleError(
                f"duplicate message {key}", identities=[key], tangle=tangle_name
            )
        seen.add(key)

        declared_root, previous = msg.tangle(tangle_name)
        refs = _ordered_unique(previous or ())
        if not refs:
            roots.append(key)
            continue
        if key in refs:
            raise MalformedTangleError(
                f"{key} lists itself as previous", identities=[key], tangle=tangle_name
            )

        before[key] = refs
        if declared_root is not None:
            declared[key] = declared_root

    # unknown refs take precedence over root errors
    for key, refs in before.items():
        for ref in refs:
            if ref not in seen:
                raise UnknownReferenceError(key, ref, tangle=tangle_name)

    if not roots:
        raise MissingRootError(tangle=tangle_name)
    if len(roots) > 1:
        raise MultipleRootsError(roots, tangle=tangle_name)

    root = roots[0]
    for key, declared_root in declared.items():
        if declared_root == root:
            continue
        if strict_root:
            raise MalformedTangleError(
                f"{key} declares root {declared_root}, tangle root is {root}",
                identities=[key, declared_root],
                tangle=tangle_name,
            )
        logger.warning(
            "tangle %r: %s declares root %s, using %s",
            tangle_name, key.short_sigil(), declared_root.short_sigil(), root.short_sigil(),
        )

    index = AdjacencyIndex(root=root, before=before, tangle=tangle_name)
    index.verify()

    logger.debug(
        "tangle %r: indexed %d messages, %d edges, root %s",
        tangle_name, len(index), index.edge_count(), root.short_sigil(),
    )
    return index
