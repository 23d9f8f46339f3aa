"""
Message references for tanglecore.

A MessageRef is the content-addressed identity of a message: the raw hash
bytes plus the name of the hashing/feed format that produced them. Refs are
immutable, hashable and totally ordered by their hash bytes, which makes them
usable as mapping keys and gives a stable order for head output.

Textual form is the classic sigil:

    %<base64 hash>.<algo>     e.g. %Ss0eF6zP7l3kVlJQSwvHhqDGYV4Y6YJXaBQSbdlfHjk=.sha256

Usage:
    from tanglecore.refs import parse_message_ref

    ref = parse_message_ref("%Ss0eF6zP7l3kVlJQSwvHhqDGYV4Y6YJXaBQSbdlfHjk=.sha256")
    print(ref.short_sigil())
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

from tanglecore.errors import InvalidRefError

__all__ = [
    "RefAlgo",
    "MessageRef",
    "parse_message_ref",
    "HASH_LENGTH",
]

HASH_LENGTH = 32


class RefAlgo:
    """Known message reference algorithms."""
    SHA256 = "sha256"               # classic ssb messages
    BAMBOO = "bamboo"
    BENDYBUTT = "bendybutt-v1"
    GABBYGROVE = "gabbygrove-v1"    # cbor based chain
    CLOAKED = "cloaked"             # private group ids

    KNOWN = frozenset({SHA256, BAMBOO, BENDYBUTT, GABBYGROVE, CLOAKED})


@dataclass(frozen=True, order=True)
class MessageRef:
    """Immutable reference to a message.

    Ordering compares the hash bytes first and the algorithm second.

    Attributes:
        hash: Raw hash bytes
        algo: Name of the algorithm / feed format
    """
    hash: bytes
    algo: str = RefAlgo.SHA256

    @classmethod
    def from_bytes(cls, data: bytes, algo: str = RefAlgo.SHA256) -> "MessageRef":
        """Create a reference from raw hash bytes, enforcing the hash length.

        Raises:
            InvalidRefError: If ``data`` is not exactly 32 bytes
        """
        if len(data) != HASH_LENGTH:
            raise InvalidRefError(
                f"ref length: expected {HASH_LENGTH} bytes for {algo}, got {len(data)}"
            )
        return cls(hash=bytes(data), algo=algo)

    def sigil(self) -> str:
        """Return the ``%hash.algo`` text form."""
        return f"%{base64.standard_b64encode(self.hash).decode('ascii')}.{self.algo}"

    def short_sigil(self) -> str:
        """Return a truncated sigil for log lines."""
        return f"<%{base64.standard_b64encode(self.hash[:3]).decode('ascii')}.{self.algo}>"

    def ref(self) -> str:
        """Canonical string key of this reference."""
        return self.sigil()

    def __str__(self) -> str:
        return self.sigil()


def parse_message_ref(text: str) -> MessageRef:
    """
    Parse a message sigil into a MessageRef.

    Args:
        text: Sigil string like ``%<base64>.sha256``

    Returns:
        The parsed reference

    Raises:
        InvalidRefError: On empty input, wrong sigil, bad base64, unknown
            algorithm or a hash that is not 32 bytes long
    """
    if not text:
        raise InvalidRefError("empty reference")
    if not text.startswith("%"):
        raise InvalidRefError(f"msgRef: {text!r} is not a message reference")

    body, dot, algo = text[1:].rpartition(".")
    if not dot or not body:
        raise InvalidRefError(f"msgRef: {text!r} has no algorithm suffix")
    if algo not in RefAlgo.KNOWN:
        raise InvalidRefError(f"msgRef: unknown algorithm {algo!r} in {text!r}")

    try:
        raw = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidRefError(f"msgRef: couldn't parse {text!r}: {e}") from e

    return MessageRef.from_bytes(raw, algo)
