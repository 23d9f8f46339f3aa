"""
Error taxonomy for tanglecore.

Every failure of the ordering engine is a typed, recoverable exception
derived from TangleError. Nothing here is resolved by falling back to a
default order: a caller receiving one of these should treat the message set
as unusable until it is corrected (for example by fetching a missing
message).

Hierarchy:
    TangleError
    ├── MissingRootError        no message with an empty previous set
    ├── MultipleRootsError      more than one message with an empty previous set
    ├── MalformedTangleError    cycle, duplicate or root never reached
    ├── UnknownReferenceError   previous entry not among the supplied messages
    └── TangleSizeError         input larger than the configured bound

    InvalidRefError (ValueError)  unparseable reference text
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

__all__ = [
    "TangleError",
    "MissingRootError",
    "MultipleRootsError",
    "MalformedTangleError",
    "UnknownReferenceError",
    "TangleSizeError",
    "InvalidRefError",
]


class InvalidRefError(ValueError):
    """Raised when a reference string or byte slice cannot be parsed."""


class TangleError(Exception):
    """
    Base class for tangle ordering failures.

    Attributes:
        tangle: Name of the tangle being ordered (may be empty)
        identities: References involved in the failure
    """

    event_type = "tangle.failed"

    def __init__(
        self,
        message: str,
        tangle: str = "",
        identities: Optional[Iterable[Any]] = None,
    ) -> None:
        self.tangle = tangle
        self.identities: List[Any] = list(identities or [])
        super().__init__(message)

    def to_failure_event(self) -> Dict[str, Any]:
        """
        Serialize to a structured failure event suitable for logs.

        Identities are rendered through ``str()`` so the result is
        JSON-serializable.
        """
        return {
            "event_type": self.event_type,
            "error": type(self).__name__,
            "reason": str(self),
            "tangle": self.tangle,
            "identities": [str(i) for i in self.identities],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class MissingRootError(TangleError):
    """No message in the set has an empty previous set."""

    def __init__(self, tangle: str = "") -> None:
        super().__init__(f"tangle {tangle!r}: no root message found", tangle=tangle)


class MultipleRootsError(TangleError):
    """More than one message in the set has an empty previous set."""

    def __init__(self, roots: Iterable[Any], tangle: str = "") -> None:
        self.roots = sorted(roots)
        listed = ", ".join(str(r) for r in self.roots)
        super().__init__(
            f"tangle {tangle!r}: {len(self.roots)} root candidates: {listed}",
            tangle=tangle,
            identities=self.roots,
        )


class MalformedTangleError(TangleError):
    """A cycle, a duplicate identity, or ancestry that never reaches the root."""

    def __init__(
        self,
        reason: str,
        identities: Optional[Iterable[Any]] = None,
        tangle: str = "",
    ) -> None:
        self.reason = reason
        super().__init__(f"tangle {tangle!r}: {reason}", tangle=tangle, identities=identities)


class UnknownReferenceError(TangleError):
    """A previous entry names a message that is not part of the supplied set."""

    def __init__(self, source: Any, missing: Any, tangle: str = "") -> None:
        self.source = source
        self.missing = missing
        super().__init__(
            f"tangle {tangle!r}: {source} points to unknown message {missing}",
            tangle=tangle,
            identities=[source, missing],
        )


class TangleSizeError(TangleError):
    """The message set exceeds the configured input-size bound."""

    def __init__(self, count: int, limit: int, tangle: str = "") -> None:
        self.count = count
        self.limit = limit
        super().__init__(
            f"tangle {tangle!r}: {count} messages exceeds limit of {limit}",
            tangle=tangle,
        )
