"""
Structured events emitted while ordering a tangle.

The sorter accepts an optional ``on_event`` callable. It is handed a
TangleEvent for each milestone and never influences the result; the default
is no hook at all.

Emitted events:
- index.built
- sort.completed
- heads.computed
- tangle.failed

Usage:
    from tanglecore.tangle.events import TangleEventLogger
    from tanglecore.tangle.sorter import TangleSorter

    sorter = TangleSorter(messages, "post", on_event=TangleEventLogger(service_name="reader"))
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

__all__ = [
    "INDEX_BUILT",
    "SORT_COMPLETED",
    "HEADS_COMPUTED",
    "TANGLE_FAILED",
    "TangleEvent",
    "EventHook",
    "TangleEventLogger",
]

INDEX_BUILT = "index.built"
SORT_COMPLETED = "sort.completed"
HEADS_COMPUTED = "heads.computed"
TANGLE_FAILED = "tangle.failed"

_events_logger = logging.getLogger("tanglecore.events")


@dataclass(frozen=True)
class TangleEvent:
    """
    One observability record.

    Attributes:
        name: Event name (see module constants)
        tangle: Tangle being ordered
        attributes: Event specific, JSON-serializable values
        timestamp: Creation time in UTC
    """
    name: str
    tangle: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "event": self.name,
            "tangle": self.tangle,
            **self.attributes,
        }


EventHook = Callable[[TangleEvent], None]


class TangleEventLogger:
    """
    Stock event hook writing one JSON line per event.

    Lines go to the ``tanglecore.events`` logger; failures are logged at
    ERROR, everything else at INFO.
    """

    def __init__(
        self,
        service_name: str = "tanglecore",
        extra_labels: Optional[Dict[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.service_name = service_name
        self.extra_labels = extra_labels or {}
        self._logger = logger or _events_logger

    def __call__(self, event: TangleEvent) -> None:
        entry = event.to_dict()
        entry["service"] = self.service_name
        if self.extra_labels:
            entry["labels"] = self.extra_labels

        log_line = json.dumps(entry, default=str)
        if event.name == TANGLE_FAILED:
            self._logger.error(log_line)
        else:
            self._logger.info(log_line)
