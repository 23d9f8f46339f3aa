"""
Logging setup for tanglecore.

Library modules only create loggers (``logging.getLogger(__name__)``);
handlers are installed by applications, or by the CLI through
``configure_logging``.

Two output formats:
- ``json``: one JSON object per line, for Loki / container pickup
- ``text``: human readable console lines
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Optional

__all__ = ["JsonFormatter", "configure_logging"]

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    level: str = "info",
    fmt: str = "text",
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Install a single handler on the ``tanglecore`` logger.

    Calling it again replaces the previous handler, so the CLI and tests can
    reconfigure freely.

    Args:
        level: debug, info, warning or error
        fmt: ``json`` or ``text``
        stream: Output stream (stderr by default)

    Returns:
        The configured ``tanglecore`` logger
    """
    root = logging.getLogger("tanglecore")
    for handler in list(root.handlers):
        if getattr(handler, "_tanglecore_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if fmt == "json" else logging.Formatter(_TEXT_FORMAT))
    handler._tanglecore_handler = True  # type: ignore[attr-defined]

    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return root
