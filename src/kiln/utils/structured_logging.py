"""Structured logging utilities for kiln.

Each build session logs to its own directory as JSON Lines, one file per
component, so a failed build can be reconstructed from ``build.jsonl`` and the
engine traffic behind it from ``engine.jsonl``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

__all__ = ["JSONFormatter", "parse_level", "setup_structured_logging"]

_COMPONENT_FILES: Dict[str, str] = {
    "kiln.build": "build.jsonl",
    "kiln.engine": "engine.jsonl",
}
_CATCH_ALL_FILE = "other.jsonl"
_NOISY_THIRD_PARTY_LOGGERS = ("urllib3", "docker")

# Attributes every LogRecord carries; anything else came in through ``extra``
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def parse_level(level: Union[str, int]) -> int:
    """Translate a level name such as ``"debug"`` into its numeric value."""
    if isinstance(level, int):
        return level
    if str(level).strip().isdigit():
        return int(level)
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


class JSONFormatter(logging.Formatter):
    """Render records as single-line JSON objects tagged with the session."""

    def __init__(self, session_id: Optional[str] = None) -> None:
        super().__init__()
        self.session_id = session_id

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.session_id:
            entry["session"] = self.session_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        )
        return json.dumps(entry, default=str)


def setup_structured_logging(
    logs_dir: Path,
    session_id: str,
    level: Union[str, int] = "INFO",
    quiet: bool = False,
    console: bool = False,
) -> Path:
    """Route kiln's loggers into ``logs_dir/<session_id>/*.jsonl``.

    ``level`` is the threshold for both the files and the optional stderr
    handler; ``quiet`` raises the console threshold to errors only.

    Returns the directory the session's log files are written to.
    """
    threshold = parse_level(level)
    session_dir = logs_dir / session_id
    session_dir.mkdir(parents=True, exist_ok=True)
    formatter = JSONFormatter(session_id)
    console_handler = _console_handler(threshold, quiet) if console else None

    def attach(logger: logging.Logger, filename: str) -> None:
        for old in list(logger.handlers):
            old.close()
            logger.removeHandler(old)
        logger.setLevel(threshold)
        logger.propagate = False
        handler = logging.FileHandler(session_dir / filename, encoding="utf-8")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        if console_handler is not None:
            logger.addHandler(console_handler)

    attach(logging.getLogger("kiln"), _CATCH_ALL_FILE)
    for name, filename in _COMPONENT_FILES.items():
        attach(logging.getLogger(name), filename)

    for name in _NOISY_THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return session_dir


def _console_handler(threshold: int, quiet: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.ERROR if quiet else threshold)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    return handler
