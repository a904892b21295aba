# src/logging/logger.py — v1
"""Log setup for the ``intentphrase`` logger tree.

Two renderings of the same record: one JSON object per line for shipping,
and a compact text line for terminals. Both carry the run scope held in
``logging.context`` so interleaved keyword tasks stay distinguishable.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from intentphrase.logging.context import get_context

ROOT_LOGGER = "intentphrase"

_SIZE_RE = re.compile(r"^(\d+)\s*([KMG])B$", re.IGNORECASE)
_SIZE_SHIFT = {"K": 10, "M": 20, "G": 30}

# Third-party loggers that are chatty at INFO
_QUIET = ("httpx", "httpcore", "openai", "anthropic")


def _created(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _created(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        scope = get_context().as_dict()
        if scope:
            entry["context"] = scope
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """``2026-01-01 12:00:00 [INFO    ] logger [kw=kw_1] (phase) - message``"""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        scope = "".join((
            f" [kw={ctx.keyword_id}]" if ctx.keyword_id else "",
            f" ({ctx.phase})" if ctx.phase else "",
        ))
        line = (
            f"{_created(record):%Y-%m-%d %H:%M:%S} [{record.levelname:8s}] "
            f"{record.name}{scope} - {record.getMessage()}"
        )
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def parse_size(size_str: str) -> int:
    """'10MB' -> bytes. Accepts KB, MB and GB, case-insensitive."""
    match = _SIZE_RE.match(size_str.strip())
    if match is None:
        raise ValueError(f"Invalid size {size_str!r}; expected e.g. '10MB'")
    return int(match.group(1)) << _SIZE_SHIFT[match.group(2).upper()]


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | Path | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """(Re)configure the package logger. Safe to call more than once.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text".
        log_file: Optional rotating log file, in addition to stderr.
        rotation: Size at which the file rotates (e.g. "10MB").
        retention: Rotated files kept.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            path, maxBytes=parse_size(rotation), backupCount=retention, encoding="utf-8",
        ))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)
