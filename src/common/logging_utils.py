"""Centralized logging helpers.

Every module logs through a module-level ``logging.getLogger(__name__)``.
DEBUG traces carry structured fields built by :func:`extra_context` and
should be guarded with :func:`is_debug_enabled` to keep INFO runs cheap.
"""
from __future__ import annotations

import logging
import os
import re
import time
import urllib.parse
from typing import Any, Dict, Optional

from constants import Constants

_CONTEXT_FIELDS = (
    "event",
    "component",
    "action",
    "outcome",
    "target",
    "status_code",
    "duration_ms",
    "count",
    "module_name",
    "coordinate",
)

_SECRET_RE = re.compile(r"(?i)(token|password|secret|passwd|apikey|api_key)=([^&\s]+)")


class _ContextFormatter(logging.Formatter):
    """Formatter appending structured context fields when they are present."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        pairs = []
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                pairs.append(f"{name}={value}")
        if pairs and record.levelno <= logging.DEBUG:
            return f"{base} [{' '.join(pairs)}]"
        return base


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure the root logger once per process.

    The level comes from ``level`` when given, else from the
    ``MODGATE_LOG_LEVEL`` environment variable, else INFO.
    """
    level_name = (level or os.environ.get(Constants.ENV_LOG_LEVEL) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_modgate", False):
            root.removeHandler(handler)

    handler: logging.Handler = logging.StreamHandler()
    handler.setFormatter(_ContextFormatter(Constants.LOG_FORMAT))
    handler._modgate = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            _ContextFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        file_handler._modgate = True  # type: ignore[attr-defined]
        root.addHandler(file_handler)

    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records, dropping None values."""
    return {key: value for key, value in fields.items() if value is not None}


def redact(text: str) -> str:
    """Mask credential-looking query parameters in free text."""
    return _SECRET_RE.sub(lambda m: f"{m.group(1)}=***", text)


def safe_url(url: str) -> str:
    """Return ``url`` without user info and with secrets masked."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return redact(url)
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    cleaned = urllib.parse.urlunsplit((parts.scheme, netloc, parts.path, parts.query, ""))
    return redact(cleaned)


class Timer:
    """Context manager measuring wall-clock duration in milliseconds."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed time so far (or total once the block exited)."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
