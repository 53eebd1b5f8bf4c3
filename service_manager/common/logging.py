"""
Structured JSON logging + invocation IDs (stdlib-only).

Goals:
- One JSON object per log line (stdout)
- Consistent core fields across every service-manager entrypoint:
  - service, env, version, sha
  - invocation_id
  - event_type, severity
- Every gated operation binds an invocation_id for its lifetime so all lines
  emitted by one call (including collaborator failures) can be correlated.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional


_INVOCATION_ID: ContextVar[Optional[str]] = ContextVar("invocation_id", default=None)

# Attributes every LogRecord carries, plus the core keys the formatter writes itself.
_RESERVED_ATTRS: frozenset[str] = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "taskName",
    "timestamp",
    "severity",
    "service",
    "env",
    "version",
    "sha",
    "invocation_id",
    "event_type",
}

_SEVERITIES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _clean_text(v: Any, *, max_len: int = 2000) -> str:
    s = "" if v is None else str(v)
    s = s.replace("\n", " ").replace("\r", " ").strip()
    if len(s) > max_len:
        s = s[: max_len - 1] + "…"
    return s


def _env(name: str, default: str, *, max_len: int = 128) -> str:
    return _clean_text(os.getenv(name) or "", max_len=max_len) or default


def _normalize_severity(level: str | int | None) -> str:
    if isinstance(level, int):
        level = logging.getLevelName(level)
    s = _clean_text(level or "INFO", max_len=16).upper()
    return s if s in _SEVERITIES else "INFO"


def default_service_name() -> str:
    return _env("SERVICE_NAME", "service-manager")


def default_env_name() -> str:
    return _env("ENV", "unknown", max_len=64)


def default_sha() -> str:
    return _env("GIT_SHA", "unknown", max_len=64)


def default_version() -> str:
    return _env("SERVICE_MANAGER_VERSION", "unknown")


def get_invocation_id() -> Optional[str]:
    iid = _INVOCATION_ID.get()
    return _clean_text(iid, max_len=128) if iid else None


@contextmanager
def bind_invocation_id(*, invocation_id: str | None = None) -> Iterator[str]:
    """
    Bind an invocation id for the lifetime of one gated operation.

    Nested binds reuse the outer id so façade -> component calls share it.
    """
    outer = _INVOCATION_ID.get()
    iid = _clean_text(invocation_id or "", max_len=128) or outer or uuid.uuid4().hex
    token = _INVOCATION_ID.set(iid)
    try:
        yield iid
    finally:
        _INVOCATION_ID.reset(token)


class JsonLogFormatter(logging.Formatter):
    """Render each record as one JSON object: core identity fields, then any `extra` fields."""

    def __init__(self, *, service: str | None, env: str | None, version: str | None, sha: str | None) -> None:
        super().__init__()
        self._identity = {
            "service": _clean_text(service, max_len=128) or default_service_name(),
            "env": _clean_text(env, max_len=64) or default_env_name(),
            "version": _clean_text(version, max_len=128) or default_version(),
            "sha": _clean_text(sha, max_len=64) or default_sha(),
        }

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (format required by logging)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": _normalize_severity(getattr(record, "severity", None) or record.levelname),
            **self._identity,
            "invocation_id": getattr(record, "invocation_id", None) or get_invocation_id(),
            "event_type": _clean_text(getattr(record, "event_type", None), max_len=128) or "log",
            "message": _clean_text(record.getMessage(), max_len=4000),
            "logger": record.name,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)[-8000:]

        for k, v in record.__dict__.items():
            if k not in _RESERVED_ATTRS and not k.startswith("_"):
                payload[k] = v

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def init_structured_logging(
    *,
    service: str | None = None,
    env: str | None = None,
    version: str | None = None,
    sha: str | None = None,
    level: str | int | None = None,
) -> None:
    """
    Route the root logger to one JSON-lines handler on stdout.

    Replaces any existing root handlers, so calling it again reconfigures.
    """
    lvl = level or os.getenv("LOG_LEVEL") or "INFO"
    if isinstance(lvl, str):
        lvl = lvl.strip().upper()
    root = logging.getLogger()
    root.setLevel(lvl)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter(service=service, env=env, version=version, sha=sha))
    root.handlers = [handler]

    logging.captureWarnings(True)


def log_event(
    logger: logging.Logger,
    event_type: str,
    *,
    severity: str = "INFO",
    message: str | None = None,
    **fields: Any,
) -> None:
    """
    Convenience wrapper for semantic events with stable `event_type`.
    """
    lvl = getattr(logging, str(severity).upper(), logging.INFO)
    logger.log(
        lvl,
        message or event_type,
        extra={"event_type": _clean_text(event_type, max_len=128), **fields},
    )
