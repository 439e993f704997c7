from __future__ import annotations

"""Explain Mode: one-line traces at engine and storage milestones.

Switched on by ``--explain`` or the ``explain`` config key. Each trace is
printed as ``[EXPLAIN] <event> :: <compact json>``; when off, tracing is a
no-op.
"""

import json
from typing import Any, Dict, Mapping, Optional

_ENABLED = False


def enable(flag: bool = True) -> None:
    global _ENABLED
    _ENABLED = bool(flag)


def enabled() -> bool:
    return _ENABLED


def configure(cfg: Mapping[str, Any], flag: bool = False) -> bool:
    """Enable tracing if either the CLI flag or ``cfg['explain']`` asks for it."""
    if flag or cfg.get("explain"):
        enable(True)
    return _ENABLED


def _line(event: str, payload: Optional[Dict[str, Any]]) -> str:
    if not payload:
        return f"[EXPLAIN] {event}"
    try:
        body = json.dumps(payload, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        # circular payloads
        return f"[EXPLAIN] {event}"
    return f"[EXPLAIN] {event} :: {body}"


def trace(event: str, payload: Dict[str, Any] | None = None) -> None:
    if _ENABLED:
        print(_line(event, payload))


def trace_error(event: str, exc: BaseException, payload: Dict[str, Any] | None = None) -> None:
    """Trace a failure with the error's class, category and message."""
    if not _ENABLED:
        return
    data = dict(payload or {})
    data.update(error=type(exc).__name__, category=getattr(exc, "category", "internal"), message=str(exc))
    trace(event, data)
