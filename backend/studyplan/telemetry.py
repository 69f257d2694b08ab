"""Structured telemetry for plan generation and practice composition."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from threading import RLock
from time import perf_counter
from typing import Any, Callable, Dict, Iterator, List

logger = logging.getLogger("studyplan.telemetry")

STUDY_PLAN_GENERATED = "study_plan_generated"
STUDY_PLAN_RECALCULATED = "study_plan_recalculated"
PRACTICE_SESSION_COMPOSED = "practice_session_composed"


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]


_listeners: List[Callable[[TelemetryEvent], None]] = []
_lock = RLock()


def register_listener(listener: Callable[[TelemetryEvent], None]) -> None:
    """Register an in-process listener (used in tests)."""
    with _lock:
        _listeners.append(listener)


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> None:
    """Emit a structured event to listeners and the telemetry log."""
    payload = {key: _sanitize(value) for key, value in fields.items()}
    event = TelemetryEvent(name=name, payload=payload)

    with _lock:
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    logger.info("TELEMETRY %s", json.dumps({"event": name, **payload}, default=str))


@contextmanager
def timed_event(name: str, **fields: Any) -> Iterator[Dict[str, Any]]:
    """Time the wrapped block and emit ``name`` with its outcome.

    The yielded dict collects result fields. An exception is reported with
    ``status="error"`` and re-raised.
    """
    extra: Dict[str, Any] = {}
    start = perf_counter()
    try:
        yield extra
    except Exception as exc:
        logger.exception("Operation %s failed", name)
        emit_event(
            name,
            **fields,
            status="error",
            duration_ms=round((perf_counter() - start) * 1000.0, 2),
            error=str(exc),
            exception_type=exc.__class__.__name__,
        )
        raise
    status = extra.pop("status", "success")
    emit_event(
        name,
        **fields,
        **extra,
        status=status,
        duration_ms=round((perf_counter() - start) * 1000.0, 2),
    )


def _sanitize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


__all__ = [
    "PRACTICE_SESSION_COMPOSED",
    "STUDY_PLAN_GENERATED",
    "STUDY_PLAN_RECALCULATED",
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
    "timed_event",
]
