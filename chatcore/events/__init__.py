"""Event dataclasses + any-subscriber bridge.

Per-event subscriptions go through `chatcore.eventbus`; this module adds
`subscribe(handler)` where handler(name, payload) receives every event.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from time import time
from typing import Any, Callable, Dict, List, Protocol

from chatcore import metrics as _metrics
from chatcore.eventbus import emit as _emit_bus

EventHandler = Callable[[str, Dict[str, Any]], None]


class SupportsEvent(Protocol):  # pragma: no cover
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        ...


@dataclass(slots=True)
class BaseEvent:
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        data = asdict(self)
        data["ts"] = data.get("ts") or time()
        return data


@dataclass(slots=True)
class ChatStarted(BaseEvent):
    request_id: str
    session_id: str
    model_id: str
    history_turns: int  # turns sent upstream as context
    # only the options the caller actually set
    options: dict | None = None
    has_system_prompt: bool = False


@dataclass(slots=True)
class ChatCompleted(BaseEvent):
    request_id: str
    session_id: str
    model_id: str
    status: str  # ok|error
    increments: int
    latency_ms: int
    committed: bool
    error_type: str | None = None
    message: str | None = None


@dataclass(slots=True)
class ChatCancelled(BaseEvent):
    """Caller went away mid-stream; output was drained but not committed."""
    request_id: str
    session_id: str
    model_id: str
    increments_emitted: int
    increments_drained: int
    latency_ms: int
    reason: str = "client_disconnect"


@dataclass(slots=True)
class HistoryTruncated(BaseEvent):
    session_id: str
    dropped: int
    kept: int
    max_turns: int


@dataclass(slots=True)
class SessionReset(BaseEvent):
    session_id: str
    existed: bool


_ANY_SUBS: List[EventHandler] = []


def _metrics_collector(
    name: str, payload: Dict[str, Any]
) -> None:  # noqa: D401
    if name in {"ChatStarted", "ChatCompleted", "ChatCancelled"}:
        _metrics.inc("events_chat", {"type": name[4:].lower()})
    elif name == "HistoryTruncated":
        _metrics.inc("history_truncated_total")
        _metrics.observe(
            "history_truncated_dropped", payload.get("dropped", 0)
        )
    elif name == "SessionReset":
        _metrics.inc(
            "session_reset_total",
            {"existed": "1" if payload.get("existed") else "0"},
        )


_ANY_SUBS.append(_metrics_collector)


def emit(ev: BaseEvent | SupportsEvent) -> None:
    name = ev.__class__.__name__
    payload = ev.to_event()
    _emit_bus(name, payload)
    for h in list(_ANY_SUBS):  # copy for isolation
        try:
            h(name, dict(payload))
        except Exception:  # noqa: BLE001
            _metrics.inc("handler_exceptions_total", {"event": name})


def on(handler: EventHandler) -> None:
    _ANY_SUBS.append(handler)


def subscribe(handler: EventHandler):
    on(handler)

    def _unsub() -> None:  # noqa: D401
        try:
            _ANY_SUBS.remove(handler)
        except ValueError:
            pass
    return _unsub


def reset_listeners_for_tests() -> None:  # pragma: no cover
    _ANY_SUBS.clear()
    _ANY_SUBS.append(_metrics_collector)


__all__ = [
    "emit",
    "on",
    "subscribe",
    "ChatStarted",
    "ChatCompleted",
    "ChatCancelled",
    "HistoryTruncated",
    "SessionReset",
    "reset_listeners_for_tests",
]
