"""Relay pipeline contracts.

Lightweight dataclasses and protocols shared by the streaming relay and its
collaborators (history store, cancellation token, frame sink). Concrete
pipeline lives alongside in ``relay.py``.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Sequence

from chatcore.llm.types import Frame, GenerationOptions, Turn


class RelayState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    TRUNCATING = "truncating"
    STREAMING = "streaming"
    AGGREGATING = "aggregating"
    COMMITTING = "committing"
    SKIPPING = "skipping"
    FINALIZING = "finalizing"
    CLOSED = "closed"


class HistoryStorePort(Protocol):  # pragma: no cover - interface
    def truncate(self, session_id: str, max_turns: int) -> list[Turn]:
        ...

    def commit(self, session_id: str, user_turn: Turn, model_turn: Turn) -> None:
        ...


class CancelSignal(Protocol):  # pragma: no cover - interface
    @property
    def cancelled(self) -> bool:
        ...

    def cancel(self, reason: str = ...) -> bool:
        ...


FrameSink = Callable[[Frame], None]


@dataclass
class RelayContext:
    request_id: str
    session_id: str
    message: str
    options: GenerationOptions
    state: RelayState = RelayState.IDLE
    model_id: str | None = None
    history: Sequence[Turn] = ()
    stream: Any | None = None  # ModelStream once prepared
    # Runtime populated fields (during / after streaming)
    fragments: list[str] = field(default_factory=list)
    increments_emitted: int = 0
    increments_drained: int = 0
    error_message: str | None = None
    error_type: str | None = None
    committed_text: str | None = None
    started_at: float | None = None
    first_increment_ms: float | None = None
    latency_ms: int | None = None
    states_seen: list[RelayState] = field(default_factory=list)

    def enter(self, state: RelayState) -> None:
        self.state = state
        self.states_seen.append(state)


@dataclass
class RelayResult:
    request_id: str
    session_id: str
    committed: bool
    cancelled: bool
    error: str | None
    text: str | None
    increments_emitted: int
    increments_drained: int
    latency_ms: int


__all__ = [
    "RelayState",
    "RelayContext",
    "RelayResult",
    "HistoryStorePort",
    "CancelSignal",
    "FrameSink",
]
