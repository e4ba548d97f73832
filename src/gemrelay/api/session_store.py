"""In-memory session history store.

Process-wide map session_id -> chronological list of turns. No TTL and no
persistence: sessions live until an explicit reset or process exit. Every
operation takes the store lock once, so a commit appends its user/model pair
atomically relative to other readers and writers.
"""
from __future__ import annotations

from threading import RLock
from typing import Dict, List

from chatcore import metrics
from chatcore.events import HistoryTruncated, SessionReset, emit
from chatcore.llm.history import MAX_TURNS, truncate_turns
from chatcore.llm.types import Turn


class HistoryStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, List[Turn]] = {}
        self._lock = RLock()

    def get(self, session_id: str) -> List[Turn]:
        """Return a snapshot of the session history, creating it if absent."""
        with self._lock:
            history = self._sessions.setdefault(session_id, [])
            return list(history)

    def truncate(self, session_id: str, max_turns: int = MAX_TURNS) -> List[Turn]:
        """Bound the stored history in place and return the bounded snapshot."""
        with self._lock:
            history = self._sessions.setdefault(session_id, [])
            bounded = truncate_turns(history, max_turns)
            dropped = len(history) - len(bounded)
            if dropped:
                self._sessions[session_id] = bounded
        if dropped:
            emit(
                HistoryTruncated(
                    session_id=session_id,
                    dropped=dropped,
                    kept=len(bounded),
                    max_turns=max_turns,
                )
            )
        return list(bounded)

    def commit(self, session_id: str, user_turn: Turn, model_turn: Turn) -> None:
        with self._lock:
            history = self._sessions.setdefault(session_id, [])
            history.append(user_turn)
            history.append(model_turn)
        metrics.inc("session_turns_total", {"role": user_turn.role})
        metrics.inc("session_turns_total", {"role": model_turn.role})

    def reset(self, session_id: str) -> bool:
        """Drop the session; unknown ids are a no-op. Returns prior existence."""
        with self._lock:
            existed = self._sessions.pop(session_id, None) is not None
        emit(SessionReset(session_id=session_id, existed=existed))
        return existed

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def stats(self) -> dict:
        with self._lock:
            return {
                "sessions": len(self._sessions),
                "turns": sum(len(h) for h in self._sessions.values()),
            }

    def clear(self) -> None:
        """Drop every session (tests, shutdown)."""
        with self._lock:
            self._sessions.clear()


store = HistoryStore()

__all__ = ["store", "HistoryStore"]
