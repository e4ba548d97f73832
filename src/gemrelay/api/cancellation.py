"""Cancellation tokens for in-flight chat streams.

A token is flipped by the transport when the caller disconnects; the relay
stops emitting frames but keeps draining upstream output. The registry maps
request_id -> token so in-flight streams can be counted and cancelled in bulk.
"""
from __future__ import annotations

from threading import RLock
from time import time


class CancelToken:
    __slots__ = ("request_id", "_cancelled", "reason", "cancelled_at")

    def __init__(self, request_id: str = "") -> None:
        self.request_id = request_id
        self._cancelled = False
        self.reason: str | None = None
        self.cancelled_at: float | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "client_disconnect") -> bool:
        """Flip the token; returns False if it was already cancelled."""
        if self._cancelled:
            return False
        self._cancelled = True
        self.reason = reason
        self.cancelled_at = time()
        return True


_TOKENS: dict[str, CancelToken] = {}
_LOCK = RLock()


def register(request_id: str) -> CancelToken:  # noqa: D401
    token = CancelToken(request_id)
    with _LOCK:
        _TOKENS[request_id] = token
    return token


def cancel(request_id: str, reason: str = "client_disconnect") -> bool:
    with _LOCK:
        token = _TOKENS.get(request_id)
    if token is None:
        return False
    return token.cancel(reason)


def cancel_all(reason: str = "shutdown") -> int:
    with _LOCK:
        tokens = list(_TOKENS.values())
    return sum(1 for t in tokens if t.cancel(reason))


def clear(request_id: str) -> None:  # noqa: D401
    with _LOCK:
        _TOKENS.pop(request_id, None)


def in_flight() -> int:
    with _LOCK:
        return len(_TOKENS)


__all__ = [
    "CancelToken",
    "register",
    "cancel",
    "cancel_all",
    "clear",
    "in_flight",
]
