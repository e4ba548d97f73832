"""Minimal in-memory metrics collector.

Purpose:
    - Counters and simple latency samples for the relay hot path.
    - Zero external deps; can be swapped by a Prometheus exporter later.

Core API (intentionally tiny):
    inc(name, labels=None, value=1)
    observe(name, value, labels=None)
    snapshot() -> dict (copy for safe reading)

Thread-safety: coarse RLock; overhead negligible for chat traffic volume.

Relay metric names (documented for discoverability):
    - chat_stream_open_total{model}
    - chat_stream_close_total{model,reason}       # ok|cancelled|error
    - chat_increments_total{model,emitted}        # emitted=1|0 (drained)
    - chat_first_increment_latency_ms{model}
    - chat_latency_ms{model}
    - chat_commit_total{outcome}                  # committed|skipped
    - session_turns_total{role}
    - session_reset_total
    - history_truncated_total
    - env_override_total{path}
    - api_request_total{route,method}
    - api_request_latency_ms{route,method}
    - api_request_errors_total{route,method,status}

Helper functions below wrap ``inc`` for the relay outcome counters to reduce
label spelling drift.
"""
from __future__ import annotations

from threading import RLock
from time import time
from typing import Dict, Tuple, Any

_COUNTERS: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], float] = {}
_HIST: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], list] = {}
_LOCK = RLock()


def _norm_labels(labels: dict[str, Any] | None) -> Tuple[Tuple[str, str], ...]:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def inc(
    name: str,
    labels: dict[str, Any] | None = None,
    value: float = 1.0,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _COUNTERS[key] = _COUNTERS.get(key, 0.0) + value


def observe(
    name: str,
    value: float,
    labels: dict[str, Any] | None = None,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _HIST.setdefault(key, []).append(value)


def _label_str(labels: Tuple[Tuple[str, str], ...]) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f"{k}={v}" for k, v in labels) + "}"


def snapshot() -> dict[str, Any]:
    with _LOCK:
        counters: dict[str, float] = {}
        for (name, labels), v in _COUNTERS.items():
            counters[name + _label_str(labels)] = v
        hist = {}
        for (name, labels), vals in _HIST.items():
            if not vals:
                continue
            hist[name + _label_str(labels)] = {
                "count": len(vals),
                "min": min(vals),
                "max": max(vals),
                "p50": sorted(vals)[len(vals) // 2],
                "last": vals[-1],
            }
        return {
            "ts": time(),
            "counters": counters,
            "histograms": hist,
        }


def counter_value(name: str, labels: dict[str, Any] | None = None) -> float:
    """Return current value of a single counter (0.0 when never touched)."""
    with _LOCK:
        return _COUNTERS.get((name, _norm_labels(labels)), 0.0)


def reset_for_tests() -> None:  # pragma: no cover
    with _LOCK:
        _COUNTERS.clear()
        _HIST.clear()


__all__ = [
    "inc",
    "observe",
    "snapshot",
    "counter_value",
    "reset_for_tests",
]


# ------------------- Relay outcome helpers -------------------
def inc_stream_close(model: str, reason: str) -> None:
    """Count a closed chat stream.

    reason: ok | cancelled | error
    """
    inc("chat_stream_close_total", {"model": model, "reason": reason})


def inc_increment(model: str, emitted: bool) -> None:
    """Count one upstream increment; ``emitted`` False means drained only."""
    inc(
        "chat_increments_total",
        {"model": model, "emitted": "1" if emitted else "0"},
    )


def inc_commit(outcome: str) -> None:
    """Count commit decisions (committed|skipped)."""
    if outcome:
        inc("chat_commit_total", {"outcome": outcome})


__all__ += ["inc_stream_close", "inc_increment", "inc_commit"]
