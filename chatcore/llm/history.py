"""Turn truncation policy for conversation history."""
from __future__ import annotations

from typing import Sequence

from .types import ROLE_MODEL, Turn

MAX_TURNS = 50


def truncate_turns(
    history: Sequence[Turn], max_turns: int = MAX_TURNS
) -> list[Turn]:
    """Keep at most ``2 * max_turns`` most recent entries.

    Oldest entries go first. If the cut leaves a ``model`` turn at the front
    (no matching ``user`` turn) it is dropped too, so the context sent
    upstream always opens with a user turn. Idempotent; a history already
    within bounds is returned unchanged (as a new list).
    """
    if max_turns <= 0:
        raise ValueError("max_turns must be >0")
    over = len(history) - 2 * max_turns
    if over <= 0:
        return list(history)
    kept = list(history[over:])
    if kept and kept[0].role == ROLE_MODEL:
        kept = kept[1:]
    return kept


__all__ = ["truncate_turns", "MAX_TURNS"]
