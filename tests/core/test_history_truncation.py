import pytest

from chatcore.llm.history import MAX_TURNS, truncate_turns
from chatcore.llm.types import Turn


def _pairs(n):
    out = []
    for i in range(n):
        out.append(Turn.user(f"u{i}"))
        out.append(Turn.model(f"m{i}"))
    return out


@pytest.mark.parametrize("pairs,max_turns", [(0, 1), (3, 1), (3, 3), (10, 4), (120, 50)])
def test_truncation_bound(pairs, max_turns):
    out = truncate_turns(_pairs(pairs), max_turns)
    assert len(out) <= 2 * max_turns


def test_within_bound_is_noop():
    history = _pairs(4)
    assert truncate_turns(history, 4) == history
    assert truncate_turns(history, 10) == history


def test_drops_oldest_first():
    out = truncate_turns(_pairs(5), 2)
    assert [t.text for t in out] == ["u3", "m3", "u4", "m4"]


def test_idempotent():
    once = truncate_turns(_pairs(9), 3)
    assert truncate_turns(once, 3) == once


def test_dangling_model_turn_dropped_after_cut():
    # odd-length history: the raw cut would leave m0 at the front
    history = [Turn.model("m-1")] + _pairs(2)
    out = truncate_turns(history, 1)
    assert out[0].role == "user"
    assert [t.text for t in out] == ["u1", "m1"]


def test_leading_model_turn_kept_when_no_cut_needed():
    history = [Turn.model("orphan"), Turn.user("u")]
    assert truncate_turns(history, 1) == history


def test_default_max_turns():
    out = truncate_turns(_pairs(MAX_TURNS + 7))
    assert len(out) == 2 * MAX_TURNS
    assert out[0].text == "u7"


def test_invalid_max_turns():
    with pytest.raises(ValueError):
        truncate_turns(_pairs(1), 0)


def test_turn_rejects_unknown_role():
    with pytest.raises(ValueError):
        Turn(role="assistant", text="x")
