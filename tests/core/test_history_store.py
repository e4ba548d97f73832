from chatcore import metrics
from chatcore.events import reset_listeners_for_tests, subscribe
from chatcore.llm.types import Turn
from gemrelay.api.session_store import HistoryStore


def test_get_creates_empty_session_idempotently():
    s = HistoryStore()
    assert "a" not in s
    assert s.get("a") == []
    assert "a" in s
    assert s.get("a") == []
    assert s.stats()["sessions"] == 1


def test_commit_appends_pair_in_order():
    s = HistoryStore()
    s.commit("a", Turn.user("hi"), Turn.model("hello"))
    assert s.get("a") == [Turn.user("hi"), Turn.model("hello")]
    s.commit("a", Turn.user("again"), Turn.model("sure"))
    assert [t.role for t in s.get("a")] == ["user", "model", "user", "model"]


def test_get_returns_snapshot():
    s = HistoryStore()
    snap = s.get("a")
    snap.append(Turn.user("sneaky"))
    assert s.get("a") == []


def test_reset_idempotent_and_unknown_ok():
    s = HistoryStore()
    s.commit("a", Turn.user("hi"), Turn.model("hello"))
    assert s.reset("a") is True
    assert s.reset("a") is False
    assert s.reset("never-created") is False
    assert "a" not in s
    assert s.stats() == {"sessions": 0, "turns": 0}


def test_reset_emits_event():
    reset_listeners_for_tests()
    got = []
    unsub = subscribe(lambda n, p: got.append((n, p)))
    try:
        HistoryStore().reset("zz")
    finally:
        unsub()
    assert ("SessionReset", "zz") in [(n, p["session_id"]) for n, p in got]


def test_truncate_bounds_stored_history_in_place():
    metrics.reset_for_tests()
    s = HistoryStore()
    for i in range(6):
        s.commit("a", Turn.user(f"u{i}"), Turn.model(f"m{i}"))
    bounded = s.truncate("a", 2)
    assert [t.text for t in bounded] == ["u4", "m4", "u5", "m5"]
    assert s.get("a") == bounded
    assert metrics.counter_value("history_truncated_total") == 1.0
    # second pass is a no-op
    s.truncate("a", 2)
    assert metrics.counter_value("history_truncated_total") == 1.0


def test_truncate_unknown_session_creates_it():
    s = HistoryStore()
    assert s.truncate("new", 3) == []
    assert "new" in s
