"""Tests for per-module analysis history."""

import pytest

from upgradelens_core.tracker import AnalysisTracker
from upgradelens_store.memory import MemoryStore


class _Clock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def tracker(clock):
    return AnalysisTracker(MemoryStore(), recheck_interval=100, clock=clock)


def test_start_and_complete(tracker, clock):
    tracker.start_analysis("mod", "general", {"batch_id": "upgrade_1"})
    clock.now += 5
    tracker.complete_analysis("mod", {"critical": 2})

    entry = tracker.history("mod")[0]
    assert entry["status"] == "completed"
    assert entry["end_time"] - entry["start_time"] == 5
    assert entry["results"] == {"critical": 2}
    assert entry["context"] == {"batch_id": "upgrade_1"}


def test_failed_analysis(tracker):
    tracker.start_analysis("mod", "security")
    tracker.complete_analysis("mod", {}, success=False)
    assert tracker.history("mod")[0]["status"] == "failed"
    assert tracker.last_analysis_time("mod", "security") is None


def test_complete_without_start_is_ignored(tracker):
    tracker.complete_analysis("mod", {"critical": 1})
    assert tracker.history("mod") == []


def test_history_is_newest_first_and_capped(tracker, clock):
    for i in range(12):
        clock.now += 1
        tracker.start_analysis("mod", f"type{i}")
    history = tracker.history("mod")
    assert len(history) == 10
    assert history[0]["type"] == "type11"


def test_needs_reanalysis(tracker, clock):
    assert tracker.needs_reanalysis("mod", "general") is True
    tracker.start_analysis("mod", "general")
    tracker.complete_analysis("mod", {})
    assert tracker.needs_reanalysis("mod", "general") is False
    clock.now += 101
    assert tracker.needs_reanalysis("mod", "general") is True


def test_last_analysis_time_by_type(tracker, clock):
    tracker.start_analysis("mod", "general")
    tracker.complete_analysis("mod", {})
    general_done = clock.now
    clock.now += 10
    tracker.start_analysis("mod", "security")
    assert tracker.last_analysis_time("mod", "general") == general_done
    assert tracker.last_analysis_time("mod") is None


def test_stats(tracker, clock):
    tracker.start_analysis("a", "general")
    tracker.complete_analysis("a", {})
    tracker.start_analysis("b", "security")
    stats = tracker.stats(["a", "b", "c"])
    assert stats["total_analyzed"] == 2
    assert stats["never_analyzed"] == 1
    assert stats["needs_reanalysis"] == 1
    assert stats["by_type"] == {"general": 1, "security": 1}
    assert stats["last_analysis"] == clock.now
