"""Tests for the in-memory and SQLite lineup history stores."""
from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from memory.history_store import (
    InMemoryHistoryStore,
    SQLiteHistoryStore,
    build_history_store,
)
from models.intent import WeatherProfile
from models.lineup import FeedbackEntry, Lineup, Vote
from models.taxonomy import REQUIRED_CATEGORIES


def _lineup(*item_ids: int) -> Lineup:
    return Lineup(item_ids=item_ids, categories=REQUIRED_CATEGORIES)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path: Path):
    if request.param == "sqlite":
        return SQLiteHistoryStore(str(tmp_path / "history.db"))
    return InMemoryHistoryStore()


def test_recent_lineups_are_scoped_and_oldest_first(store) -> None:
    store.record_lineup("actor-a", "single", _lineup(1, 10, 20, 30))
    store.record_lineup("actor-a", "single", _lineup(2, 11, 21, 31))
    store.record_lineup("actor-a", "travel", _lineup(3, 12, 22, 32), fingerprint="trip-1", day=date(2026, 4, 1), index=0)
    store.record_lineup("actor-b", "single", _lineup(4, 13, 23, 33))

    single = store.recent_lineups("actor-a", "single")
    assert [entry.signature for entry in single] == ["1-10-20-30", "2-11-21-31"]
    assert store.recent_lineups("actor-a", "single", limit=1)[0].signature == "2-11-21-31"

    travel = store.recent_lineups("actor-a", "travel", fingerprint="trip-1")
    assert travel[0].item_ids == (3, 12, 22, 32)
    assert travel[0].date == date(2026, 4, 1)
    assert travel[0].index == 0
    assert store.recent_lineups("actor-a", "travel", fingerprint="trip-2") == []
    assert store.recent_lineups("actor-c", "single") == []


def test_feedback_round_trips_context(store) -> None:
    profile = WeatherProfile(temp_band="cold", precipitation_type="rain", wet_surface_risk="medium")
    store.record_feedback(
        "actor-a",
        "single",
        FeedbackEntry(signature="1-10-20-30", item_ids=(1, 10, 20, 30), vote=Vote.DOWN, weather_profile=profile, formality="casual"),
    )
    store.record_feedback("actor-a", "travel", FeedbackEntry(signature="2-11", item_ids=(2, 11), vote=Vote.UP))

    everything = store.feedback_for("actor-a")
    assert [entry.vote for entry in everything] == [Vote.DOWN, Vote.UP]
    assert everything[0].weather_profile.temp_band == "cold"
    assert everything[0].formality == "casual"
    assert [entry.signature for entry in store.feedback_for("actor-a", "travel")] == ["2-11"]


def test_unknown_mode_is_rejected(store) -> None:
    with pytest.raises(ValueError):
        store.record_lineup("actor-a", "weekly", _lineup(1, 10, 20, 30))
    with pytest.raises(ValueError):
        store.recent_lineups("actor-a", "weekly")


def test_sqlite_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "history.db"
    SQLiteHistoryStore(str(path)).record_lineup("actor-a", "single", _lineup(1, 10, 20, 30))

    reopened = SQLiteHistoryStore(str(path))
    assert [entry.signature for entry in reopened.recent_lineups("actor-a", "single")] == ["1-10-20-30"]


def test_build_history_store_backends(tmp_path: Path) -> None:
    assert isinstance(build_history_store("memory"), InMemoryHistoryStore)
    assert isinstance(build_history_store("sqlite", str(tmp_path / "h.db")), SQLiteHistoryStore)
    with pytest.raises(ValueError):
        build_history_store("redis")
