"""Lineup history and feedback persistence scoped per actor and mode."""
from __future__ import annotations

import json
import sqlite3
import time
from collections import defaultdict
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from models.intent import WeatherProfile
from models.lineup import FeedbackEntry, HistoryEntry, Lineup, Vote, lineup_signature

MODES = ("single", "travel")


def _check_mode(mode: str) -> str:
    if mode not in MODES:
        raise ValueError(f"Unsupported history mode '{mode}'. Allowed: {list(MODES)}")
    return mode


class HistoryStore:
    """Interface for lineup history and feedback persistence."""

    def record_lineup(
        self,
        actor_key: str,
        mode: str,
        lineup: Lineup,
        fingerprint: Optional[str] = None,
        day: Optional[date] = None,
        index: Optional[int] = None,
    ) -> None:
        raise NotImplementedError

    def recent_lineups(
        self, actor_key: str, mode: str, fingerprint: Optional[str] = None, limit: int = 20
    ) -> List[HistoryEntry]:
        """Return up to ``limit`` rows, oldest first."""

        raise NotImplementedError

    def record_feedback(self, actor_key: str, mode: str, entry: FeedbackEntry) -> None:
        raise NotImplementedError

    def feedback_for(self, actor_key: str, mode: Optional[str] = None, limit: int = 50) -> List[FeedbackEntry]:
        raise NotImplementedError


class InMemoryHistoryStore(HistoryStore):
    """Process-local store used by tests and single-process runs."""

    def __init__(self) -> None:
        self._lineups: Dict[Tuple[str, str], List[Dict[str, Any]]] = defaultdict(list)
        self._feedback: Dict[str, List[Tuple[str, FeedbackEntry]]] = defaultdict(list)

    def record_lineup(
        self,
        actor_key: str,
        mode: str,
        lineup: Lineup,
        fingerprint: Optional[str] = None,
        day: Optional[date] = None,
        index: Optional[int] = None,
    ) -> None:
        self._lineups[(actor_key, _check_mode(mode))].append(
            {"entry": HistoryEntry.from_lineup(lineup, day, index), "fingerprint": fingerprint}
        )

    def recent_lineups(
        self, actor_key: str, mode: str, fingerprint: Optional[str] = None, limit: int = 20
    ) -> List[HistoryEntry]:
        rows = [
            row["entry"]
            for row in self._lineups.get((actor_key, _check_mode(mode)), [])
            if fingerprint is None or row["fingerprint"] == fingerprint
        ]
        return rows[-limit:] if limit > 0 else []

    def record_feedback(self, actor_key: str, mode: str, entry: FeedbackEntry) -> None:
        self._feedback[actor_key].append((_check_mode(mode), entry))

    def feedback_for(self, actor_key: str, mode: Optional[str] = None, limit: int = 50) -> List[FeedbackEntry]:
        rows = [entry for entry_mode, entry in self._feedback.get(actor_key, []) if mode is None or entry_mode == mode]
        return rows[-limit:] if limit > 0 else []


class SQLiteHistoryStore(HistoryStore):
    """SQLite-backed store for lightweight durability."""

    def __init__(self, db_path: str = "data/lineup_history.db") -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS lineup_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    actor_key TEXT NOT NULL,
                    mode TEXT NOT NULL,
                    signature TEXT NOT NULL,
                    item_ids TEXT NOT NULL,
                    request_fingerprint TEXT,
                    day_date TEXT,
                    day_index INTEGER,
                    created_at REAL
                );
                CREATE INDEX IF NOT EXISTS idx_lineup_history_scope
                    ON lineup_history(actor_key, mode, request_fingerprint);
                CREATE TABLE IF NOT EXISTS lineup_feedback (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    actor_key TEXT NOT NULL,
                    mode TEXT NOT NULL,
                    signature TEXT NOT NULL,
                    item_ids TEXT NOT NULL,
                    vote TEXT NOT NULL,
                    weather_profile TEXT,
                    formality TEXT,
                    created_at REAL
                );
                """
            )

    def record_lineup(
        self,
        actor_key: str,
        mode: str,
        lineup: Lineup,
        fingerprint: Optional[str] = None,
        day: Optional[date] = None,
        index: Optional[int] = None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO lineup_history(actor_key, mode, signature, item_ids, request_fingerprint, day_date, "
                "day_index, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    actor_key,
                    _check_mode(mode),
                    lineup.signature,
                    json.dumps(list(lineup.item_ids)),
                    fingerprint,
                    day.isoformat() if day else None,
                    index,
                    time.time(),
                ),
            )

    def recent_lineups(
        self, actor_key: str, mode: str, fingerprint: Optional[str] = None, limit: int = 20
    ) -> List[HistoryEntry]:
        query = "SELECT signature, item_ids, day_date, day_index FROM lineup_history WHERE actor_key = ? AND mode = ?"
        params: List[Any] = [actor_key, _check_mode(mode)]
        if fingerprint is not None:
            query += " AND request_fingerprint = ?"
            params.append(fingerprint)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            HistoryEntry.from_row(
                {
                    "signature": row["signature"],
                    "item_ids": json.loads(row["item_ids"]),
                    "date": row["day_date"],
                    "index": row["day_index"],
                }
            )
            for row in reversed(rows)
        ]

    def record_feedback(self, actor_key: str, mode: str, entry: FeedbackEntry) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO lineup_feedback(actor_key, mode, signature, item_ids, vote, weather_profile, formality, "
                "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    actor_key,
                    _check_mode(mode),
                    entry.signature or lineup_signature(entry.item_ids),
                    json.dumps(list(entry.item_ids)),
                    entry.vote.value,
                    entry.weather_profile.model_dump_json() if entry.weather_profile else None,
                    entry.formality,
                    time.time(),
                ),
            )

    def feedback_for(self, actor_key: str, mode: Optional[str] = None, limit: int = 50) -> List[FeedbackEntry]:
        query = "SELECT signature, item_ids, vote, weather_profile, formality FROM lineup_feedback WHERE actor_key = ?"
        params: List[Any] = [actor_key]
        if mode is not None:
            query += " AND mode = ?"
            params.append(_check_mode(mode))
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_feedback(row) for row in reversed(rows)]

    def _row_to_feedback(self, row: sqlite3.Row) -> FeedbackEntry:
        profile = row["weather_profile"]
        return FeedbackEntry(
            signature=row["signature"],
            item_ids=tuple(json.loads(row["item_ids"])),
            vote=Vote(row["vote"]),
            weather_profile=WeatherProfile.model_validate_json(profile) if profile else None,
            formality=row["formality"],
        )


def build_history_store(backend: str = "memory", path: Optional[str] = None) -> HistoryStore:
    if backend == "sqlite":
        return SQLiteHistoryStore(path or "data/lineup_history.db")
    if backend == "memory":
        return InMemoryHistoryStore()
    raise ValueError(f"Unknown history store backend '{backend}'")


__all__ = [
    "MODES",
    "HistoryStore",
    "InMemoryHistoryStore",
    "SQLiteHistoryStore",
    "build_history_store",
]
