"""Lineup, history and failure value types shared by the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date as dt_date
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from models.intent import WeatherProfile

SIGNATURE_SEPARATOR = "-"


def lineup_signature(item_ids: Iterable[int]) -> str:
    """Canonical identity of an item-id set: sorted, deduplicated, joined."""

    return SIGNATURE_SEPARATOR.join(str(item_id) for item_id in sorted({int(item_id) for item_id in item_ids}))


def parse_signature(signature: str) -> Tuple[int, ...]:
    """Inverse of :func:`lineup_signature`."""

    return tuple(int(part) for part in signature.split(SIGNATURE_SEPARATOR) if part.strip())


def overlap_ratio(left: Iterable[int], right: Iterable[int]) -> float:
    """Jaccard similarity of two item-id sets."""

    left_set, right_set = set(left), set(right)
    union = left_set | right_set
    if not union:
        return 0.0
    return len(left_set & right_set) / len(union)


@dataclass(frozen=True)
class Lineup:
    """One complete category-balanced item selection."""

    item_ids: Tuple[int, ...]
    categories: Tuple[str, ...]

    @property
    def signature(self) -> str:
        return lineup_signature(self.item_ids)

    def item_for(self, category: str) -> Optional[int]:
        for item_id, item_category in zip(self.item_ids, self.categories):
            if item_category == category:
                return item_id
        return None

    def replace(self, category: str, item_id: int) -> "Lineup":
        """Return a copy with the slot for ``category`` swapped."""

        return Lineup(
            item_ids=tuple(item_id if slot == category else current for current, slot in zip(self.item_ids, self.categories)),
            categories=self.categories,
        )

    def as_mapping(self) -> Dict[str, int]:
        return dict(zip(self.categories, self.item_ids))


@dataclass(frozen=True)
class HistoryEntry:
    """A prior lineup for the same actor."""

    signature: str
    item_ids: Tuple[int, ...]
    date: Optional[dt_date] = None
    index: Optional[int] = None

    @classmethod
    def from_lineup(cls, lineup: Lineup, entry_date: Optional[dt_date] = None, index: Optional[int] = None) -> "HistoryEntry":
        return cls(signature=lineup.signature, item_ids=tuple(lineup.item_ids), date=entry_date, index=index)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "HistoryEntry":
        item_ids = tuple(int(value) for value in row.get("item_ids") or ())
        signature = str(row.get("signature") or lineup_signature(item_ids))
        raw_date = row.get("date")
        entry_date = dt_date.fromisoformat(raw_date) if isinstance(raw_date, str) and raw_date else raw_date
        return cls(signature=signature, item_ids=item_ids or parse_signature(signature), date=entry_date, index=row.get("index"))


class Vote(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class FeedbackEntry:
    """A thumbs up/down previously given to a lineup."""

    signature: str
    item_ids: Tuple[int, ...]
    vote: Vote
    weather_profile: Optional[WeatherProfile] = None
    formality: Optional[str] = None


class AnchorMode(str, Enum):
    STRICT = "strict"
    SOFT = "soft"


@dataclass(frozen=True)
class Anchor:
    """An item the caller wants in the lineup."""

    item_id: int
    mode: AnchorMode = AnchorMode.STRICT


class FailureKind(str, Enum):
    STRUCTURAL = "structural_failure"
    LOCK_CONFLICT = "lock_conflict"
    DIVERSITY_EXHAUSTED = "diversity_exhausted"
    VALIDATION = "validation_failure"


@dataclass(frozen=True)
class EngineFailure:
    """Pure-data failure result; callers decide how to surface it."""

    kind: FailureKind
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "details": dict(self.details)}


def structural_failure(missing: Sequence[str], **details: Any) -> EngineFailure:
    return EngineFailure(
        kind=FailureKind.STRUCTURAL,
        message=f"No eligible items for required categories: {', '.join(missing)}",
        details={"missing_categories": list(missing), **details},
    )


__all__ = [
    "SIGNATURE_SEPARATOR",
    "lineup_signature",
    "parse_signature",
    "overlap_ratio",
    "Lineup",
    "HistoryEntry",
    "Vote",
    "FeedbackEntry",
    "AnchorMode",
    "Anchor",
    "FailureKind",
    "EngineFailure",
    "structural_failure",
]
