"""Tests for slot assignment and history-aware diversification."""
from __future__ import annotations

import logging
import random
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.diversifier import diversify
from logic.scoring import ScoringContext
from logic.slot_assigner import assign, pinned_slots
from models.catalog_item import from_raw_metadata
from models.intent import CanonicalIntent
from models.lineup import Anchor, AnchorMode, FailureKind, HistoryEntry, Lineup
from models.taxonomy import REQUIRED_CATEGORIES


def _item(item_id: int, item_type: str, **extra):
    return from_raw_metadata({"id": item_id, "type": item_type, **extra})


def _pool():
    return [
        _item(1, "Parka"),
        _item(2, "Overcoat", favorite=True),
        _item(10, "Oxford Shirt"),
        _item(11, "Sweater", favorite=True),
        _item(20, "Jeans"),
        _item(21, "Chinos"),
        _item(30, "Boots"),
        _item(31, "Loafers"),
    ]


def _context(**kwargs) -> ScoringContext:
    return ScoringContext.build(CanonicalIntent(), **kwargs)


def test_assign_picks_best_item_per_category_in_priority_order() -> None:
    result = assign(_pool(), REQUIRED_CATEGORIES, _context())

    assert result.ok
    assert result.lineup.item_ids == (2, 11, 20, 30)
    assert result.lineup.categories == REQUIRED_CATEGORIES


def test_missing_category_is_a_structural_failure() -> None:
    pool = [item for item in _pool() if item.category != "footwear"]
    result = assign(pool, REQUIRED_CATEGORIES, _context())

    assert not result.ok
    assert result.failure.kind is FailureKind.STRUCTURAL
    assert result.failure.details["missing_categories"] == ["footwear"]


def test_locks_and_blocked_ids() -> None:
    result = assign(_pool(), REQUIRED_CATEGORIES, _context(), locks={"outerwear": 1}, blocked_ids=frozenset({11, 1}))
    assert result.lineup.item_ids == (1, 10, 20, 30)

    conflict = assign(_pool(), REQUIRED_CATEGORIES, _context(), locks={"footwear": 99})
    assert conflict.failure.kind is FailureKind.LOCK_CONFLICT


def test_strict_and_soft_anchors() -> None:
    strict = assign(_pool(), REQUIRED_CATEGORIES, _context(), anchor=Anchor(item_id=10))
    assert strict.lineup.item_for("top") == 10

    soft = assign(_pool(), REQUIRED_CATEGORIES, _context(), anchor=Anchor(item_id=21, mode=AnchorMode.SOFT))
    assert soft.lineup.item_for("bottom") == 21

    missing = assign(_pool(), REQUIRED_CATEGORIES, _context(), anchor=Anchor(item_id=404))
    assert missing.failure.kind is FailureKind.VALIDATION

    blocked = assign(_pool(), REQUIRED_CATEGORIES, _context(), anchor=Anchor(item_id=10), blocked_ids=frozenset({10}))
    assert blocked.failure.kind is FailureKind.VALIDATION


def test_assign_ignores_pool_order() -> None:
    pool = _pool()
    context = _context(used_item_ids=[2, 20])
    baseline = assign(pool, REQUIRED_CATEGORIES, context)
    # 30 and 31 tie on score, so footwear falls back to the lower id
    assert baseline.lineup.item_ids == (1, 11, 21, 30)

    orders = [list(reversed(pool))]
    for seed in range(5):
        shuffled = list(pool)
        random.Random(seed).shuffle(shuffled)
        orders.append(shuffled)
    for order in orders:
        again = assign(order, REQUIRED_CATEGORIES, context)
        assert again.lineup.item_ids == baseline.lineup.item_ids
        assert again.scores == baseline.scores


def test_pinned_slots_cover_locks_and_strict_anchor() -> None:
    lineup = Lineup(item_ids=(2, 11, 20, 30), categories=REQUIRED_CATEGORIES)

    assert pinned_slots(lineup, {"footwear": 30}, Anchor(item_id=11)) == {"footwear": 30, "top": 11}
    assert pinned_slots(lineup, anchor=Anchor(item_id=11, mode=AnchorMode.SOFT)) == {}
    assert pinned_slots(lineup, anchor=Anchor(item_id=404)) == {}


def test_strict_anchor_survives_diversification() -> None:
    lineup = Lineup(item_ids=(2, 11, 20, 30), categories=REQUIRED_CATEGORIES)
    history = [HistoryEntry.from_lineup(lineup)]

    result = diversify(lineup, _pool(), _context(), history=history, locks=pinned_slots(lineup, anchor=Anchor(item_id=2)))
    assert result.changed
    assert result.lineup.item_for("outerwear") == 2
    assert result.swap[0] != "outerwear"


def test_novel_lineup_is_left_unchanged() -> None:
    lineup = Lineup(item_ids=(2, 11, 20, 30), categories=REQUIRED_CATEGORIES)
    history = [HistoryEntry.from_lineup(Lineup(item_ids=(1, 10, 21, 31), categories=REQUIRED_CATEGORIES))]

    result = diversify(lineup, _pool(), _context(), history=history)
    assert not result.changed
    assert result.lineup == lineup
    assert result.failure is None


def test_repeated_signature_swaps_a_used_slot() -> None:
    lineup = Lineup(item_ids=(2, 11, 20, 30), categories=REQUIRED_CATEGORIES)
    history = [HistoryEntry.from_lineup(lineup)]

    result = diversify(lineup, _pool(), _context(), history=history)
    assert result.changed
    assert result.swap == ("outerwear", 2, 1)
    assert result.lineup.item_ids == (1, 11, 20, 30)
    assert result.max_overlap <= 0.8


def test_locked_slots_are_never_swapped() -> None:
    lineup = Lineup(item_ids=(2, 11, 20, 30), categories=REQUIRED_CATEGORIES)
    history = [HistoryEntry.from_lineup(lineup)]

    result = diversify(lineup, _pool(), _context(), history=history, locks={"outerwear": 2, "top": 11})
    assert result.changed
    assert result.lineup.item_for("outerwear") == 2
    assert result.lineup.item_for("top") == 11
    assert result.swap[0] == "bottom"


def test_overlap_above_threshold_triggers_repair_even_with_new_signature() -> None:
    lineup = Lineup(item_ids=(2, 11, 20, 30), categories=REQUIRED_CATEGORIES)
    history = [HistoryEntry(signature="2-11-20", item_ids=(2, 11, 20))]

    result = diversify(lineup, _pool(), _context(), history=history, overlap_threshold=0.7)
    assert result.changed
    assert result.max_overlap < 0.75


def test_exhausted_repair_returns_original_with_marker(caplog) -> None:
    pool = [_item(1, "Parka"), _item(10, "Shirt"), _item(20, "Jeans"), _item(30, "Boots")]
    lineup = Lineup(item_ids=(1, 10, 20, 30), categories=REQUIRED_CATEGORIES)
    caplog.set_level(logging.WARNING, logger="logic.diversifier")

    result = diversify(lineup, pool, _context(), history=[HistoryEntry.from_lineup(lineup)])

    assert result.lineup == lineup
    assert result.exhausted
    assert result.failure.kind is FailureKind.DIVERSITY_EXHAUSTED
    assert any(getattr(record, "event", None) == "diversity_exhausted" for record in caplog.records)
