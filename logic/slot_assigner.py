"""Greedy one-item-per-category assignment with locks and anchors."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from logic.catalog_index import group_by_category
from logic.scoring import ScoringContext, rank_candidates
from models.catalog_item import CatalogItem
from models.lineup import (
    Anchor,
    AnchorMode,
    EngineFailure,
    FailureKind,
    Lineup,
    structural_failure,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotAssignment:
    """Outcome of one assignment: a lineup or a failure, never both."""

    lineup: Optional[Lineup] = None
    items: Tuple[CatalogItem, ...] = ()
    failure: Optional[EngineFailure] = None
    scores: Dict[int, float] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.lineup is not None and self.failure is None


def _failed(failure: EngineFailure) -> SlotAssignment:
    LOGGER.info("Slot assignment failed: %s", failure.message, extra={"failure_kind": failure.kind.value})
    return SlotAssignment(failure=failure)


def assign(
    pool: Iterable[CatalogItem],
    required_categories: Sequence[str],
    context: ScoringContext,
    locks: Optional[Mapping[str, int]] = None,
    anchor: Optional[Anchor] = None,
    blocked_ids: FrozenSet[int] = frozenset(),
) -> SlotAssignment:
    """Pick exactly one item per required category, in priority order.

    A lock wins over everything else for its category, then a strict anchor,
    then the best-scoring candidate (ties by ascending id). Blocked ids are
    never picked unless they are the locked item. A category without any
    eligible candidate fails the whole assignment.
    """

    locks = dict(locks or {})
    items = list(pool)
    grouped = group_by_category(items)
    by_id = {item.item_id: item for item in items}

    anchor_item: Optional[CatalogItem] = None
    if anchor is not None:
        anchor_item = by_id.get(anchor.item_id)
        if anchor.mode is AnchorMode.SOFT:
            context = replace(context, soft_anchor_ids=context.soft_anchor_ids | {anchor.item_id})
        elif anchor_item is None or anchor_item.item_id in blocked_ids:
            return _failed(
                EngineFailure(
                    kind=FailureKind.VALIDATION,
                    message=f"Anchored item {anchor.item_id} is not eligible for this lineup",
                    details={"anchor_item_id": anchor.item_id},
                )
            )
        elif anchor_item.category not in required_categories:
            return _failed(
                EngineFailure(
                    kind=FailureKind.VALIDATION,
                    message=f"Anchored item {anchor.item_id} is not in a required category",
                    details={"anchor_item_id": anchor.item_id, "category": anchor_item.category},
                )
            )

    missing: List[str] = []
    chosen: List[CatalogItem] = []
    scores: Dict[int, float] = {}
    for category in required_categories:
        members = grouped.get(category, [])
        locked_id = locks.get(category)
        if locked_id is not None:
            locked = next((member for member in members if member.item_id == locked_id), None)
            if locked is None:
                return _failed(
                    EngineFailure(
                        kind=FailureKind.LOCK_CONFLICT,
                        message=f"Locked {category} item {locked_id} is not eligible",
                        details={"category": category, "item_id": locked_id},
                    )
                )
            chosen.append(locked)
            continue

        candidates = [member for member in members if member.item_id not in blocked_ids]
        if not candidates:
            missing.append(category)
            continue
        if anchor_item is not None and anchor.mode is AnchorMode.STRICT and anchor_item.category == category:
            chosen.append(anchor_item)
            continue
        ranked = rank_candidates(candidates, context)
        best, best_score = ranked[0]
        scores[best.item_id] = best_score
        chosen.append(best)

    if missing:
        return _failed(structural_failure(missing))

    lineup = Lineup(
        item_ids=tuple(item.item_id for item in chosen),
        categories=tuple(required_categories),
    )
    return SlotAssignment(lineup=lineup, items=tuple(chosen), scores=scores)


def pinned_slots(
    lineup: Lineup,
    locks: Optional[Mapping[str, int]] = None,
    anchor: Optional[Anchor] = None,
) -> Dict[str, int]:
    """Slots later passes must not swap: the locks plus a strict anchor's slot."""

    pins = dict(locks or {})
    if anchor is not None and anchor.mode is AnchorMode.STRICT:
        for category, item_id in zip(lineup.categories, lineup.item_ids):
            if item_id == anchor.item_id:
                pins.setdefault(category, item_id)
    return pins


__all__ = ["SlotAssignment", "assign", "pinned_slots"]
