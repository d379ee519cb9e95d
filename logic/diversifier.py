"""Single-slot repair of lineups that repeat or closely overlap history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from lineup_app.logging_config import log_event
from logic.catalog_index import group_by_category
from logic.scoring import ScoringContext, rank_candidates
from models.catalog_item import CatalogItem
from models.lineup import EngineFailure, FailureKind, HistoryEntry, Lineup, overlap_ratio

LOGGER = logging.getLogger(__name__)
DEFAULT_OVERLAP_THRESHOLD = 0.8


@dataclass(frozen=True)
class DiversifyResult:
    lineup: Lineup
    changed: bool = False
    max_overlap: float = 0.0
    swap: Optional[Tuple[str, int, int]] = None
    failure: Optional[EngineFailure] = None

    @property
    def exhausted(self) -> bool:
        return self.failure is not None and self.failure.kind is FailureKind.DIVERSITY_EXHAUSTED


def max_history_overlap(item_ids: Iterable[int], history: Sequence[HistoryEntry]) -> float:
    ids = set(item_ids)
    return max((overlap_ratio(ids, entry.item_ids) for entry in history), default=0.0)


def _slot_order(lineup: Lineup, used_ids: Set[int]) -> List[str]:
    order = list(lineup.categories)
    return sorted(order, key=lambda category: (lineup.item_for(category) not in used_ids, order.index(category)))


def diversify(
    lineup: Lineup,
    pool: Iterable[CatalogItem],
    context: ScoringContext,
    history: Sequence[HistoryEntry] = (),
    used_signatures: Iterable[str] = (),
    locks: Optional[Mapping[str, int]] = None,
    blocked_ids: FrozenSet[int] = frozenset(),
    overlap_threshold: float = DEFAULT_OVERLAP_THRESHOLD,
) -> DiversifyResult:
    """Return the lineup unchanged when novel, else try one-slot substitutions.

    Slots holding already-used items are tried first. Locked categories and
    locked item ids are never touched. Exhausting every substitution returns
    the original lineup with a ``diversity_exhausted`` failure attached.
    """

    locks = dict(locks or {})
    signatures = set(used_signatures) | {entry.signature for entry in history}
    original_overlap = max_history_overlap(lineup.item_ids, history)
    if lineup.signature not in signatures and original_overlap <= overlap_threshold:
        return DiversifyResult(lineup=lineup, max_overlap=original_overlap)

    used_ids: Set[int] = set(context.used_item_ids)
    for entry in history:
        used_ids.update(entry.item_ids)
    ranking_context = context.with_used(used_ids)
    locked_ids = set(locks.values())
    present = set(lineup.item_ids)
    grouped = group_by_category(pool)

    for category in _slot_order(lineup, used_ids):
        current = lineup.item_for(category)
        if category in locks or current in locked_ids:
            continue
        candidates = [
            item
            for item in grouped.get(category, [])
            if item.item_id not in present and item.item_id not in locked_ids and item.item_id not in blocked_ids
        ]
        for candidate, _score in rank_candidates(candidates, ranking_context):
            repaired = lineup.replace(category, candidate.item_id)
            if repaired.signature in signatures:
                continue
            overlap = max_history_overlap(repaired.item_ids, history)
            if overlap <= overlap_threshold or overlap < original_overlap:
                return DiversifyResult(
                    lineup=repaired,
                    changed=True,
                    max_overlap=overlap,
                    swap=(category, current, candidate.item_id),
                )

    failure = EngineFailure(
        kind=FailureKind.DIVERSITY_EXHAUSTED,
        message="No admissible single-slot substitution found",
        details={"signature": lineup.signature, "max_overlap": round(original_overlap, 4)},
    )
    log_event(
        LOGGER,
        logging.WARNING,
        "diversity_exhausted",
        signature=lineup.signature,
        max_overlap=round(original_overlap, 4),
        history_size=len(history),
    )
    return DiversifyResult(lineup=lineup, max_overlap=original_overlap, failure=failure)


__all__ = ["DEFAULT_OVERLAP_THRESHOLD", "DiversifyResult", "diversify", "max_history_overlap"]
