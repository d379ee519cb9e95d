"""Multi-entry lineup planning with trip-wide locks and envelope relaxation."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Set, Tuple

from lineup_app.config import EngineConfig
from lineup_app.logging_config import log_event
from logic.catalog_index import CatalogIndex
from logic.constraints import STRICT, ConstraintSet, FilteringResult, evaluate, filter_pool, hard_gate
from logic.context_synthesizer import WeatherContext, resolve_weather_context, synthesize_intent
from logic.diversifier import diversify
from logic.scoring import ScoringContext, blend_confidence, match_score, score_item
from logic.slot_assigner import assign, pinned_slots
from models.catalog_item import CatalogItem
from models.intent import CanonicalIntent
from models.lineup import Anchor, EngineFailure, FailureKind, HistoryEntry, Lineup
from models.taxonomy import BOTTOM, FOOTWEAR, OUTERWEAR, REASON_OCCASIONS, TOP, normalize_tag

LOGGER = logging.getLogger(__name__)


class DayKind(str, Enum):
    STAY = "stay"
    TRANSIT = "transit"


@dataclass(frozen=True)
class SequenceEntry:
    """One lineup slot in a sequence, typically one trip day."""

    index: int
    intent: CanonicalIntent
    kind: DayKind = DayKind.STAY
    day: Optional[date] = None

    @property
    def is_transit(self) -> bool:
        return self.kind is DayKind.TRANSIT


@dataclass(frozen=True)
class ConstraintEnvelope:
    """A named constraint configuration with per-category overrides."""

    name: str
    default: ConstraintSet = STRICT
    overrides: Mapping[str, ConstraintSet] = field(default_factory=dict)

    def for_category(self, category: str) -> ConstraintSet:
        return self.overrides.get(category, self.default)


STRICT_ENVELOPE = ConstraintEnvelope(name="strict")


def envelope_cascade(reason: Optional[str] = None) -> Tuple[ConstraintEnvelope, ...]:
    """Envelopes tried in order for transit entries, strictest first.

    Only tops and bottoms are relaxed; outerwear and footwear stay strict.
    """

    reason_occasions = REASON_OCCASIONS.get(normalize_tag(reason)) if reason else None
    place_relaxed = ConstraintSet(place=False)
    place_occasion_relaxed = ConstraintSet(place=False, occasion=False)
    fully_relaxed = ConstraintSet(weather=False, occasion=False, place=False, reason_occasions=reason_occasions)
    return (
        STRICT_ENVELOPE,
        ConstraintEnvelope("relax_place", overrides={TOP: place_relaxed, BOTTOM: place_relaxed}),
        ConstraintEnvelope(
            "relax_place_occasion", overrides={TOP: place_occasion_relaxed, BOTTOM: place_occasion_relaxed}
        ),
        ConstraintEnvelope("relax_full_reason_aware", overrides={TOP: fully_relaxed, BOTTOM: fully_relaxed}),
    )


ENVELOPE_CASCADE = envelope_cascade()


@dataclass(frozen=True)
class EntryResult:
    index: int
    kind: DayKind
    lineup: Lineup
    items: Tuple[CatalogItem, ...]
    envelope: str
    match_score: int
    confidence: int
    day: Optional[date] = None
    reused_item_ids: Tuple[int, ...] = ()
    diversity_exhausted: bool = False

    @property
    def signature(self) -> str:
        return self.lineup.signature


@dataclass(frozen=True)
class SkippedEntry:
    index: int
    kind: DayKind
    reason: str
    day: Optional[date] = None
    failure: Optional[EngineFailure] = None


@dataclass
class SequencePlan:
    entries: List[EntryResult] = field(default_factory=list)
    skipped: List[SkippedEntry] = field(default_factory=list)
    locks: Dict[str, int] = field(default_factory=dict)
    failure: Optional[EngineFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class _PlanState:
    """Mutable bookkeeping owned by a single planning pass."""

    used_item_ids: Set[int] = field(default_factory=set)
    used_signatures: Set[str] = field(default_factory=set)
    recent: List[HistoryEntry] = field(default_factory=list)
    locks: Dict[str, int] = field(default_factory=dict)
    transit_reserved: Set[int] = field(default_factory=set)


def _is_viable(result: FilteringResult, required: Sequence[str], min_pool_size: int) -> bool:
    covered = {CatalogIndex.classify(item) for item in result.items}
    return len(result.items) >= min_pool_size and all(category in covered for category in required)


def resolve_envelope(
    entry: SequenceEntry,
    catalog: CatalogIndex,
    intent: CanonicalIntent,
    weather: WeatherContext,
    config: EngineConfig,
    reason: Optional[str] = None,
) -> Tuple[ConstraintEnvelope, FilteringResult]:
    """Return the first viable envelope and its pool.

    Stay entries only use the strict envelope. When nothing in the cascade is
    viable the most relaxed envelope is returned so that slot assignment can
    report which category is missing.
    """

    envelopes = envelope_cascade(reason) if entry.is_transit else (STRICT_ENVELOPE,)
    result: Optional[FilteringResult] = None
    for envelope in envelopes:
        result = filter_pool(
            catalog.items,
            intent,
            weather,
            envelope.default,
            dict(envelope.overrides),
            config.wet_safety,
        )
        if _is_viable(result, config.required_categories, config.sequence.min_pool_size):
            return envelope, result
    return envelopes[-1], result


def choose_outerwear_lock(
    catalog: CatalogIndex,
    prepared: Sequence[Tuple[SequenceEntry, CanonicalIntent, WeatherContext]],
    config: EngineConfig,
) -> Optional[int]:
    """Pick the one outerwear item passing every entry's strict constraints."""

    best: Optional[Tuple[float, int]] = None
    for item in catalog.members(OUTERWEAR):
        if not all(evaluate(item, intent, weather, STRICT, config.wet_safety).passes for _, intent, weather in prepared):
            continue
        total = sum(score_item(item, ScoringContext.build(intent, config)) for _, intent, _ in prepared)
        key = (-total, item.item_id)
        if best is None or key < best:
            best = key
    return best[1] if best else None


def _window(history: Sequence[HistoryEntry], entry: SequenceEntry, state: _PlanState, size: int) -> List[HistoryEntry]:
    same_index = [row for row in history if row.index == entry.index]
    return same_index + (state.recent[-size:] if size > 0 else [])


def _skip(plan: SequencePlan, entry: SequenceEntry, reason: str, failure: Optional[EngineFailure] = None) -> None:
    plan.skipped.append(SkippedEntry(index=entry.index, kind=entry.kind, reason=reason, day=entry.day, failure=failure))
    log_event(
        LOGGER,
        logging.WARNING,
        "sequence_entry_skipped",
        entry_index=entry.index,
        entry_kind=entry.kind.value,
        reason=reason,
        failure=failure.to_dict() if failure else None,
    )


def plan_sequence(
    entries: Sequence[SequenceEntry],
    catalog: CatalogIndex,
    config: EngineConfig | None = None,
    history: Sequence[HistoryEntry] = (),
    reason: Optional[str] = None,
    anchor: Optional[Anchor] = None,
) -> SequencePlan:
    """Plan one lineup per entry in order.

    The outerwear lock is decided before any entry is processed; when no
    single outerwear item satisfies every entry the whole plan fails with a
    lock conflict. Individual entry failures are recorded and skipped.
    """

    config = config or EngineConfig()
    required = config.required_categories
    settings = config.sequence
    plan = SequencePlan()
    state = _PlanState()

    ordered = sorted(entries, key=lambda entry: entry.index)
    prepared = []
    for entry in ordered:
        intent = synthesize_intent(entry.intent)
        prepared.append((entry, intent, resolve_weather_context(intent)))

    if OUTERWEAR in required and prepared:
        outerwear_id = choose_outerwear_lock(catalog, prepared, config)
        if outerwear_id is None:
            plan.failure = EngineFailure(
                kind=FailureKind.LOCK_CONFLICT,
                message="No single outerwear item satisfies every entry",
                details={"category": OUTERWEAR, "entries": len(prepared)},
            )
            log_event(LOGGER, logging.WARNING, "sequence_lock_conflict", category=OUTERWEAR, entries=len(prepared))
            return plan
        state.locks[OUTERWEAR] = outerwear_id

    for entry, intent, weather in prepared:
        envelope, pool = resolve_envelope(entry, catalog, intent, weather, config, reason)
        entry_locks = {OUTERWEAR: state.locks[OUTERWEAR]} if OUTERWEAR in state.locks else {}
        blocked: FrozenSet[int] = frozenset()
        if not entry.is_transit:
            if FOOTWEAR in state.locks:
                entry_locks[FOOTWEAR] = state.locks[FOOTWEAR]
            blocked = frozenset(state.transit_reserved - set(entry_locks.values()))

        gate = hard_gate(intent, weather, envelope.default, dict(envelope.overrides), config.wet_safety)
        context = ScoringContext.build(intent, config, used_item_ids=state.used_item_ids, hard_gate=gate)
        assignment = assign(pool.items, required, context, locks=entry_locks, anchor=anchor, blocked_ids=blocked)
        if not assignment.ok:
            _skip(plan, entry, assignment.failure.kind.value, assignment.failure)
            continue

        pins = pinned_slots(assignment.lineup, entry_locks, anchor)
        window = _window(history, entry, state, settings.recent_window)
        diversified = diversify(
            assignment.lineup,
            pool.items,
            context,
            history=window,
            used_signatures=state.used_signatures,
            locks=pins,
            blocked_ids=blocked,
            overlap_threshold=settings.overlap_threshold,
        )
        lineup = diversified.lineup
        mapping = lineup.as_mapping()
        if tuple(lineup.categories) != tuple(required) or len(set(lineup.item_ids)) != len(lineup.item_ids):
            _skip(plan, entry, "category_deviation")
            continue
        if any(mapping.get(category) != item_id for category, item_id in pins.items()):
            _skip(plan, entry, "lock_deviation")
            continue

        items = tuple(catalog.get(item_id) for item_id in lineup.item_ids)
        match = match_score(items, intent, required)
        reused = tuple(item_id for item_id in lineup.item_ids if item_id in state.used_item_ids)
        plan.entries.append(
            EntryResult(
                index=entry.index,
                kind=entry.kind,
                lineup=lineup,
                items=items,
                envelope=envelope.name,
                match_score=match,
                confidence=blend_confidence(None, match, floor=config.rerank.min_confidence),
                day=entry.day,
                reused_item_ids=reused,
                diversity_exhausted=diversified.exhausted,
            )
        )

        state.used_item_ids.update(lineup.item_ids)
        state.used_signatures.add(lineup.signature)
        state.recent.append(HistoryEntry.from_lineup(lineup, entry.day, entry.index))
        if entry.is_transit:
            locked_ids = set(state.locks.values())
            state.transit_reserved.update(item_id for item_id in lineup.item_ids if item_id not in locked_ids)
        elif settings.lock_footwear_on_stay_days and FOOTWEAR in required and FOOTWEAR not in state.locks:
            state.locks[FOOTWEAR] = mapping[FOOTWEAR]

    plan.locks = dict(state.locks)
    LOGGER.info(
        "Planned sequence",
        extra={"planned": len(plan.entries), "skipped": len(plan.skipped), "locks": plan.locks},
    )
    return plan


def sequence_fingerprint(destination: str, reason: Optional[str], start: date, end: date) -> str:
    """Stable identity of a trip used to scope history rows."""

    raw = "|".join([normalize_tag(destination), normalize_tag(reason), start.isoformat(), end.isoformat()])
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def build_trip_entries(
    start: date,
    end: date,
    intent: CanonicalIntent,
    day_intents: Optional[Mapping[date, CanonicalIntent]] = None,
) -> List[SequenceEntry]:
    """Expand a date range into entries; the first and last days are transit."""

    if end < start:
        raise ValueError("Trip end date must not be before its start date")
    day_intents = day_intents or {}
    total = (end - start).days + 1
    entries: List[SequenceEntry] = []
    for offset in range(total):
        day = start + timedelta(days=offset)
        kind = DayKind.TRANSIT if offset in {0, total - 1} else DayKind.STAY
        entries.append(SequenceEntry(index=offset, intent=day_intents.get(day, intent), kind=kind, day=day))
    return entries


__all__ = [
    "DayKind",
    "SequenceEntry",
    "ConstraintEnvelope",
    "STRICT_ENVELOPE",
    "ENVELOPE_CASCADE",
    "envelope_cascade",
    "EntryResult",
    "SkippedEntry",
    "SequencePlan",
    "resolve_envelope",
    "choose_outerwear_lock",
    "plan_sequence",
    "sequence_fingerprint",
    "build_trip_entries",
]
