"""Hard compatibility and wet-weather safety rules for catalog items."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from lineup_app.config import WetSafetyThresholds
from logic.context_synthesizer import WeatherContext
from models.catalog_item import CatalogItem
from models.intent import CanonicalIntent
from models.materials import ABSORBENT, TECHNICAL
from models.taxonomy import ALL_SEASON_ALIAS, WET_GATED_CATEGORIES

FAILED_SCORE = -1_000_000

RAIN_READY_PATTERN = re.compile(
    r"\b(waterproof|water[- ]?resistant|water[- ]?repellent|weatherproof|rainproof|storm[- ]?proof|"
    r"sealed seams?|taped seams?|seam[- ]?sealed|gore[- ]?tex|dwr|membrane|rubber(?:ised|ized)? sole|"
    r"lug sole|hydroshield|h2no)\b",
    re.IGNORECASE,
)
NON_RAIN_ARCHETYPE_PATTERN = re.compile(
    r"\b(overshirts?|shackets?|sneakers?|trainers?|espadrilles?|loafers?|sandals?|mules?|slippers?|"
    r"suede|canvas|blazers?|cardigans?|denim jackets?|knit)\b",
    re.IGNORECASE,
)


class FailReason(str, Enum):
    WEATHER = "weather_mismatch"
    OCCASION = "occasion_mismatch"
    PLACE = "place_mismatch"
    WET_SAFETY = "not_rain_ready"
    REASON_OCCASION = "reason_occasion_mismatch"


class RainReadiness(str, Enum):
    NOT_APPLICABLE = "not_applicable"
    RAIN_READY = "rain_ready"
    NOT_RAIN_READY = "not_rain_ready"


@dataclass(frozen=True)
class ConstraintSet:
    """Which hard rules apply to an item.

    ``reason_occasions`` is only used when occasion matching is relaxed: the
    item must still carry an occasion acceptable for the trip reason (or no
    occasion tags at all).
    """

    weather: bool = True
    occasion: bool = True
    place: bool = True
    wet_safety: bool = True
    reason_occasions: Optional[FrozenSet[str]] = None


STRICT = ConstraintSet()


@dataclass(frozen=True)
class ConstraintResult:
    passes: bool
    reasons: Tuple[FailReason, ...] = ()
    rain_readiness: RainReadiness = RainReadiness.NOT_APPLICABLE


@dataclass(frozen=True)
class FilteringResult:
    """Captures the outcome of one filtering pass."""

    items: List[CatalogItem]
    removed: Dict[int, Tuple[str, ...]]
    debug: Dict[str, object] = field(default_factory=dict)


def _intersects(intent_tags: Iterable[str], item_tags: FrozenSet[str]) -> bool:
    wanted = set(intent_tags)
    return not wanted or bool(wanted & item_tags)


def weather_matches(item: CatalogItem, intent: CanonicalIntent) -> bool:
    return ALL_SEASON_ALIAS in item.suitable_weather or _intersects(intent.weather, item.suitable_weather)


def occasion_matches(item: CatalogItem, intent: CanonicalIntent) -> bool:
    return _intersects(intent.occasion, item.suitable_occasions)


def place_matches(item: CatalogItem, intent: CanonicalIntent) -> bool:
    return _intersects(intent.place, item.suitable_places)


def rain_readiness(
    item: CatalogItem,
    weather: WeatherContext,
    thresholds: WetSafetyThresholds | None = None,
) -> RainReadiness:
    """Classify an item against the wet-weather gate.

    Positive signals (rain vocabulary, technical-dominant mix) win over
    negative ones. Without either, high risk fails the item when
    ``require_positive_signal_at_high`` is set.
    """

    thresholds = thresholds or WetSafetyThresholds()
    if not weather.wet_gate_active or item.category not in WET_GATED_CATEGORIES:
        return RainReadiness.NOT_APPLICABLE

    technical = item.material_shares.get(TECHNICAL, 0.0)
    absorbent = item.material_shares.get(ABSORBENT, 0.0)
    if RAIN_READY_PATTERN.search(item.features) or technical >= thresholds.technical_dominant_share:
        return RainReadiness.RAIN_READY

    archetype_text = f"{item.item_type} {item.name or ''}"
    if NON_RAIN_ARCHETYPE_PATTERN.search(archetype_text) and technical < thresholds.technical_backing_share:
        return RainReadiness.NOT_RAIN_READY

    high_risk = weather.wet_risk == "high"
    cutoff = thresholds.absorbent_cutoff_high if high_risk else thresholds.absorbent_cutoff_medium
    if absorbent > cutoff and technical < thresholds.low_technical_share:
        return RainReadiness.NOT_RAIN_READY
    if high_risk and thresholds.require_positive_signal_at_high:
        return RainReadiness.NOT_RAIN_READY
    return RainReadiness.RAIN_READY


def evaluate(
    item: CatalogItem,
    intent: CanonicalIntent,
    weather: WeatherContext,
    constraints: ConstraintSet = STRICT,
    thresholds: WetSafetyThresholds | None = None,
) -> ConstraintResult:
    """Check one item against the enabled hard rules, collecting every failure."""

    reasons: List[FailReason] = []
    if constraints.weather and not weather_matches(item, intent):
        reasons.append(FailReason.WEATHER)
    if constraints.occasion and not occasion_matches(item, intent):
        reasons.append(FailReason.OCCASION)
    if (
        not constraints.occasion
        and constraints.reason_occasions is not None
        and item.suitable_occasions
        and not item.suitable_occasions & constraints.reason_occasions
    ):
        reasons.append(FailReason.REASON_OCCASION)
    if constraints.place and not place_matches(item, intent):
        reasons.append(FailReason.PLACE)

    readiness = RainReadiness.NOT_APPLICABLE
    if constraints.wet_safety:
        readiness = rain_readiness(item, weather, thresholds)
        if readiness is RainReadiness.NOT_RAIN_READY:
            reasons.append(FailReason.WET_SAFETY)
    return ConstraintResult(passes=not reasons, reasons=tuple(reasons), rain_readiness=readiness)


def filter_pool(
    items: Iterable[CatalogItem],
    intent: CanonicalIntent,
    weather: WeatherContext,
    constraints: ConstraintSet = STRICT,
    overrides: Optional[Dict[str, ConstraintSet]] = None,
    thresholds: WetSafetyThresholds | None = None,
) -> FilteringResult:
    """Keep the items passing their category's constraint set."""

    overrides = overrides or {}
    kept: List[CatalogItem] = []
    removed: Dict[int, Tuple[str, ...]] = {}
    rain_ready = 0
    candidates = list(items)
    for item in candidates:
        result = evaluate(item, intent, weather, overrides.get(item.category, constraints), thresholds)
        if result.passes:
            kept.append(item)
            if result.rain_readiness is RainReadiness.RAIN_READY:
                rain_ready += 1
        else:
            removed[item.item_id] = tuple(reason.value for reason in result.reasons)

    debug = {
        "input_count": len(candidates),
        "kept_count": len(kept),
        "removed_count": len(removed),
        "wet_gate_active": weather.wet_gate_active,
        "wet_surface_risk": weather.wet_risk,
        "rain_ready_count": rain_ready,
    }
    return FilteringResult(items=kept, removed=removed, debug=debug)


def hard_gate(
    intent: CanonicalIntent,
    weather: WeatherContext,
    constraints: ConstraintSet = STRICT,
    overrides: Optional[Dict[str, ConstraintSet]] = None,
    thresholds: WetSafetyThresholds | None = None,
) -> Callable[[CatalogItem], bool]:
    """Return a predicate applying the same per-category rules as ``filter_pool``."""

    overrides = dict(overrides or {})

    def passes(item: CatalogItem) -> bool:
        return evaluate(item, intent, weather, overrides.get(item.category, constraints), thresholds).passes

    return passes


__all__ = [
    "FAILED_SCORE",
    "FailReason",
    "RainReadiness",
    "ConstraintSet",
    "STRICT",
    "ConstraintResult",
    "FilteringResult",
    "weather_matches",
    "occasion_matches",
    "place_matches",
    "rain_readiness",
    "evaluate",
    "filter_pool",
    "hard_gate",
]
