"""Deterministic soft scoring for constraint-passing catalog items."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from lineup_app.config import EngineConfig, MaterialWeights, ScoreWeights
from logic.catalog_index import CatalogIndex
from logic.constraints import FAILED_SCORE
from models.catalog_item import CatalogItem
from models.intent import CanonicalIntent, DerivedProfile, WeatherProfile
from models.materials import ABSORBENT, BREATHABLE, INSULATING, REFINED, RUGGED, TECHNICAL
from models.taxonomy import (
    ALL_DAY_ALIAS,
    ALL_SEASON_ALIAS,
    REFINED_SIGNALS,
    REQUIRED_CATEGORIES,
    RUGGED_SIGNALS,
    WET_GATED_CATEGORIES,
)


@dataclass(frozen=True)
class ScoringContext:
    """Everything the scorer needs for one lineup decision."""

    intent: CanonicalIntent
    weather: WeatherProfile
    derived: Optional[DerivedProfile] = None
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    materials: MaterialWeights = field(default_factory=MaterialWeights)
    used_item_ids: FrozenSet[int] = frozenset()
    soft_anchor_ids: FrozenSet[int] = frozenset()
    # items failing this gate score FAILED_SCORE instead of their soft score
    hard_gate: Optional[Callable[[CatalogItem], bool]] = field(default=None, compare=False)

    @classmethod
    def build(
        cls,
        intent: CanonicalIntent,
        config: EngineConfig | None = None,
        used_item_ids: Iterable[int] = (),
        soft_anchor_ids: Iterable[int] = (),
        hard_gate: Optional[Callable[[CatalogItem], bool]] = None,
    ) -> "ScoringContext":
        config = config or EngineConfig()
        return cls(
            intent=intent,
            weather=intent.weather_profile or WeatherProfile(),
            derived=intent.derived_profile,
            weights=config.scores,
            materials=config.materials,
            used_item_ids=frozenset(used_item_ids),
            soft_anchor_ids=frozenset(soft_anchor_ids),
            hard_gate=hard_gate,
        )

    def with_used(self, used_item_ids: Iterable[int]) -> "ScoringContext":
        return replace(self, used_item_ids=frozenset(used_item_ids))


def _matches(item_tags: FrozenSet[str], wanted: Sequence[str], alias: Optional[str] = None) -> bool:
    if not wanted:
        return False
    if alias and alias in item_tags:
        return True
    return bool(item_tags & set(wanted))


def material_intent_score(
    item: CatalogItem,
    intent: CanonicalIntent,
    weather: WeatherProfile,
    derived: Optional[DerivedProfile],
    weights: MaterialWeights | None = None,
) -> float:
    """Weighted contribution of an item's material bucket shares."""

    weights = weights or MaterialWeights()
    shares = item.material_shares
    breathable = shares.get(BREATHABLE, 0.0)
    insulating = shares.get(INSULATING, 0.0)
    technical = shares.get(TECHNICAL, 0.0)
    absorbent = shares.get(ABSORBENT, 0.0)
    refined = shares.get(REFINED, 0.0)
    rugged = shares.get(RUGGED, 0.0)

    score = 0.0
    if weather.temp_band == "hot":
        score += breathable * weights.hot_breathable + insulating * weights.hot_insulating
    elif weather.temp_band == "warm":
        score += breathable * weights.warm_breathable + insulating * weights.warm_insulating
    elif weather.temp_band == "cool":
        score += insulating * weights.cool_insulating + breathable * weights.cool_breathable
    elif weather.temp_band == "cold":
        score += insulating * weights.cold_insulating + breathable * weights.cold_breathable

    if item.category in WET_GATED_CATEGORIES and weather.has_precipitation:
        if weather.wet_surface_risk == "high":
            score += technical * weights.wet_technical_high + absorbent * weights.wet_absorbent_high
        elif weather.wet_surface_risk == "medium":
            score += technical * weights.wet_technical_medium + absorbent * weights.wet_absorbent_medium

    signals = set(intent.occasion) | set(intent.place)
    if signals & REFINED_SIGNALS:
        score += refined * weights.refined_signal_refined + technical * weights.refined_signal_technical
    elif signals & RUGGED_SIGNALS:
        score += (
            rugged * weights.rugged_signal_rugged
            + technical * weights.rugged_signal_technical
            + refined * weights.rugged_signal_refined
        )

    if derived is not None:
        targets = derived.material_targets
        score += sum(shares.get(bucket, 0.0) for bucket in targets.prefer) * weights.derived_prefer
        score += sum(shares.get(bucket, 0.0) for bucket in targets.avoid) * weights.derived_avoid
    return round(score, 4)


def score_item(item: CatalogItem, context: ScoringContext) -> float:
    """Base soft score; only meaningful for items that passed the hard rules."""

    intent = context.intent
    weights = context.weights
    score = 0.0
    if _matches(item.suitable_weather, intent.weather, ALL_SEASON_ALIAS):
        score += weights.weather
    if _matches(item.suitable_occasions, intent.occasion):
        score += weights.occasion
    if _matches(item.suitable_places, intent.place):
        score += weights.place
    if _matches(item.suitable_times_of_day, intent.time_of_day, ALL_DAY_ALIAS):
        score += weights.time_of_day
    formality = intent.effective_formality
    if formality and item.formality == formality:
        score += weights.formality
    if item.style and item.style in intent.effective_style:
        score += weights.style
    score += material_intent_score(item, intent, context.weather, context.derived, context.materials)
    return round(score, 4)


def caller_bonus(item: CatalogItem, context: ScoringContext) -> float:
    """Style directive, favorite, novelty and soft anchor adjustments."""

    weights = context.weights
    bonus = 0.0
    if context.intent.style:
        bonus += weights.style_directive_match if item.style in context.intent.style else weights.style_directive_miss
    if item.favorite:
        bonus += weights.favorite
    if item.item_id not in context.used_item_ids:
        bonus += weights.novelty
    if item.item_id in context.soft_anchor_ids:
        bonus += weights.soft_anchor
    return bonus


def total_score(item: CatalogItem, context: ScoringContext) -> float:
    if context.hard_gate is not None and not context.hard_gate(item):
        return float(FAILED_SCORE)
    return round(score_item(item, context) + caller_bonus(item, context), 4)


def rank_candidates(items: Iterable[CatalogItem], context: ScoringContext) -> List[Tuple[CatalogItem, float]]:
    """Sort items by descending total score, ties by ascending id."""

    scored = [(item, total_score(item, context)) for item in items]
    scored.sort(key=lambda pair: (-pair[1], pair[0].item_id))
    return scored


def _ratio(hits: Sequence[bool]) -> float:
    return 100.0 * sum(1 for hit in hits if hit) / len(hits)


def match_score(
    items: Sequence[CatalogItem],
    intent: CanonicalIntent,
    required: Sequence[str] = REQUIRED_CATEGORIES,
) -> int:
    """Objective 0-100 agreement between a lineup and the intent.

    Each requested dimension contributes the share of items matching it;
    category completeness is always one of the averaged dimensions.
    """

    if not items:
        return 0
    dimensions: List[float] = []
    if intent.weather:
        dimensions.append(_ratio([_matches(item.suitable_weather, intent.weather, ALL_SEASON_ALIAS) for item in items]))
    if intent.occasion:
        dimensions.append(_ratio([_matches(item.suitable_occasions, intent.occasion) for item in items]))
    if intent.place:
        dimensions.append(_ratio([_matches(item.suitable_places, intent.place) for item in items]))
    if intent.time_of_day:
        dimensions.append(
            _ratio([_matches(item.suitable_times_of_day, intent.time_of_day, ALL_DAY_ALIAS) for item in items])
        )
    if intent.formality:
        dimensions.append(_ratio([item.formality == intent.formality for item in items]))
    if intent.style:
        dimensions.append(_ratio([item.style in intent.style for item in items]))

    present = {CatalogIndex.classify(item) for item in items}
    wanted = list(required) or list(REQUIRED_CATEGORIES)
    dimensions.append(100.0 * sum(1 for category in wanted if category in present) / len(wanted))
    return int(round(sum(dimensions) / len(dimensions)))


def blend_confidence(
    generator_confidence: Optional[float],
    match: float,
    generator_weight: float = 0.3,
    floor: float = 20.0,
) -> int:
    """Blend an upstream generator confidence with the objective match score."""

    if generator_confidence is None:
        blended = match
    else:
        blended = generator_weight * generator_confidence + (1 - generator_weight) * match
    return int(max(floor, min(100.0, round(blended))))


__all__ = [
    "ScoringContext",
    "material_intent_score",
    "score_item",
    "caller_bonus",
    "total_score",
    "rank_candidates",
    "match_score",
    "blend_confidence",
]
