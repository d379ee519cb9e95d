"""Tests for soft scoring, match scores and confidence blending."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from lineup_app.config import EngineConfig, ScoreWeights
from logic.constraints import FAILED_SCORE, hard_gate
from logic.context_synthesizer import resolve_weather_context
from logic.scoring import (
    ScoringContext,
    blend_confidence,
    caller_bonus,
    match_score,
    material_intent_score,
    rank_candidates,
    score_item,
)
from models.catalog_item import from_raw_metadata
from models.intent import CanonicalIntent, DerivedProfile, MaterialTargets, WeatherProfile


def _item(item_id: int, item_type: str, materials=(("elastane", 100),), **extra):
    return from_raw_metadata(
        {
            "id": item_id,
            "type": item_type,
            "materialComposition": [{"material": name, "percentage": share} for name, share in materials],
            **extra,
        }
    )


def test_full_tag_match_adds_every_dimension_weight() -> None:
    intent = CanonicalIntent(
        weather=["cold"],
        occasion=["casual social"],
        place=["city streets"],
        time_of_day=["morning"],
        formality="casual",
        style=["minimal"],
    )
    item = _item(
        1,
        "Shirt",
        suitableWeather=["Cold"],
        suitableOccasions=["Casual Social"],
        suitablePlaces=["City Streets"],
        suitableTimesOfDay=["All Day"],
        formality="Casual",
        style="Minimal",
    )

    assert score_item(item, ScoringContext.build(intent)) == 112.0
    assert score_item(_item(2, "Shirt"), ScoringContext.build(intent)) == 0.0


def test_material_intent_follows_temperature_and_wet_risk() -> None:
    intent = CanonicalIntent()
    linen = _item(3, "Shirt", [("linen", 100)])
    assert material_intent_score(linen, intent, WeatherProfile(temp_band="hot"), None) == 12.0
    assert material_intent_score(linen, intent, WeatherProfile(temp_band="cold"), None) == -6.0

    wet = WeatherProfile(precipitation_level="heavy", precipitation_type="rain", wet_surface_risk="high")
    shell = _item(4, "Shell Jacket", [("nylon", 100)])
    nylon_top = _item(5, "Shirt", [("nylon", 100)])
    assert material_intent_score(shell, intent, wet, None) == 10.0
    assert material_intent_score(nylon_top, intent, wet, None) == 0.0


def test_material_intent_uses_occasion_signal_and_derived_targets() -> None:
    silk = _item(6, "Blouse", [("silk", 100)])
    formal = CanonicalIntent(occasion=["black tie / evening wear"])
    assert material_intent_score(silk, formal, WeatherProfile(), None) == 6.0

    derived = DerivedProfile(material_targets=MaterialTargets(prefer=["refined"], avoid=["breathable"]))
    # silk is both refined and breathable, so the derived targets cancel out
    assert material_intent_score(silk, CanonicalIntent(), WeatherProfile(), derived) == 0.0


def test_caller_bonuses() -> None:
    intent = CanonicalIntent(style=["minimal"])
    context = ScoringContext.build(intent, used_item_ids=[2], soft_anchor_ids=[3])
    weights = ScoreWeights()

    matching = _item(1, "Shirt", style="Minimal", favorite=True)
    used_mismatch = _item(2, "Shirt", style="Rugged")
    anchored = _item(3, "Shirt", style="Rugged")

    assert caller_bonus(matching, context) == weights.style_directive_match + weights.favorite + weights.novelty
    assert caller_bonus(used_mismatch, context) == weights.style_directive_miss
    assert caller_bonus(anchored, context) == weights.style_directive_miss + weights.novelty + weights.soft_anchor


def test_rank_candidates_breaks_ties_by_item_id() -> None:
    context = ScoringContext.build(CanonicalIntent())
    ranked = rank_candidates([_item(9, "Shirt"), _item(4, "Shirt"), _item(7, "Shirt", favorite=True)], context)
    assert [item.item_id for item, _ in ranked] == [7, 4, 9]


def test_items_failing_the_hard_gate_rank_below_passing_items() -> None:
    intent = CanonicalIntent(weather=["cold"], place=["city streets"])
    config = EngineConfig(scores=ScoreWeights(favorite=100.0))
    off_season = _item(1, "Shirt", suitableWeather=["Hot"], suitablePlaces=["City Streets"], favorite=True)
    in_season = _item(2, "Shirt", suitableWeather=["Cold"], suitablePlaces=["City Streets"])

    ungated = rank_candidates([off_season, in_season], ScoringContext.build(intent, config))
    assert [(item.item_id, score) for item, score in ungated] == [(1, 129.0), (2, 69.0)]

    gate = hard_gate(intent, resolve_weather_context(intent))
    gated = rank_candidates([off_season, in_season], ScoringContext.build(intent, config, hard_gate=gate))
    assert [(item.item_id, score) for item, score in gated] == [(2, 69.0), (1, FAILED_SCORE)]


def test_match_score_averages_dimensions_with_completeness() -> None:
    intent = CanonicalIntent(weather=["cold"])
    lineup = [
        _item(1, "Parka", suitableWeather=["Cold"]),
        _item(2, "Sweater", suitableWeather=["All Season"]),
        _item(3, "Jeans", suitableWeather=["Hot"]),
        _item(4, "Boots", suitableWeather=["Warm"]),
    ]
    assert match_score(lineup, intent) == 75
    assert match_score(lineup[:2], CanonicalIntent()) == 50
    assert match_score([], intent) == 0


def test_blend_confidence_is_clamped() -> None:
    assert blend_confidence(80, 50) == 59
    assert blend_confidence(None, 10) == 20
    assert blend_confidence(100, 100) == 100
    assert blend_confidence(0, 40, floor=EngineConfig().rerank.min_confidence) == 28


@pytest.mark.parametrize("band, expected", [("warm", 8.0), ("cool", -2.0), ("mild", 0.0)])
def test_breathable_share_by_band(band: str, expected: float) -> None:
    cotton = _item(8, "Shirt", [("cotton", 100)])
    assert material_intent_score(cotton, CanonicalIntent(), WeatherProfile(temp_band=band), None) == expected
