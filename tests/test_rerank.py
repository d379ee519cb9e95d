"""Tests for proposal validation, penalty ranking and the greedy fallback."""
from __future__ import annotations

import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.catalog_index import CatalogIndex
from logic.rerank import CandidateProposal, context_similarity, select_lineup
from models.catalog_item import load_catalog
from models.intent import CanonicalIntent, WeatherProfile
from models.lineup import (
    Anchor,
    FailureKind,
    FeedbackEntry,
    HistoryEntry,
    Vote,
    lineup_signature,
)

FIRST = (1, 10, 20, 30)
SECOND = (2, 11, 21, 31)


def _catalog() -> CatalogIndex:
    rows = [
        (1, "Parka"),
        (2, "Overcoat"),
        (10, "Shirt"),
        (11, "Sweater"),
        (20, "Jeans"),
        (21, "Chinos"),
        (30, "Boots"),
        (31, "Loafers"),
    ]
    catalog = [{"id": item_id, "type": item_type, "suitableWeather": ["All Season"]} for item_id, item_type in rows]
    catalog.append({"id": 12, "type": "Linen Shirt", "suitableWeather": ["Hot"]})
    return CatalogIndex(load_catalog(catalog))


def _proposals(first_confidence: float = 90, second_confidence: float = 50):
    return [
        CandidateProposal(item_ids=FIRST, generator_confidence=first_confidence, label="first"),
        CandidateProposal(item_ids=SECOND, generator_confidence=second_confidence, label="second"),
    ]


def test_highest_confidence_proposal_wins_without_history() -> None:
    result = select_lineup(_proposals(), _catalog(), CanonicalIntent())

    assert result.ok
    assert not result.fallback_used
    assert result.selected.lineup.item_ids == FIRST
    assert [candidate.confidence for candidate in result.ranked] == [97, 85]
    assert result.selected.match_score == 100
    assert all(value == 0 for value in result.selected.penalties.values())


def test_ties_break_by_signature() -> None:
    proposals = [
        CandidateProposal(item_ids=SECOND, generator_confidence=90),
        CandidateProposal(item_ids=FIRST, generator_confidence=90),
    ]
    result = select_lineup(proposals, _catalog(), CanonicalIntent())

    assert result.selected.proposal_index == 1
    assert result.selected.signature == "1-10-20-30"


def test_repeat_and_history_overlap_penalties_demote_a_recent_lineup() -> None:
    history = [HistoryEntry(signature=lineup_signature(FIRST), item_ids=FIRST)]

    result = select_lineup(_proposals(), _catalog(), CanonicalIntent(), history=history)

    assert result.selected.lineup.item_ids == SECOND
    demoted = result.ranked[1]
    assert demoted.penalties["repeat"] == 12.0
    assert demoted.penalties["history_overlap"] == 20.0
    assert demoted.rank_score == 65.0


def test_down_votes_penalise_by_context_similarity() -> None:
    feedback = [
        FeedbackEntry(signature=lineup_signature(SECOND), item_ids=SECOND, vote=Vote.DOWN),
        FeedbackEntry(signature=lineup_signature(FIRST), item_ids=FIRST, vote=Vote.UP),
    ]

    result = select_lineup(_proposals(), _catalog(), CanonicalIntent(), feedback=feedback)

    by_label = {candidate.label: candidate for candidate in result.ranked}
    assert by_label["second"].penalties["feedback"] == 3.75
    assert by_label["first"].penalties["feedback"] == 0.0


def test_context_similarity_levels() -> None:
    entry = FeedbackEntry(
        signature="1-2",
        item_ids=(1, 2),
        vote=Vote.DOWN,
        weather_profile=WeatherProfile(temp_band="cold"),
        formality="casual",
    )

    assert context_similarity(entry, WeatherProfile(temp_band="cold"), "casual") == 1.0
    assert context_similarity(entry, WeatherProfile(temp_band="cold"), None) == 0.5
    assert context_similarity(entry, WeatherProfile(temp_band="hot"), "formal") == 0.25


def test_style_directive_mismatch_is_penalised_per_item() -> None:
    result = select_lineup(_proposals(), _catalog(), CanonicalIntent(style=["minimal"]))

    assert result.selected.penalties["style_mismatch"] == 16.0


def test_unknown_ids_are_dropped_and_failing_items_reject_the_proposal() -> None:
    proposals = [
        CandidateProposal(item_ids=(1, 12, 20, 30)),
        CandidateProposal(item_ids=FIRST + (999,)),
    ]
    result = select_lineup(proposals, _catalog(), CanonicalIntent(weather=["cold"]))

    assert result.selected.lineup.item_ids == FIRST
    assert result.selected.proposal_index == 1
    index, failure = result.rejected[0]
    assert index == 0
    assert failure.kind is FailureKind.VALIDATION
    assert failure.details["item_ids"] == [12]


def test_incomplete_proposal_is_rejected_with_structural_cause() -> None:
    result = select_lineup([CandidateProposal(item_ids=(1, 10, 20))] + _proposals(), _catalog(), CanonicalIntent())

    index, failure = result.rejected[0]
    assert index == 0
    assert failure.details["cause"] == "structural_failure"
    assert failure.details["missing_categories"] == ["footwear"]


def test_strict_anchor_rejects_proposals_without_it() -> None:
    result = select_lineup(_proposals(), _catalog(), CanonicalIntent(), anchor=Anchor(item_id=11))

    assert result.selected.lineup.item_ids == SECOND
    assert [index for index, _ in result.rejected] == [0]


def test_fallback_builds_a_lineup_when_every_proposal_fails(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="logic.rerank")
    proposals = [CandidateProposal(item_ids=(1, 12, 20, 30)), CandidateProposal(item_ids=(404, 405))]

    result = select_lineup(proposals, _catalog(), CanonicalIntent(weather=["cold"]))

    assert result.fallback_used
    assert result.selected.label == "fallback"
    assert result.selected.lineup.item_ids == FIRST
    assert len(result.rejected) == 2
    assert any(getattr(record, "event", None) == "rerank_fallback" for record in caplog.records)


def test_fallback_reports_structural_failure_when_catalog_is_incomplete() -> None:
    catalog = CatalogIndex(load_catalog([{"id": 1, "type": "Parka"}, {"id": 10, "type": "Shirt"}]))

    result = select_lineup([], catalog, CanonicalIntent())

    assert not result.ok
    assert result.fallback_used
    assert result.failure.kind is FailureKind.STRUCTURAL
