"""Validate and rank externally proposed lineups, with a greedy fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from lineup_app.config import EngineConfig, RerankWeights
from lineup_app.logging_config import log_event
from logic.catalog_index import CatalogIndex
from logic.constraints import filter_pool, hard_gate
from logic.context_synthesizer import resolve_weather_context, synthesize_intent
from logic.diversifier import max_history_overlap
from logic.scoring import ScoringContext, blend_confidence, match_score
from logic.slot_assigner import assign
from models.catalog_item import CatalogItem
from models.intent import CanonicalIntent, WeatherProfile
from models.lineup import (
    Anchor,
    EngineFailure,
    FailureKind,
    FeedbackEntry,
    HistoryEntry,
    Lineup,
    Vote,
    overlap_ratio,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateProposal:
    """A lineup proposed by an upstream generator."""

    item_ids: Tuple[int, ...]
    generator_confidence: Optional[float] = None
    label: str = ""


@dataclass(frozen=True)
class RankedCandidate:
    lineup: Lineup
    items: Tuple[CatalogItem, ...]
    match_score: int
    confidence: int
    penalties: Dict[str, float]
    rank_score: float
    proposal_index: Optional[int] = None
    label: str = ""

    @property
    def signature(self) -> str:
        return self.lineup.signature


@dataclass(frozen=True)
class RerankResult:
    selected: Optional[RankedCandidate]
    ranked: List[RankedCandidate] = field(default_factory=list)
    rejected: List[Tuple[int, EngineFailure]] = field(default_factory=list)
    fallback_used: bool = False
    failure: Optional[EngineFailure] = None

    @property
    def ok(self) -> bool:
        return self.selected is not None


def context_similarity(entry: FeedbackEntry, weather: WeatherProfile, formality: Optional[str]) -> float:
    """How closely the context of a past vote resembles the current request."""

    same_temp = entry.weather_profile is not None and entry.weather_profile.temp_band == weather.temp_band
    same_formality = bool(formality) and entry.formality == formality
    if same_temp and same_formality:
        return 1.0
    if same_temp or same_formality:
        return 0.5
    return 0.25


def compute_penalties(
    lineup: Lineup,
    items: Sequence[CatalogItem],
    intent: CanonicalIntent,
    history: Sequence[HistoryEntry],
    feedback: Sequence[FeedbackEntry],
    weights: RerankWeights,
) -> Dict[str, float]:
    signature = lineup.signature
    recent = list(history)[-weights.recent_history:] if weights.recent_history > 0 else []
    penalties = {
        "repeat": weights.repeat * sum(1 for entry in history if entry.signature == signature),
        "history_overlap": weights.history_overlap * max_history_overlap(lineup.item_ids, recent),
        "style_mismatch": 0.0,
        "feedback": 0.0,
    }
    if intent.style:
        penalties["style_mismatch"] = weights.style_mismatch * sum(1 for item in items if item.style not in intent.style)

    weather = intent.weather_profile or WeatherProfile()
    formality = intent.effective_formality
    feedback_penalty = 0.0
    for entry in feedback:
        if entry.vote is not Vote.DOWN:
            continue
        similarity = context_similarity(entry, weather, formality)
        if entry.signature == signature:
            feedback_penalty += weights.feedback_same_signature * similarity
        else:
            feedback_penalty += weights.feedback_overlap * overlap_ratio(lineup.item_ids, entry.item_ids) * similarity
    penalties["feedback"] = feedback_penalty
    return {key: round(value, 4) for key, value in penalties.items()}


def _rank(
    lineup: Lineup,
    items: Tuple[CatalogItem, ...],
    intent: CanonicalIntent,
    generator_confidence: Optional[float],
    history: Sequence[HistoryEntry],
    feedback: Sequence[FeedbackEntry],
    config: EngineConfig,
    proposal_index: Optional[int] = None,
    label: str = "",
) -> RankedCandidate:
    weights = config.rerank
    match = match_score(items, intent, config.required_categories)
    confidence = blend_confidence(generator_confidence, match, weights.generator_weight, weights.min_confidence)
    penalties = compute_penalties(lineup, items, intent, history, feedback, weights)
    return RankedCandidate(
        lineup=lineup,
        items=items,
        match_score=match,
        confidence=confidence,
        penalties=penalties,
        rank_score=round(confidence - sum(penalties.values()), 4),
        proposal_index=proposal_index,
        label=label,
    )


def select_lineup(
    proposals: Sequence[CandidateProposal],
    catalog: CatalogIndex,
    intent: CanonicalIntent,
    config: EngineConfig | None = None,
    history: Sequence[HistoryEntry] = (),
    feedback: Sequence[FeedbackEntry] = (),
    anchor: Optional[Anchor] = None,
) -> RerankResult:
    """Pick the best valid proposal, or build a greedy lineup when none survive."""

    config = config or EngineConfig()
    required = config.required_categories
    intent = synthesize_intent(intent)
    weather = resolve_weather_context(intent)
    used_ids = {item_id for entry in history for item_id in entry.item_ids}
    gate = hard_gate(intent, weather, thresholds=config.wet_safety)
    context = ScoringContext.build(intent, config, used_item_ids=used_ids, hard_gate=gate)

    ranked: List[RankedCandidate] = []
    rejected: List[Tuple[int, EngineFailure]] = []
    for index, proposal in enumerate(proposals):
        known, unknown = catalog.resolve(proposal.item_ids)
        failing = [item.item_id for item in known if not gate(item)]
        if failing:
            rejected.append(
                (
                    index,
                    EngineFailure(
                        kind=FailureKind.VALIDATION,
                        message="Proposal contains items failing hard constraints",
                        details={"item_ids": failing, "unknown_ids": unknown},
                    ),
                )
            )
            continue
        assignment = assign(known, required, context, anchor=anchor)
        if not assignment.ok:
            failure = assignment.failure
            rejected.append(
                (
                    index,
                    EngineFailure(
                        kind=FailureKind.VALIDATION,
                        message=failure.message,
                        details={**failure.details, "cause": failure.kind.value, "unknown_ids": unknown},
                    ),
                )
            )
            continue
        ranked.append(
            _rank(
                assignment.lineup,
                assignment.items,
                intent,
                proposal.generator_confidence,
                history,
                feedback,
                config,
                proposal_index=index,
                label=proposal.label,
            )
        )

    if ranked:
        ranked.sort(key=lambda candidate: (-candidate.rank_score, candidate.signature, candidate.proposal_index))
        return RerankResult(selected=ranked[0], ranked=ranked, rejected=rejected)

    log_event(
        LOGGER,
        logging.WARNING,
        "rerank_fallback",
        proposals=len(proposals),
        rejected=len(rejected),
    )
    pool = filter_pool(catalog.items, intent, weather, thresholds=config.wet_safety)
    assignment = assign(pool.items, required, context, anchor=anchor)
    if not assignment.ok:
        return RerankResult(selected=None, rejected=rejected, fallback_used=True, failure=assignment.failure)
    fallback = _rank(assignment.lineup, assignment.items, intent, None, history, feedback, config, label="fallback")
    return RerankResult(selected=fallback, ranked=[fallback], rejected=rejected, fallback_used=True)


__all__ = [
    "CandidateProposal",
    "RankedCandidate",
    "RerankResult",
    "context_similarity",
    "compute_penalties",
    "select_lineup",
]
