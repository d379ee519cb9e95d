"""Lineup Concierge application facade."""

from __future__ import annotations

import json
import logging
from datetime import date as dt_date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from lineup_app.config import EngineConfig
from lineup_app.logging_config import log_event, operation_context
from lineup_app.observability import instrument_operation
from logic.catalog_index import CatalogIndex
from logic.constraints import filter_pool, hard_gate
from logic.context_synthesizer import resolve_weather_context, synthesize_intent
from logic.diversifier import diversify
from logic.rerank import CandidateProposal, RankedCandidate, select_lineup
from logic.scoring import ScoringContext
from logic.sequence_planner import EntryResult, build_trip_entries, plan_sequence, sequence_fingerprint
from logic.slot_assigner import assign, pinned_slots
from logic.validation import (
    AnchorInput,
    FeedbackRequest,
    LookRequest,
    ProposalInput,
    TripRequest,
    validation_failure,
)
from memory.history_store import HistoryStore, build_history_store
from models.catalog_item import load_catalog
from models.intent import CanonicalIntent, WeatherProfile
from models.lineup import Anchor, EngineFailure, FeedbackEntry, HistoryEntry, Vote, lineup_signature

LOGGER = logging.getLogger(__name__)
HISTORY_LIMIT = 20


def _anchor(value: Optional[AnchorInput]) -> Optional[Anchor]:
    return Anchor(item_id=value.item_id, mode=value.mode) if value else None


def _failure_response(failure: EngineFailure) -> Dict[str, Any]:
    return {"status": "error", "message": failure.message, "failure": failure.to_dict()}


def read_catalog_file(path: str | Path) -> List[Dict[str, Any]]:
    """Read catalog rows from a JSON list or an ``{"items": [...]}`` document."""

    payload = json.loads(Path(path).read_text())
    rows = payload.get("items", []) if isinstance(payload, dict) else payload
    if not isinstance(rows, list):
        raise ValueError(f"Catalog file {path} does not contain a list of items")
    return rows


class LineupConciergeApp:
    """Wires config, history storage and the composition engine together."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        catalog_rows: Iterable[Mapping[str, Any]] | None = None,
        history_store: HistoryStore | None = None,
    ) -> None:
        self.config = config or EngineConfig.from_env()
        self.history_store = history_store or build_history_store(
            self.config.history_store_backend, self.config.history_store_path
        )
        if catalog_rows is None and self.config.catalog_path:
            catalog_rows = read_catalog_file(self.config.catalog_path)
        self.catalog = CatalogIndex(())
        self.load_catalog(catalog_rows or [])

    def load_catalog(self, rows: Iterable[Mapping[str, Any]]) -> int:
        """Replace the catalog snapshot and return the number of items loaded."""

        self.catalog = CatalogIndex(load_catalog(dict(row) for row in rows))
        LOGGER.info("Catalog loaded", extra={"item_count": len(self.catalog), "counts": self.catalog.counts()})
        return len(self.catalog)

    def _engine_proposal(
        self,
        intent: CanonicalIntent,
        history: List[HistoryEntry],
        anchor: Optional[Anchor],
    ) -> tuple[Optional[CandidateProposal], bool]:
        """Build the engine's own lineup: filter, assign, then diversify."""

        weather = resolve_weather_context(intent)
        pool = filter_pool(self.catalog.items, intent, weather, thresholds=self.config.wet_safety)
        used_ids = {item_id for entry in history for item_id in entry.item_ids}
        gate = hard_gate(intent, weather, thresholds=self.config.wet_safety)
        context = ScoringContext.build(intent, self.config, used_item_ids=used_ids, hard_gate=gate)
        assignment = assign(pool.items, self.config.required_categories, context, anchor=anchor)
        if not assignment.ok:
            return None, False
        window = history[-self.config.sequence.recent_window:] if self.config.sequence.recent_window > 0 else []
        diversified = diversify(
            assignment.lineup,
            pool.items,
            context,
            history=window,
            used_signatures=[entry.signature for entry in history],
            locks=pinned_slots(assignment.lineup, anchor=anchor),
            overlap_threshold=self.config.sequence.overlap_threshold,
        )
        return CandidateProposal(item_ids=diversified.lineup.item_ids, label="engine"), diversified.exhausted

    def _candidate_payload(self, candidate: RankedCandidate) -> Dict[str, Any]:
        return {
            "item_ids": list(candidate.lineup.item_ids),
            "signature": candidate.signature,
            "lineup": [item.to_summary() for item in candidate.items],
            "match_score": candidate.match_score,
            "confidence": candidate.confidence,
            "penalties": candidate.penalties,
            "label": candidate.label,
        }

    @instrument_operation(
        "recommend_look",
        input_model=LookRequest,
        on_validation_error=lambda exc: validation_failure("Invalid look request", exc),
    )
    def recommend_look(
        self,
        *,
        actor_key: str,
        intent: CanonicalIntent,
        proposals: List[ProposalInput],
        anchor: Optional[AnchorInput] = None,
        record_history: bool = True,
    ) -> Dict[str, Any]:
        """Recommend one lineup, reranking upstream proposals when given."""

        with operation_context("recommend_look") as correlation_id:
            intent = synthesize_intent(intent)
            history = self.history_store.recent_lineups(actor_key, "single", limit=HISTORY_LIMIT)
            feedback = self.history_store.feedback_for(actor_key)
            pinned = _anchor(anchor)

            candidates = [
                CandidateProposal(
                    item_ids=tuple(proposal.item_ids),
                    generator_confidence=proposal.generator_confidence,
                    label=proposal.label,
                )
                for proposal in proposals
            ]
            diversity_exhausted = False
            if not candidates:
                engine_proposal, diversity_exhausted = self._engine_proposal(intent, history, pinned)
                if engine_proposal is not None:
                    candidates.append(engine_proposal)

            result = select_lineup(
                candidates,
                self.catalog,
                intent,
                config=self.config,
                history=history,
                feedback=feedback,
                anchor=pinned,
            )
            if not result.ok:
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "look_unavailable",
                    correlation_id=correlation_id,
                    failure=result.failure.to_dict() if result.failure else None,
                )
                return _failure_response(result.failure)

            selected = result.selected
            if record_history:
                self.history_store.record_lineup(actor_key, "single", selected.lineup)
            return {
                "status": "ok",
                **self._candidate_payload(selected),
                "fallback_used": result.fallback_used,
                "diversity_exhausted": diversity_exhausted,
                "rejected_proposals": [
                    {"index": index, **failure.to_dict()} for index, failure in result.rejected
                ],
                "interpreted_intent": intent.model_dump(by_alias=True, exclude_none=True),
            }

    def _entry_payload(self, entry: EntryResult) -> Dict[str, Any]:
        return {
            "index": entry.index,
            "date": entry.day.isoformat() if entry.day else None,
            "kind": entry.kind.value,
            "envelope": entry.envelope,
            "item_ids": list(entry.lineup.item_ids),
            "signature": entry.signature,
            "lineup": [item.to_summary() for item in entry.items],
            "match_score": entry.match_score,
            "confidence": entry.confidence,
            "reused_item_ids": list(entry.reused_item_ids),
            "diversity_exhausted": entry.diversity_exhausted,
        }

    @instrument_operation(
        "plan_trip",
        input_model=TripRequest,
        on_validation_error=lambda exc: validation_failure("Invalid trip request", exc),
    )
    def plan_trip(
        self,
        *,
        actor_key: str,
        destination: str,
        start_date: dt_date,
        end_date: dt_date,
        intent: CanonicalIntent,
        reason: Optional[str] = None,
        day_intents: Optional[Dict[dt_date, CanonicalIntent]] = None,
        anchor: Optional[AnchorInput] = None,
        record_history: bool = True,
    ) -> Dict[str, Any]:
        """Plan one lineup per trip day with a shared outerwear piece."""

        with operation_context("plan_trip") as correlation_id:
            fingerprint = sequence_fingerprint(destination, reason, start_date, end_date)
            entries = build_trip_entries(start_date, end_date, intent, day_intents)
            history = self.history_store.recent_lineups(
                actor_key, "travel", fingerprint=fingerprint, limit=HISTORY_LIMIT * 2
            )
            plan = plan_sequence(
                entries,
                self.catalog,
                config=self.config,
                history=history,
                reason=reason,
                anchor=_anchor(anchor),
            )
            if not plan.ok:
                return {**_failure_response(plan.failure), "fingerprint": fingerprint}

            if record_history:
                for entry in plan.entries:
                    self.history_store.record_lineup(
                        actor_key, "travel", entry.lineup, fingerprint=fingerprint, day=entry.day, index=entry.index
                    )
            skipped = [
                {
                    "index": skip.index,
                    "date": skip.day.isoformat() if skip.day else None,
                    "kind": skip.kind.value,
                    "reason": skip.reason,
                    "failure": skip.failure.to_dict() if skip.failure else None,
                }
                for skip in plan.skipped
            ]
            log_event(
                LOGGER,
                logging.INFO,
                "trip_planned",
                correlation_id=correlation_id,
                days=len(entries),
                planned=len(plan.entries),
                skipped=len(skipped),
            )
            status = "ok" if plan.entries else "error"
            response: Dict[str, Any] = {
                "status": status,
                "fingerprint": fingerprint,
                "locks": plan.locks,
                "days": [self._entry_payload(entry) for entry in plan.entries],
                "skipped": skipped,
            }
            if not plan.entries:
                response["message"] = "Could not build a complete look for any trip day"
            return response

    @instrument_operation(
        "record_feedback",
        input_model=FeedbackRequest,
        on_validation_error=lambda exc: validation_failure("Invalid feedback request", exc),
    )
    def record_feedback(
        self,
        *,
        actor_key: str,
        item_ids: List[int],
        vote: Vote,
        mode: str = "single",
        weather_profile: Optional[WeatherProfile] = None,
        formality: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store a thumbs up/down so later reranking can take it into account."""

        signature = lineup_signature(item_ids)
        entry = FeedbackEntry(
            signature=signature,
            item_ids=tuple(sorted(set(item_ids))),
            vote=vote,
            weather_profile=weather_profile,
            formality=formality,
        )
        self.history_store.record_feedback(actor_key, mode, entry)
        return {"status": "ok", "signature": signature, "vote": vote.value, "mode": mode}

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "service": "lineup-concierge",
            "environment": self.config.environment or "local",
            "catalog_items": len(self.catalog),
            "history_backend": self.config.history_store_backend,
        }


__all__ = ["LineupConciergeApp", "read_catalog_file"]
