"""Pydantic schemas and helpers for validating engine requests."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from models.intent import CanonicalIntent, WeatherProfile
from models.lineup import AnchorMode, Vote
from models.taxonomy import TRIP_REASONS, normalize_tag

MAX_TRIP_DAYS = 30
MAX_PROPOSALS = 8


class AnchorInput(BaseModel):
    """Item the caller wants included in the lineup."""

    item_id: int
    mode: AnchorMode = AnchorMode.STRICT


class ProposalInput(BaseModel):
    """One lineup proposed by an upstream generator."""

    item_ids: List[int] = Field(min_length=1, max_length=12)
    generator_confidence: Optional[float] = Field(default=None, ge=0, le=100)
    label: str = ""


class LookRequest(BaseModel):
    """Input contract for a single lineup recommendation."""

    actor_key: str = Field(min_length=1)
    intent: CanonicalIntent
    proposals: List[ProposalInput] = Field(default_factory=list, max_length=MAX_PROPOSALS)
    anchor: Optional[AnchorInput] = None
    record_history: bool = True


class TripRequest(BaseModel):
    """Input contract for a multi-day travel plan."""

    actor_key: str = Field(min_length=1)
    destination: str = Field(min_length=1)
    reason: Optional[str] = None
    start_date: date
    end_date: date
    intent: CanonicalIntent
    day_intents: Dict[date, CanonicalIntent] = Field(default_factory=dict)
    anchor: Optional[AnchorInput] = None
    record_history: bool = True

    @field_validator("reason", mode="before")
    @classmethod
    def _known_reason(cls, value: Any) -> Optional[str]:
        reason = normalize_tag(value)
        if not reason:
            return None
        if reason not in TRIP_REASONS:
            raise ValueError(f"Unsupported trip reason '{value}'. Allowed: {list(TRIP_REASONS)}")
        return reason

    @model_validator(mode="after")
    def _validate_range(self) -> "TripRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot precede start_date")
        if (self.end_date - self.start_date).days + 1 > MAX_TRIP_DAYS:
            raise ValueError(f"Trips are limited to {MAX_TRIP_DAYS} days")
        return self


class FeedbackRequest(BaseModel):
    """A thumbs up/down on a lineup the caller has seen."""

    actor_key: str = Field(min_length=1)
    mode: Literal["single", "travel"] = "single"
    item_ids: List[int] = Field(min_length=1)
    vote: Vote
    weather_profile: Optional[WeatherProfile] = None
    formality: Optional[str] = None

    @field_validator("formality", mode="before")
    @classmethod
    def _normalise_formality(cls, value: Any) -> Optional[str]:
        return normalize_tag(value) or None


class ValidationResult(BaseModel):
    """Wrapper returned to callers when validation fails."""

    status: Literal["needs_review"] = "needs_review"
    message: str
    details: List[Dict[str, Any]]


def validation_failure(message: str, exc: ValidationError) -> Dict[str, Any]:
    """Translate Pydantic errors into a consistent review payload."""

    details = [
        {key: value for key, value in error.items() if key in {"type", "loc", "msg", "input"}}
        for error in exc.errors(include_url=False)
    ]
    return ValidationResult(message=message, details=details).model_dump()


__all__ = [
    "AnchorInput",
    "ProposalInput",
    "LookRequest",
    "TripRequest",
    "FeedbackRequest",
    "ValidationResult",
    "validation_failure",
    "MAX_TRIP_DAYS",
]
