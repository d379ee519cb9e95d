"""Typed canonical intent validated once at the engine boundary."""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models.materials import MATERIAL_BUCKETS
from models.taxonomy import normalise_tags, normalize_tag

TempBand = Literal["cold", "cool", "mild", "warm", "hot"]
PrecipitationLevel = Literal["none", "light", "moderate", "heavy"]
PrecipitationType = Literal["none", "rain", "snow", "mixed"]
WindBand = Literal["calm", "breezy", "windy"]
HumidityBand = Literal["dry", "normal", "humid"]
RiskLevel = Literal["low", "medium", "high"]

MAX_INTENT_TAGS = 4


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel, extra="forbid")


class WeatherProfile(_FrozenModel):
    """Structured weather description for the target day."""

    temp_band: TempBand = "mild"
    precipitation_level: PrecipitationLevel = "none"
    precipitation_type: PrecipitationType = "none"
    wind_band: WindBand = "calm"
    humidity_band: HumidityBand = "normal"
    wet_surface_risk: RiskLevel = "low"
    confidence: RiskLevel = "medium"

    @property
    def has_precipitation(self) -> bool:
        return self.precipitation_type != "none" or self.precipitation_level != "none"


class MaterialTargets(_FrozenModel):
    """Material buckets to favour or avoid."""

    prefer: List[str] = Field(default_factory=list)
    avoid: List[str] = Field(default_factory=list)

    @field_validator("prefer", "avoid", mode="before")
    @classmethod
    def _known_buckets(cls, values: Any) -> List[str]:
        buckets = [tag for tag in normalise_tags(values or []) if tag in MATERIAL_BUCKETS]
        return buckets


class DerivedProfile(_FrozenModel):
    """Deterministically inferred formality, style and material preferences."""

    formality: Optional[str] = None
    style: List[str] = Field(default_factory=list, max_length=8)
    material_targets: MaterialTargets = Field(default_factory=MaterialTargets)

    @field_validator("formality", mode="before")
    @classmethod
    def _normalise_formality(cls, value: Any) -> Optional[str]:
        return normalize_tag(value) or None

    @field_validator("style", mode="before")
    @classmethod
    def _normalise_style(cls, values: Any) -> List[str]:
        return list(normalise_tags(values or []))


class CanonicalIntent(_FrozenModel):
    """Canonical catalog filters produced by the upstream interpreter."""

    weather: List[str] = Field(default_factory=list, max_length=MAX_INTENT_TAGS)
    occasion: List[str] = Field(default_factory=list, max_length=MAX_INTENT_TAGS)
    place: List[str] = Field(default_factory=list, max_length=MAX_INTENT_TAGS)
    time_of_day: List[str] = Field(default_factory=list, max_length=MAX_INTENT_TAGS)
    formality: Optional[str] = None
    style: List[str] = Field(default_factory=list, max_length=MAX_INTENT_TAGS)
    notes: str = ""
    weather_profile: Optional[WeatherProfile] = None
    derived_profile: Optional[DerivedProfile] = None
    weather_summary: Optional[str] = None

    @field_validator("weather", "occasion", "place", "time_of_day", "style", mode="before")
    @classmethod
    def _normalise_tags(cls, values: Any) -> List[str]:
        if values is None:
            return []
        if isinstance(values, str):
            values = [values]
        return list(normalise_tags(values))

    @field_validator("formality", mode="before")
    @classmethod
    def _normalise_formality(cls, value: Any) -> Optional[str]:
        return normalize_tag(value) or None

    @field_validator("notes", mode="before")
    @classmethod
    def _normalise_notes(cls, value: Any) -> str:
        return str(value or "").strip()

    @property
    def effective_formality(self) -> Optional[str]:
        if self.formality:
            return self.formality
        return self.derived_profile.formality if self.derived_profile else None

    @property
    def effective_style(self) -> List[str]:
        if self.style:
            return list(self.style)
        return list(self.derived_profile.style) if self.derived_profile else []


def parse_intent(payload: dict) -> CanonicalIntent:
    """Validate a raw intent payload (camelCase or snake_case keys)."""

    return CanonicalIntent.model_validate(payload)


__all__ = [
    "TempBand",
    "RiskLevel",
    "WeatherProfile",
    "MaterialTargets",
    "DerivedProfile",
    "CanonicalIntent",
    "MAX_INTENT_TAGS",
    "parse_intent",
]
