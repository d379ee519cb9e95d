"""Deterministic weather and preference derivation for a canonical intent."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from models.intent import CanonicalIntent, DerivedProfile, MaterialTargets, WeatherProfile
from models.materials import ABSORBENT, BREATHABLE, INSULATING, REFINED, RUGGED, TECHNICAL
from models.taxonomy import REFINED_SIGNALS, RUGGED_SIGNALS

PRECIPITATION_PATTERN = re.compile(
    r"\b(rain|rainy|raining|drizzle|showers?|downpour|storms?|thunderstorms?|sleet|snow|snowy|snowing|"
    r"flurry|flurries|hail|wet)\b",
    re.IGNORECASE,
)
SNOW_PATTERN = re.compile(r"\b(snow|snowy|snowing|flurry|flurries|sleet)\b", re.IGNORECASE)
RAIN_PATTERN = re.compile(
    r"\b(rain|rainy|raining|drizzle|showers?|downpour|storms?|thunderstorms?|hail)\b", re.IGNORECASE
)
HEAVY_PATTERN = re.compile(r"\b(heavy|downpour|storms?|thunderstorms?|torrential|blizzard)\b", re.IGNORECASE)
LIGHT_PATTERN = re.compile(r"\b(drizzle|light rain|light snow|flurry|flurries|sprinkles?)\b", re.IGNORECASE)
RANGE_PATTERN = re.compile(r"(-?\d+(?:\.\d+)?)\s*(?:-|to|–)\s*(-?\d+(?:\.\d+)?)\s*°?\s*C", re.IGNORECASE)
TEMPERATURE_PATTERN = re.compile(r"(?:temperature|feels like)\s+(-?\d+(?:\.\d+)?)\s*°?\s*C", re.IGNORECASE)
HUMIDITY_PATTERN = re.compile(r"humidity\s+(\d+(?:\.\d+)?)\s*%", re.IGNORECASE)
WIND_PATTERN = re.compile(r"wind\s+(\d+(?:\.\d+)?)\s*km/h", re.IGNORECASE)

_TAG_TEMP_BANDS = (
    ("hot", ("hot", "heat", "scorching", "summer")),
    ("cold", ("cold", "freezing", "winter", "icy", "frost")),
    ("warm", ("warm", "sunny", "spring/summer")),
    ("cool", ("cool", "chilly", "autumn", "fall", "crisp")),
    ("mild", ("mild", "temperate", "spring")),
)


@dataclass(frozen=True)
class WeatherContext:
    """Resolved weather signals consumed by the constraint evaluator."""

    profile: WeatherProfile
    summary: str
    wet_gate_active: bool

    @property
    def wet_risk(self) -> str:
        return self.profile.wet_surface_risk


def temp_band_for_celsius(value: float) -> str:
    if value < 5:
        return "cold"
    if value < 12:
        return "cool"
    if value < 19:
        return "mild"
    if value < 26:
        return "warm"
    return "hot"


def _temp_band_from_tags(tags: Iterable[str]) -> Optional[str]:
    joined = " ".join(tags)
    for band, keywords in _TAG_TEMP_BANDS:
        if any(keyword in joined for keyword in keywords):
            return band
    return None


def _precipitation(text: str) -> tuple[str, str]:
    if not PRECIPITATION_PATTERN.search(text):
        return "none", "none"
    has_snow = bool(SNOW_PATTERN.search(text))
    has_rain = bool(RAIN_PATTERN.search(text))
    if has_snow and has_rain:
        precipitation_type = "mixed"
    elif has_snow:
        precipitation_type = "snow"
    else:
        precipitation_type = "rain"
    if HEAVY_PATTERN.search(text):
        level = "heavy"
    elif LIGHT_PATTERN.search(text):
        level = "light"
    else:
        level = "moderate"
    return level, precipitation_type


def _wet_surface_risk(level: str) -> str:
    if level in {"moderate", "heavy"}:
        return "high"
    if level == "light":
        return "medium"
    return "low"


def derive_weather_profile(summary: str | None = None, weather_tags: Iterable[str] = ()) -> WeatherProfile:
    """Derive a structured weather profile from a free-text summary and weather tags.

    The summary format matches the one produced by the weather collaborator
    ("Expected range 3-9°C. Humidity 85%. Wind 22 km/h."), but any text with
    rain/snow vocabulary is understood.
    """

    text = summary or ""
    tags = [tag.lower() for tag in weather_tags]
    combined = " ".join([text, *tags])

    temp_band: Optional[str] = None
    confidence = "low"
    range_match = RANGE_PATTERN.search(text)
    temperature_match = TEMPERATURE_PATTERN.search(text)
    if range_match:
        low, high = float(range_match.group(1)), float(range_match.group(2))
        temp_band = temp_band_for_celsius((low + high) / 2)
        confidence = "high"
    elif temperature_match:
        temp_band = temp_band_for_celsius(float(temperature_match.group(1)))
        confidence = "medium"
    if temp_band is None:
        temp_band = _temp_band_from_tags(tags) or "mild"

    humidity_band = "normal"
    humidity_match = HUMIDITY_PATTERN.search(text)
    if humidity_match:
        humidity = float(humidity_match.group(1))
        humidity_band = "humid" if humidity >= 75 else "dry" if humidity <= 35 else "normal"

    wind_band = "calm"
    wind_match = WIND_PATTERN.search(text)
    if wind_match:
        wind = float(wind_match.group(1))
        wind_band = "windy" if wind >= 30 else "breezy" if wind >= 12 else "calm"
    elif "wind" in combined:
        wind_band = "breezy"

    level, precipitation_type = _precipitation(combined)
    return WeatherProfile(
        temp_band=temp_band,
        precipitation_level=level,
        precipitation_type=precipitation_type,
        wind_band=wind_band,
        humidity_band=humidity_band,
        wet_surface_risk=_wet_surface_risk(level),
        confidence=confidence,
    )


def _infer_formality(intent: CanonicalIntent) -> Optional[str]:
    if intent.formality:
        return intent.formality
    signals = set(intent.occasion) | set(intent.place)
    if "black tie / evening wear" in signals or "ceremonial / wedding" in signals:
        return "formal"
    if "business formal" in signals or "office / boardroom" in signals:
        return "business formal"
    if "date night / intimate dinner" in signals or "hospitality (indoor)" in signals:
        return "elevated casual"
    if signals & {"active rugged / field sports", "manual labor / craft", "wilderness"}:
        return "technical"
    if signals:
        return "casual"
    return None


def derive_profile(intent: CanonicalIntent, weather: WeatherProfile) -> DerivedProfile:
    """Infer formality, style and material bucket targets for an intent."""

    prefer: List[str] = []
    avoid: List[str] = []
    if weather.temp_band in {"hot", "warm"}:
        prefer.append(BREATHABLE)
        avoid.append(INSULATING)
    elif weather.temp_band in {"cold", "cool"}:
        prefer.append(INSULATING)
        if weather.temp_band == "cold":
            avoid.append(BREATHABLE)
    if weather.wet_surface_risk in {"medium", "high"} and weather.has_precipitation:
        prefer.append(TECHNICAL)
        avoid.append(ABSORBENT)
    signals = set(intent.occasion) | set(intent.place)
    if signals & REFINED_SIGNALS:
        prefer.append(REFINED)
    elif signals & RUGGED_SIGNALS:
        prefer.append(RUGGED)

    return DerivedProfile(
        formality=_infer_formality(intent),
        style=list(intent.style),
        material_targets=MaterialTargets(
            prefer=[bucket for bucket in dict.fromkeys(prefer) if bucket not in avoid],
            avoid=list(dict.fromkeys(avoid)),
        ),
    )


def synthesize_intent(intent: CanonicalIntent) -> CanonicalIntent:
    """Fill in the weather and derived profiles when the caller left them out."""

    weather = intent.weather_profile or derive_weather_profile(intent.weather_summary, intent.weather)
    derived = intent.derived_profile or derive_profile(intent, weather)
    if intent.weather_profile is weather and intent.derived_profile is derived:
        return intent
    return intent.model_copy(update={"weather_profile": weather, "derived_profile": derived})


def resolve_weather_context(intent: CanonicalIntent) -> WeatherContext:
    """Resolve the profile and decide whether the wet-weather safety gate is active.

    The gate needs a medium or high wet-surface risk and a non-trivial
    precipitation signal, taken from the structured profile or from rain/snow
    vocabulary in the free-text summary.
    """

    profile = intent.weather_profile or derive_weather_profile(intent.weather_summary, intent.weather)
    summary = intent.weather_summary or ""
    precipitation = profile.has_precipitation or bool(PRECIPITATION_PATTERN.search(summary))
    active = profile.wet_surface_risk in {"medium", "high"} and precipitation
    return WeatherContext(profile=profile, summary=summary, wet_gate_active=active)


__all__ = [
    "WeatherContext",
    "PRECIPITATION_PATTERN",
    "temp_band_for_celsius",
    "derive_weather_profile",
    "derive_profile",
    "synthesize_intent",
    "resolve_weather_context",
]
