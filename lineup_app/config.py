"""Configuration helpers for the Lineup Concierge engine."""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
import os
from typing import Any, Callable, Dict, Optional, Tuple

from models.taxonomy import REQUIRED_CATEGORIES, validate_required_categories


@dataclass(frozen=True)
class ScoreWeights:
    """Additive weights for the soft-match score."""

    weather: float = 40.0
    occasion: float = 24.0
    place: float = 24.0
    time_of_day: float = 10.0
    formality: float = 8.0
    style: float = 6.0
    style_directive_match: float = 8.0
    style_directive_miss: float = -2.0
    favorite: float = 3.0
    novelty: float = 5.0
    soft_anchor: float = 25.0


@dataclass(frozen=True)
class MaterialWeights:
    """Weights applied to material bucket shares."""

    hot_breathable: float = 12.0
    hot_insulating: float = -10.0
    warm_breathable: float = 8.0
    warm_insulating: float = -5.0
    cool_insulating: float = 6.0
    cool_breathable: float = -2.0
    cold_insulating: float = 12.0
    cold_breathable: float = -6.0
    wet_technical_medium: float = 6.0
    wet_absorbent_medium: float = -6.0
    wet_technical_high: float = 10.0
    wet_absorbent_high: float = -10.0
    refined_signal_refined: float = 6.0
    refined_signal_technical: float = -4.0
    rugged_signal_rugged: float = 6.0
    rugged_signal_technical: float = 4.0
    rugged_signal_refined: float = -3.0
    derived_prefer: float = 8.0
    derived_avoid: float = -8.0


@dataclass(frozen=True)
class WetSafetyThresholds:
    """Empirically tuned wet-weather cut-offs, kept overridable."""

    absorbent_cutoff_medium: float = 0.6
    absorbent_cutoff_high: float = 0.45
    low_technical_share: float = 0.3
    technical_dominant_share: float = 0.5
    technical_backing_share: float = 0.3
    require_positive_signal_at_high: bool = True


@dataclass(frozen=True)
class SequenceSettings:
    """Sequence planning knobs."""

    overlap_threshold: float = 0.8
    recent_window: int = 4
    min_pool_size: int = 4
    lock_footwear_on_stay_days: bool = True


@dataclass(frozen=True)
class RerankWeights:
    """Penalty weights for choosing among proposed lineups."""

    repeat: float = 12.0
    history_overlap: float = 20.0
    style_mismatch: float = 4.0
    feedback_same_signature: float = 15.0
    feedback_overlap: float = 8.0
    recent_history: int = 5
    generator_weight: float = 0.3
    min_confidence: float = 20.0


@dataclass(frozen=True)
class EngineConfig:
    """Configuration values for the engine and its host.

    Environment specific YAML lives in ``config/environments/<env>.yaml`` by
    default and is merged with environment variables so that deployments can
    override any threshold without a code change.
    """

    required_categories: Tuple[str, ...] = REQUIRED_CATEGORIES
    scores: ScoreWeights = field(default_factory=ScoreWeights)
    materials: MaterialWeights = field(default_factory=MaterialWeights)
    wet_safety: WetSafetyThresholds = field(default_factory=WetSafetyThresholds)
    sequence: SequenceSettings = field(default_factory=SequenceSettings)
    rerank: RerankWeights = field(default_factory=RerankWeights)
    history_store_backend: str = "memory"
    history_store_path: Optional[str] = None
    catalog_path: Optional[str] = None
    environment: str | None = None

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from environment variables or an environment YAML file.

        Flat keys map onto nested sections with a prefix, for example
        ``WET_ABSORBENT_CUTOFF_HIGH`` or ``sequence_overlap_threshold``.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("LINEUP_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        required = get_value("required_categories")
        required_categories = (
            validate_required_categories(part for part in required.split(",") if part.strip())
            if required
            else REQUIRED_CATEGORIES
        )

        return cls(
            required_categories=required_categories,
            scores=_section(ScoreWeights, "score", get_value),
            materials=_section(MaterialWeights, "material", get_value),
            wet_safety=_section(WetSafetyThresholds, "wet", get_value),
            sequence=_section(SequenceSettings, "sequence", get_value),
            rerank=_section(RerankWeights, "rerank", get_value),
            history_store_backend=str(get_value("history_store_backend", "memory") or "memory"),
            history_store_path=get_value("history_store_path"),
            catalog_path=get_value("catalog_path"),
            environment=env_name,
        )

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a minimal YAML/INI-style config without external dependencies."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config


def _coerce(raw: str, current: Any) -> Any:
    if isinstance(current, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return raw


def _section(section_cls: type, prefix: str, get_value: Callable[[str], Optional[str]]) -> Any:
    defaults = section_cls()
    overrides: Dict[str, Any] = {}
    for section_field in fields(section_cls):
        raw = get_value(f"{prefix}_{section_field.name}")
        if raw is None or raw == "":
            continue
        try:
            overrides[section_field.name] = _coerce(str(raw), getattr(defaults, section_field.name))
        except ValueError as exc:
            raise ValueError(f"Invalid value for {prefix}_{section_field.name}: {raw!r}") from exc
    return replace(defaults, **overrides) if overrides else defaults


__all__ = [
    "EngineConfig",
    "ScoreWeights",
    "MaterialWeights",
    "WetSafetyThresholds",
    "SequenceSettings",
    "RerankWeights",
]
