"""Material bucket vocabulary and weight-normalised share computation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Sequence, Tuple

BREATHABLE = "breathable"
INSULATING = "insulating"
TECHNICAL = "technical"
REFINED = "refined"
RUGGED = "rugged"
ABSORBENT = "absorbent"

MATERIAL_BUCKETS: Tuple[str, ...] = (BREATHABLE, INSULATING, TECHNICAL, REFINED, RUGGED, ABSORBENT)

# Substring keywords per bucket. An ingredient can feed several buckets.
BUCKET_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    BREATHABLE: (
        "linen",
        "cotton",
        "seersucker",
        "chambray",
        "hemp",
        "ramie",
        "bamboo",
        "lyocell",
        "tencel",
        "mesh",
        "silk",
    ),
    INSULATING: (
        "wool",
        "merino",
        "cashmere",
        "alpaca",
        "mohair",
        "fleece",
        "down",
        "shearling",
        "flannel",
        "tweed",
        "sherpa",
        "camel",
        "thinsulate",
        "primaloft",
    ),
    TECHNICAL: (
        "polyester",
        "nylon",
        "polyamide",
        "gore-tex",
        "goretex",
        "polyurethane",
        "rubber",
        "neoprene",
        "ripstop",
        "membrane",
        "softshell",
        "cordura",
        "tpu",
        "eptfe",
    ),
    REFINED: (
        "silk",
        "cashmere",
        "merino",
        "satin",
        "velvet",
        "leather",
        "worsted",
        "poplin",
        "alpaca",
    ),
    RUGGED: (
        "denim",
        "canvas",
        "corduroy",
        "waxed",
        "moleskin",
        "twill",
        "cordura",
        "duck",
        "leather",
        "ripstop",
    ),
    ABSORBENT: (
        "cotton",
        "linen",
        "suede",
        "nubuck",
        "canvas",
        "viscose",
        "rayon",
        "jute",
        "modal",
    ),
}


@dataclass(frozen=True)
class MaterialShare:
    """One ingredient of a material composition."""

    material: str
    percentage: float | None = None


def _matches(material: str, keywords: Iterable[str]) -> bool:
    return any(keyword in material for keyword in keywords)


def bucket_shares(composition: Sequence[MaterialShare]) -> Dict[str, float]:
    """Return the weight-normalised share of each bucket for a composition.

    Percentages need not sum to 100. Ingredients without a percentage share the
    weight left over by the declared ones (or split it evenly when nothing is
    declared).
    """

    shares = {bucket: 0.0 for bucket in MATERIAL_BUCKETS}
    ingredients = [entry for entry in composition if entry.material.strip()]
    if not ingredients:
        return shares

    declared = [entry.percentage for entry in ingredients if entry.percentage is not None and entry.percentage > 0]
    missing = [entry for entry in ingredients if entry.percentage is None or entry.percentage <= 0]
    declared_total = sum(declared)
    filler = max(0.0, 100.0 - declared_total) / len(missing) if missing else 0.0
    if missing and filler == 0.0:
        filler = (declared_total / len(declared)) if declared else 1.0

    weights = []
    for entry in ingredients:
        weight = entry.percentage if entry.percentage is not None and entry.percentage > 0 else filler
        weights.append((entry.material.strip().lower(), float(weight)))
    total = sum(weight for _, weight in weights)
    if total <= 0:
        return shares

    for bucket, keywords in BUCKET_KEYWORDS.items():
        matched = sum(weight for material, weight in weights if _matches(material, keywords))
        shares[bucket] = round(matched / total, 4)
    return shares


__all__ = [
    "BREATHABLE",
    "INSULATING",
    "TECHNICAL",
    "REFINED",
    "RUGGED",
    "ABSORBENT",
    "MATERIAL_BUCKETS",
    "BUCKET_KEYWORDS",
    "MaterialShare",
    "bucket_shares",
]
