"""Canonical taxonomy definitions for catalog items.

This module centralises the structural categories, the keyword patterns used to
derive them from free-text garment types, and the catalog-wide tag aliases.
Helper functions keep tag normalisation consistent across the models, the
engine and the request schemas.
"""

import re
from typing import Dict, FrozenSet, Iterable, List, Pattern, Tuple

OUTERWEAR = "outerwear"
TOP = "top"
BOTTOM = "bottom"
FOOTWEAR = "footwear"
OTHER = "other"

CATEGORIES: Tuple[str, ...] = (OUTERWEAR, TOP, BOTTOM, FOOTWEAR, OTHER)

# Category-priority order used for lineups.
REQUIRED_CATEGORIES: Tuple[str, ...] = (OUTERWEAR, TOP, BOTTOM, FOOTWEAR)

# Categories the wet-weather safety gate applies to.
WET_GATED_CATEGORIES: FrozenSet[str] = frozenset({OUTERWEAR, FOOTWEAR})

# Evaluated in order, first match wins.
CATEGORY_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    (
        FOOTWEAR,
        re.compile(
            r"\b(sneakers?|trainers?|loafers?|boots?(?!-cut)|shoes?|oxfords?(?! (?:shirts?|cloth))|derbys?|derbies|brogues?|"
            r"moccasins?|sandals?|espadrilles?|mules?|slippers?|clogs?|heels?)\b"
        ),
    ),
    (
        BOTTOM,
        re.compile(r"\b(jeans?|pants?|trousers?|shorts?|chinos?|cargos?|skirts?|joggers?|slacks?|culottes?)\b"),
    ),
    (
        OUTERWEAR,
        re.compile(
            r"\b(jackets?|coats?|overcoats?|topcoats?|parkas?|anoraks?|trench(?:coat)?|blazers?|"
            r"gilets?|windbreakers?|raincoats?|puffers?|overshirts?|shackets?|shells?|ponchos?|macs?)\b"
        ),
    ),
    (
        TOP,
        re.compile(
            r"\b(shirts?|t-shirts?|tees?|polos?|sweaters?|sweatshirts?|hoodies?|knits?|knitwear|"
            r"cardigans?|blouses?|tanks?|henleys?|jumpers?|pullovers?|turtlenecks?|tops?)\b"
        ),
    ),
]

ALL_SEASON_ALIAS = "all season"
ALL_DAY_ALIAS = "all day"

# Occasions and places that signal a refined or a rugged dress code.
REFINED_SIGNALS: FrozenSet[str] = frozenset(
    {
        "black tie / evening wear",
        "business formal",
        "ceremonial / wedding",
        "date night / intimate dinner",
        "office / boardroom",
        "hospitality (indoor)",
        "formal",
    }
)
RUGGED_SIGNALS: FrozenSet[str] = frozenset(
    {
        "active rugged / field sports",
        "manual labor / craft",
        "active transit / commuting",
        "wilderness",
        "workshop",
        "countryside / estate",
        "technical",
    }
)

TRIP_REASONS: Tuple[str, ...] = ("vacation", "office", "customer visit")

# Occasions still acceptable for tops/bottoms once a transit day has relaxed
# its occasion matching.
REASON_OCCASIONS: Dict[str, FrozenSet[str]] = {
    "vacation": frozenset(
        {
            "casual social",
            "errands / low-key social",
            "outdoor social / garden party",
            "date night / intimate dinner",
            "active transit / commuting",
        }
    ),
    "office": frozenset({"business formal", "casual social", "active transit / commuting"}),
    "customer visit": frozenset({"business formal", "date night / intimate dinner"}),
}


def normalize_tag(value: object) -> str:
    """Normalise a free-form tag into its lower-case comparison key."""

    return " ".join(str(value or "").strip().lower().split())


def normalise_tags(values: Iterable[object]) -> Tuple[str, ...]:
    """Normalise and deduplicate tags, preserving first-seen order."""

    normalised: List[str] = []
    seen = set()
    for value in values:
        key = normalize_tag(value)
        if key and key not in seen:
            normalised.append(key)
            seen.add(key)
    return tuple(normalised)


def classify_type(item_type: str) -> str:
    """Map a free-text garment type onto a structural category."""

    normalised = normalize_tag(item_type)
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(normalised):
            return category
    return OTHER


def validate_category(value: str) -> str:
    """Validate and normalise a category value.

    Raises a :class:`ValueError` if the category is not part of the canonical
    taxonomy.
    """

    key = normalize_tag(value)
    if key not in CATEGORIES:
        raise ValueError(f"Unsupported category '{value}'. Allowed: {list(CATEGORIES)}")
    return key


def validate_required_categories(values: Iterable[str]) -> Tuple[str, ...]:
    """Validate required categories and return them in category-priority order."""

    requested = {validate_category(value) for value in values}
    if OTHER in requested:
        raise ValueError("'other' cannot be a required lineup category")
    if not requested:
        raise ValueError("At least one required category is needed")
    return tuple(category for category in REQUIRED_CATEGORIES if category in requested)


__all__ = [
    "OUTERWEAR",
    "TOP",
    "BOTTOM",
    "FOOTWEAR",
    "OTHER",
    "CATEGORIES",
    "REQUIRED_CATEGORIES",
    "WET_GATED_CATEGORIES",
    "CATEGORY_PATTERNS",
    "ALL_SEASON_ALIAS",
    "ALL_DAY_ALIAS",
    "REFINED_SIGNALS",
    "RUGGED_SIGNALS",
    "TRIP_REASONS",
    "REASON_OCCASIONS",
    "normalize_tag",
    "normalise_tags",
    "classify_type",
    "validate_category",
    "validate_required_categories",
]
