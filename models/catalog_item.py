"""Catalog item data model and helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from models.materials import MaterialShare, bucket_shares
from models.taxonomy import classify_type, normalise_tags, normalize_tag


def _ensure_list(value: Any) -> List[Any]:
    """Coerce a scalar or iterable into a list."""

    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _parse_composition(values: Iterable[Any]) -> Tuple[MaterialShare, ...]:
    """Build material shares from dicts, pairs or bare material names."""

    parsed: List[MaterialShare] = []
    for value in values:
        if isinstance(value, MaterialShare):
            parsed.append(value)
            continue
        if isinstance(value, dict):
            material = str(value.get("material") or "").strip()
            raw_percentage = value.get("percentage")
        elif isinstance(value, (list, tuple)) and value:
            material = str(value[0]).strip()
            raw_percentage = value[1] if len(value) > 1 else None
        else:
            material = str(value).strip()
            raw_percentage = None
        if not material:
            continue
        percentage = float(raw_percentage) if raw_percentage not in (None, "") else None
        parsed.append(MaterialShare(material=material, percentage=percentage))
    return tuple(parsed)


@dataclass(frozen=True)
class CatalogItem:
    """Represents one catalog garment, immutable for the duration of a request."""

    item_id: int
    item_type: str
    category: str
    style: str = ""
    formality: str = ""
    material_composition: Tuple[MaterialShare, ...] = ()
    suitable_weather: FrozenSet[str] = frozenset()
    suitable_occasions: FrozenSet[str] = frozenset()
    suitable_places: FrozenSet[str] = frozenset()
    suitable_times_of_day: FrozenSet[str] = frozenset()
    features: str = ""
    favorite: bool = False
    name: Optional[str] = None
    brand: Optional[str] = None
    material_shares: Dict[str, float] = field(default_factory=dict, compare=False, hash=False, repr=False)

    def to_summary(self) -> Dict[str, Any]:
        """Compact view used in responses and logs."""

        return {
            "item_id": self.item_id,
            "type": self.item_type,
            "category": self.category,
            "name": self.name,
            "brand": self.brand,
        }


def from_raw_metadata(metadata: Dict[str, Any]) -> CatalogItem:
    """Factory to build a :class:`CatalogItem` from a loose catalog row.

    Accepts both snake_case store rows and the camelCase shape used by the web
    client. The structural category is always derived from the free-text type.
    """

    raw_id = metadata.get("item_id", metadata.get("id"))
    item_type = metadata.get("item_type", metadata.get("type"))
    missing = [name for name, value in (("item_id", raw_id), ("item_type", item_type)) if value in (None, "")]
    if missing:
        raise ValueError(f"Missing required fields for CatalogItem: {missing}")
    try:
        item_id = int(raw_id)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"CatalogItem id must be an integer, got {raw_id!r}") from exc

    def tags(*keys: str) -> FrozenSet[str]:
        for key in keys:
            if key in metadata:
                return frozenset(normalise_tags(_ensure_list(metadata.get(key))))
        return frozenset()

    composition = _parse_composition(
        _ensure_list(metadata.get("material_composition", metadata.get("materialComposition")))
    )
    return CatalogItem(
        item_id=item_id,
        item_type=str(item_type).strip(),
        category=classify_type(str(item_type)),
        style=normalize_tag(metadata.get("style")),
        formality=normalize_tag(metadata.get("formality")),
        material_composition=composition,
        suitable_weather=tags("suitable_weather", "suitableWeather"),
        suitable_occasions=tags("suitable_occasions", "suitableOccasions"),
        suitable_places=tags("suitable_places", "suitablePlaces"),
        suitable_times_of_day=tags("suitable_times_of_day", "suitable_time_of_day", "suitableTimesOfDay"),
        features=str(metadata.get("features") or "").strip(),
        favorite=bool(metadata.get("favorite", False)),
        name=metadata.get("name", metadata.get("model")),
        brand=metadata.get("brand"),
        material_shares=bucket_shares(composition),
    )


def load_catalog(rows: Iterable[Dict[str, Any]]) -> List[CatalogItem]:
    """Parse catalog rows, rejecting duplicate ids."""

    items: List[CatalogItem] = []
    seen: set[int] = set()
    for row in rows:
        item = from_raw_metadata(row)
        if item.item_id in seen:
            raise ValueError(f"Duplicate catalog item id {item.item_id}")
        seen.add(item.item_id)
        items.append(item)
    return items


__all__ = ["CatalogItem", "from_raw_metadata", "load_catalog"]
