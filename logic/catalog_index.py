"""Per-category lookup over an immutable catalog snapshot."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models.catalog_item import CatalogItem
from models.taxonomy import CATEGORIES, classify_type


class CatalogIndex:
    """Classifies catalog items into structural categories.

    The index holds no state beyond the snapshot it was built from; build a new
    one whenever the catalog changes.
    """

    def __init__(self, items: Iterable[CatalogItem]) -> None:
        self._items: Dict[int, CatalogItem] = {}
        self._by_category: Dict[str, List[CatalogItem]] = {category: [] for category in CATEGORIES}
        for item in items:
            if item.item_id in self._items:
                raise ValueError(f"Duplicate catalog item id {item.item_id}")
            self._items[item.item_id] = item
            self._by_category[self.classify(item)].append(item)
        for members in self._by_category.values():
            members.sort(key=lambda member: member.item_id)

    @staticmethod
    def classify(item: CatalogItem) -> str:
        return item.category if item.category in CATEGORIES else classify_type(item.item_type)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    @property
    def items(self) -> List[CatalogItem]:
        return [self._items[item_id] for item_id in sorted(self._items)]

    def get(self, item_id: int) -> Optional[CatalogItem]:
        return self._items.get(item_id)

    def category_of(self, item_id: int) -> Optional[str]:
        item = self._items.get(item_id)
        return self.classify(item) if item else None

    def members(self, category: str) -> List[CatalogItem]:
        return list(self._by_category.get(category, []))

    def counts(self) -> Dict[str, int]:
        return {category: len(members) for category, members in self._by_category.items()}

    def missing_categories(self, required: Sequence[str]) -> Tuple[str, ...]:
        return tuple(category for category in required if not self._by_category.get(category))

    def resolve(self, item_ids: Iterable[int]) -> Tuple[List[CatalogItem], List[int]]:
        """Split ids into known items (first occurrence order) and unknown ids."""

        known: List[CatalogItem] = []
        unknown: List[int] = []
        seen: set[int] = set()
        for item_id in item_ids:
            if item_id in seen:
                continue
            seen.add(item_id)
            item = self._items.get(item_id)
            if item is None:
                unknown.append(item_id)
            else:
                known.append(item)
        return known, unknown


def group_by_category(items: Iterable[CatalogItem]) -> Dict[str, List[CatalogItem]]:
    """Group an arbitrary pool by category, each group sorted by id."""

    grouped: Dict[str, List[CatalogItem]] = {category: [] for category in CATEGORIES}
    for item in items:
        grouped[CatalogIndex.classify(item)].append(item)
    for values in grouped.values():
        values.sort(key=lambda member: member.item_id)
    return grouped


__all__ = ["CatalogIndex", "group_by_category"]
