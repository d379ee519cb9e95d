"""Model package exports."""

from models.taxonomy import *  # noqa: F401,F403
from models.catalog_item import CatalogItem, from_raw_metadata, load_catalog

__all__ = ["CatalogItem", "from_raw_metadata", "load_catalog"]
