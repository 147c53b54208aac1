# fitai_pipeline/catalog/__init__.py
"""Reference catalog: models, loading and candidate filtering."""

from .filter import CandidateFilter, FilterResult
from .loader import load_catalog
from .models import Catalog, CatalogDocument, CatalogItem, CatalogKind

__all__ = [
    "Catalog",
    "CatalogDocument",
    "CatalogItem",
    "CatalogKind",
    "CandidateFilter",
    "FilterResult",
    "load_catalog",
]
