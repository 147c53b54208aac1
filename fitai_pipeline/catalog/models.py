# fitai_pipeline/catalog/models.py
"""
Reference catalog models.

The catalog is the bounded, versioned set of content units (exercises or
foods) a generated plan may reference. It is read-only to the pipeline.
"""

from collections.abc import Iterable, Iterator
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CatalogKind(str, Enum):
    """Which content unit a catalog holds."""

    EXERCISE = "exercise"
    FOOD = "food"


def _normalize_tags(values: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        tag = str(value).strip().lower()
        if tag:
            seen.setdefault(tag, None)
    return tuple(seen)


class CatalogItem(BaseModel):
    """
    A single valid content unit.

    category holds the coarse grouping tags (body parts, food groups);
    attributes holds the semantic facets (equipment, target muscles,
    diet flags, allergens, ...).
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    category: tuple[str, ...] = ()
    attributes: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    level: Literal["beginner", "intermediate", "advanced"] | None = None
    calories: int | None = Field(default=None, ge=0, description="Per serving (foods)")
    asset_ref: str = Field(default="", description="Demonstration media reference")

    @field_validator("category", mode="before")
    @classmethod
    def _clean_category(cls, value):
        if isinstance(value, str):
            value = [value]
        return _normalize_tags(value or ())

    @field_validator("attributes", mode="before")
    @classmethod
    def _clean_attributes(cls, value):
        cleaned = {}
        for facet, tags in (value or {}).items():
            if isinstance(tags, str):
                tags = [tags]
            cleaned[str(facet).strip().lower()] = _normalize_tags(tags)
        return cleaned

    @field_validator("asset_ref", mode="before")
    @classmethod
    def _clean_asset_ref(cls, value):
        # Whitespace-only references count as missing
        return (value or "").strip()

    @property
    def has_asset(self) -> bool:
        return bool(self.asset_ref)

    def attribute(self, facet: str) -> frozenset[str]:
        """Tags of one semantic facet (empty if the facet is absent)."""
        return frozenset(self.attributes.get(facet, ()))

    def category_tags(self) -> frozenset[str]:
        return frozenset(self.category)

    def semantic_tags(self) -> frozenset[str]:
        """All semantic attributes as facet-qualified tags."""
        return frozenset(
            f"{facet}:{tag}" for facet, tags in self.attributes.items() for tag in tags
        )

    def prompt_line(self) -> str:
        """Compact one-line description used when listing the allowed set to the model."""
        parts = [f'ID: "{self.id}"', f'Name: "{self.name}"']
        if self.category:
            parts.append(f"Category: {', '.join(self.category)}")
        for facet, tags in sorted(self.attributes.items()):
            if tags:
                parts.append(f"{facet.replace('_', ' ').title()}: {', '.join(tags)}")
        if self.calories is not None:
            parts.append(f"Calories: {self.calories}")
        return ", ".join(parts)


class CatalogDocument(BaseModel):
    """On-disk catalog document."""

    model_config = ConfigDict(extra="ignore")

    version: str = Field(min_length=1)
    kind: CatalogKind
    items: list[CatalogItem]

    @model_validator(mode="after")
    def _unique_ids(self) -> "CatalogDocument":
        seen: set[str] = set()
        duplicates = []
        for item in self.items:
            if item.id in seen:
                duplicates.append(item.id)
            seen.add(item.id)
        if duplicates:
            raise ValueError(f"Duplicate catalog IDs: {', '.join(sorted(set(duplicates)))}")
        return self


class Catalog:
    """Read-only, id-indexed catalog of one kind."""

    def __init__(self, kind: CatalogKind, version: str, items: Iterable[CatalogItem]) -> None:
        self.kind = kind
        self.version = version
        self._items: dict[str, CatalogItem] = {}
        for item in items:
            if item.id in self._items:
                raise ValueError(f"Duplicate catalog ID: {item.id}")
            self._items[item.id] = item

    @classmethod
    def from_document(cls, document: CatalogDocument) -> "Catalog":
        return cls(document.kind, document.version, document.items)

    def get(self, item_id: str) -> CatalogItem | None:
        return self._items.get(item_id)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __iter__(self) -> Iterator[CatalogItem]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"Catalog(kind={self.kind.value}, version={self.version!r}, items={len(self)})"
