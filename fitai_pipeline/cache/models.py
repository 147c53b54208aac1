# fitai_pipeline/cache/models.py
"""Cache entry model shared by both tiers."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from fitai_pipeline.models.jobs import utcnow


class CacheTier(Enum):
    FAST = "fast"
    DURABLE = "durable"


@dataclass
class CacheEntry:
    """
    A stored generation result.

    Entries are immutable in content: a rewrite of the same fingerprint
    replaces the entry, only hit_count is ever bumped in place.
    """

    fingerprint: str
    tier: CacheTier
    payload: dict[str, Any]
    created_at: datetime
    ttl_seconds: int
    hit_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.expires_at
