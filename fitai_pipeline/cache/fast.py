# fitai_pipeline/cache/fast.py
"""
FAST cache tier: in-process TTL + LRU store.

Entries are lost on restart and may be evicted at any time; the DURABLE
tier is authoritative. Payloads are copied in and out, so callers never
share mutable state with the cache.
"""

import copy
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any

from fitai_pipeline.models.jobs import utcnow

from .models import CacheEntry, CacheTier

logger = logging.getLogger(__name__)


class FastCacheTier:
    """Bounded, TTL-aware LRU map of fingerprint -> CacheEntry."""

    def __init__(self, ttl_seconds: int = 3600, max_entries: int = 512) -> None:
        self._ttl = ttl_seconds
        self._max = max_entries
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def get(self, fingerprint: str, now: datetime | None = None) -> CacheEntry | None:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        if entry.is_expired(now):
            del self._entries[fingerprint]
            return None
        self._entries.move_to_end(fingerprint)
        entry.hit_count += 1
        return copy.deepcopy(entry)

    def put(
        self,
        fingerprint: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> CacheEntry:
        entry = CacheEntry(
            fingerprint=fingerprint,
            tier=CacheTier.FAST,
            payload=copy.deepcopy(payload),
            created_at=now or utcnow(),
            ttl_seconds=self._ttl,
            metadata=copy.deepcopy(metadata or {}),
        )
        self._entries[fingerprint] = entry
        self._entries.move_to_end(fingerprint)
        while len(self._entries) > self._max:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"FAST tier evicted {evicted[:12]}")
        return copy.deepcopy(entry)

    def delete(self, fingerprint: str) -> bool:
        return self._entries.pop(fingerprint, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries
