# fitai_pipeline/cache/coordinator.py
"""
Two-tier cache coordinator.

Lookup goes FAST then DURABLE (a DURABLE hit backfills FAST); writes go to
both tiers. Read failures degrade to a miss. A DURABLE write failure
propagates because that tier is authoritative.
"""

import logging
from typing import Any

import aiosqlite

from .durable import DurableCacheTier
from .fast import FastCacheTier
from .models import CacheEntry

logger = logging.getLogger(__name__)


class CacheCoordinator:
    def __init__(self, fast: FastCacheTier, durable: DurableCacheTier) -> None:
        self.fast = fast
        self.durable = durable

    async def lookup(self, fingerprint: str) -> CacheEntry | None:
        """Return a live entry from the nearest tier, or None."""
        entry = self.fast.get(fingerprint)
        if entry is not None:
            logger.info(
                f"Cache hit (fast) for {fingerprint[:12]}", extra={"fingerprint": fingerprint}
            )
            return entry

        try:
            entry = await self.durable.get(fingerprint)
        except aiosqlite.Error as e:
            logger.warning(
                f"Durable cache read failed, treating as miss: {e}",
                extra={"fingerprint": fingerprint},
            )
            return None

        if entry is None:
            logger.debug(f"Cache miss for {fingerprint[:12]}")
            return None

        self.fast.put(fingerprint, entry.payload, entry.metadata)
        logger.info(
            f"Cache hit (durable, hits={entry.hit_count}) for {fingerprint[:12]}",
            extra={"fingerprint": fingerprint},
        )
        return entry

    async def write(
        self,
        fingerprint: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> CacheEntry:
        """Write through to both tiers, superseding any previous entry."""
        entry = await self.durable.put(fingerprint, payload, metadata)
        self.fast.put(fingerprint, payload, metadata)
        logger.info(f"Cached result for {fingerprint[:12]}", extra={"fingerprint": fingerprint})
        return entry

    async def invalidate(self, fingerprint: str) -> None:
        """Remove the entry from both tiers."""
        self.fast.delete(fingerprint)
        removed = await self.durable.delete(fingerprint)
        logger.info(
            f"Invalidated cache for {fingerprint[:12]} (durable row removed: {removed})",
            extra={"fingerprint": fingerprint},
        )
