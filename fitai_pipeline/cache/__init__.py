# fitai_pipeline/cache/__init__.py
"""Two-tier result cache keyed by request fingerprint."""

from .coordinator import CacheCoordinator
from .durable import DurableCacheTier
from .fast import FastCacheTier
from .models import CacheEntry, CacheTier

__all__ = [
    "CacheCoordinator",
    "CacheEntry",
    "CacheTier",
    "DurableCacheTier",
    "FastCacheTier",
]
