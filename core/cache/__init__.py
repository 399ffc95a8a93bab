"""Translation cache package.

Provides the two-tier translation cache, cache key derivation, and in-flight request
deduplication.
"""

from __future__ import annotations

from core.cache.inflight_manager import InFlightCancelledError, InFlightRegistry
from core.cache.key_builder import RequestKeyBuilder
from core.cache.store import CacheStore

__all__: list[str] = ["CacheStore", "InFlightCancelledError", "InFlightRegistry", "RequestKeyBuilder"]
