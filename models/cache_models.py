"""Models for translation cache data.

Defines the cached value record, the persisted file layout, the cache tuning parameters,
and the statistics snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from models.config_models import Config

__all__: list[str] = [
    "CacheSettings",
    "CacheStatistics",
    "CachedTranslation",
]


@dataclass(frozen=True)
class CachedTranslation:
    """Cached value of one translation.

    Stored as ``{"translation": text}`` in the persisted cache file. Instances are never
    mutated; re-inserting a key replaces the record.

    Attributes:
        translation (str): Final, post-processed translated text.
    """

    translation: str

    def to_json(self) -> dict[str, str]:
        return {"translation": self.translation}

    @classmethod
    def from_json(cls, value: Any) -> CachedTranslation | None:
        """Parse a persisted value, returning None if it is not a translation record."""
        if isinstance(value, dict) and isinstance(value.get("translation"), str):
            return cls(translation=value["translation"])
        return None


@dataclass(frozen=True)
class CacheSettings:
    """Tuning parameters of the two-tier cache.

    Attributes:
        max_size (int): Capacity of the main (LRU) tier.
        session_max_size (int): Capacity of the session (hot) tier.
        promotion_threshold (int): Access count at which a main-tier key is promoted.
        demotion_threshold (int): Session members below this count are demoted by the sweep.
        session_cleanup_interval (float): Seconds between session sweeps.
        auto_save_interval (float): Seconds between dirty-checked saves.
        preload_length_limit (int): Source texts this long or longer are not preloaded.
    """

    max_size: int = 10000
    session_max_size: int = 500
    promotion_threshold: int = 3
    demotion_threshold: int = 2
    session_cleanup_interval: float = 600.0
    auto_save_interval: float = 300.0
    preload_length_limit: int = 200

    @classmethod
    def from_config(cls, config: Config) -> CacheSettings:
        section = config.CACHE
        return cls(
            max_size=section.MAX_SIZE,
            session_max_size=section.SESSION_MAX_SIZE,
            promotion_threshold=section.PROMOTION_THRESHOLD,
            demotion_threshold=section.DEMOTION_THRESHOLD,
            session_cleanup_interval=section.SESSION_CLEANUP_INTERVAL,
            auto_save_interval=section.AUTO_SAVE_INTERVAL,
            preload_length_limit=section.PRELOAD_LENGTH_LIMIT,
        )


@dataclass
class CacheStatistics:
    """Cache usage statistics.

    Attributes:
        size (int): Entries in the main tier.
        max_size (int): Main tier capacity.
        session_size (int): Entries in the session tier.
        hits (int): Hits in either tier.
        misses (int): Total misses.
        evictions (int): Main tier LRU evictions.
        session_hits (int): Hits served by the session tier.
        promotions (int): Promotions from main to session tier.
        demotions (int): Session members moved back to the main tier.
        tracked_keys (int): Keys with a frequency record.
    """

    size: int = 0
    max_size: int = 0
    session_size: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    session_hits: int = 0
    promotions: int = 0
    demotions: int = 0
    tracked_keys: int = 0

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.hits / self.total

    @property
    def session_hit_rate(self) -> float:
        """Share of hits served by the session tier."""
        if self.hits == 0:
            return 0.0
        return self.session_hits / self.hits

    @property
    def occupancy(self) -> float:
        """Fraction of the main tier capacity in use (0.0 to 1.0)."""
        if self.max_size <= 0:
            return 0.0
        return self.size / self.max_size
