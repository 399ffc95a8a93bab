# ruff: noqa: BLE001
"""Two-tier translation cache.

The main tier is an LRU map bounded by ``max_size``. Keys that are hit often enough are promoted
into a smaller session tier that is checked first and is never subject to LRU eviction. A
periodic sweep demotes session members that went cold and halves the counters of the rest, so
recently hot keys can outrank early winners.

A key lives in exactly one tier at any time. Both tiers are persisted together to a JSON file
holding an array of ``[key, {"translation": text}]`` pairs.
"""

from __future__ import annotations

import asyncio
import json
from collections import OrderedDict
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from core.cache.key_builder import RequestKeyBuilder
from models.cache_models import CachedTranslation, CacheSettings, CacheStatistics
from models.translation_models import TranslationConfig
from utils.file_utils import FileMissingError, FileUtils, FileWriteError
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Iterable

    from models.config_models import Config
    from models.translation_models import TextType

__all__: list[str] = ["CacheStore"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_CACHE_PATH: Final[Path] = Path("translation-cache.json")


class CacheStore:
    """Size-bounded, two-tier key to translation store with JSON persistence.

    Mutations of the tiers and the frequency map happen in synchronous blocks, so no lock is
    needed for them. Only persistence suspends, and concurrent saves are serialized by a lock.
    """

    def __init__(self, settings: CacheSettings | None = None, path: Path | None = None) -> None:
        self.settings: CacheSettings = settings or CacheSettings()
        self.path: Path | None = path
        self._main: OrderedDict[str, CachedTranslation] = OrderedDict()
        self._session: OrderedDict[str, CachedTranslation] = OrderedDict()
        self._frequency: dict[str, int] = {}
        self._stats: CacheStatistics = CacheStatistics()
        self._dirty: bool = False
        self._save_lock: asyncio.Lock = asyncio.Lock()
        self._terminate_event: asyncio.Event = asyncio.Event()
        self.background_tasks: set[asyncio.Task[None]] = set()
        logger.debug("CacheStore instance created")

    @classmethod
    def from_config(cls, config: Config) -> CacheStore:
        path: Path | None = FileUtils.resolve_path(config.CACHE.PATH) if config.CACHE.PATH else None
        return cls(CacheSettings.from_config(config), path)

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def size(self) -> int:
        """Number of entries in the main tier."""
        return len(self._main)

    @property
    def session_size(self) -> int:
        return len(self._session)

    def __len__(self) -> int:
        return len(self._main) + len(self._session)

    def __contains__(self, key: object) -> bool:
        return key in self._session or key in self._main

    def in_session(self, key: str) -> bool:
        return key in self._session

    def in_main(self, key: str) -> bool:
        return key in self._main

    def frequency(self, key: str) -> int:
        return self._frequency.get(key, 0)

    # Lookup and insertion

    def get(self, key: str) -> str | None:
        """Look up a translation.

        The session tier is checked first. A main tier hit moves the entry to the most recently
        used position, increments its access count, and promotes it into the session tier once
        the count reaches ``promotion_threshold``.

        Args:
            key (str): Cache key.

        Returns:
            str | None: Cached translation, or None on a miss.
        """
        entry: CachedTranslation | None = self._session.get(key)
        if entry is not None:
            self._track_access(key)
            self._stats.hits += 1
            self._stats.session_hits += 1
            logger.debug("Session cache hit: %s", StringUtils.preview(key, 60))
            return entry.translation

        entry = self._main.get(key)
        if entry is not None:
            self._main.move_to_end(key)
            frequency: int = self._track_access(key)
            if frequency >= self.settings.promotion_threshold:
                self._promote(key)
            self._stats.hits += 1
            logger.debug("Cache hit [%d/%d]: %s", self._stats.hits, self._stats.total, StringUtils.preview(key, 60))
            return entry.translation

        self._stats.misses += 1
        logger.debug("Cache miss [%d/%d]: %s", self._stats.hits, self._stats.total, StringUtils.preview(key, 60))
        return None

    def set(self, key: str, value: str) -> None:
        """Insert or overwrite a translation.

        A key already living in the session tier is overwritten there. Any other key goes into
        the main tier, evicting the least recently used entry first when the tier is full and the
        key is new. Entries never enter the session tier directly.
        """
        entry = CachedTranslation(translation=value)
        if key in self._session:
            self._session[key] = entry
            self._dirty = True
            return

        if key not in self._main and len(self._main) >= self.settings.max_size:
            evicted_key, _ = self._main.popitem(last=False)
            self._frequency.pop(evicted_key, None)
            self._stats.evictions += 1
            logger.debug("Evicted least recently used entry: %s", StringUtils.preview(evicted_key, 60))

        self._main[key] = entry
        self._main.move_to_end(key)
        self._dirty = True

    def _track_access(self, key: str) -> int:
        count: int = self._frequency.get(key, 0) + 1
        self._frequency[key] = count
        return count

    def _promote(self, key: str) -> None:
        """Move ``key`` from the main tier into the session tier."""
        if key in self._session or key not in self._main:
            return

        if len(self._session) >= self.settings.session_max_size:
            coldest: str = min(self._session, key=lambda k: self._frequency.get(k, 0))
            self._demote(coldest)

        self._session[key] = self._main.pop(key)
        self._stats.promotions += 1
        logger.debug("Promoted to session cache: %s (freq: %d)", StringUtils.preview(key, 60), self.frequency(key))

    def _demote(self, key: str) -> None:
        """Move a session member back into the main tier and forget its access count."""
        entry: CachedTranslation | None = self._session.pop(key, None)
        self._frequency.pop(key, None)
        if entry is None:
            return
        self._stats.demotions += 1
        if len(self._main) >= self.settings.max_size:
            # Main tier full: the demoted entry takes the place of the least recently used one.
            evicted_key, _ = self._main.popitem(last=False)
            self._frequency.pop(evicted_key, None)
            self._stats.evictions += 1
        self._main[key] = entry
        self._main.move_to_end(key)

    def cleanup_session(self) -> int:
        """Demote cold session members and decay the access counts of the rest.

        Members whose count is below ``demotion_threshold`` leave the session tier; survivors
        have their count halved.

        Returns:
            int: Number of demoted entries.
        """
        demoted: int = 0
        for key in list(self._session):
            frequency: int = self._frequency.get(key, 0)
            if frequency < self.settings.demotion_threshold:
                self._demote(key)
                demoted += 1
            else:
                self._frequency[key] = frequency // 2

        if demoted > 0:
            logger.info("Session cache cleanup: %d entries demoted", demoted)
        return demoted

    def preload(
        self,
        dictionary: Iterable[Any],
        engine: str,
        to_lang: str,
        text_type: TextType = "sentence",
    ) -> int:
        """Warm the cache with known translations.

        Items are ``[text, translation]`` pairs or ``{"src": text, "dst": translation}`` mappings.
        Entries with an empty source, a source of ``preload_length_limit`` characters or more,
        or non-string members are skipped.

        Args:
            dictionary (Iterable[Any]): Items to insert.
            engine (str): Engine name the keys are built for.
            to_lang (str): Target language the keys are built for.
            text_type (TextType): Kind of text the keys are built for.

        Returns:
            int: Number of entries inserted.
        """
        if isinstance(dictionary, (str, bytes, dict)):
            logger.warning("Cache preload failed: dictionary is not a list of entries")
            return 0

        translation = TranslationConfig(engine=engine, from_lang="", to_lang=to_lang)
        count: int = 0
        for item in dictionary:
            if isinstance(item, (list, tuple)) and len(item) >= 2:
                source, target = item[0], item[1]
            elif isinstance(item, dict):
                source, target = item.get("src"), item.get("dst")
            else:
                continue

            if not isinstance(source, str) or not isinstance(target, str) or not target:
                continue
            if not source or len(source) >= self.settings.preload_length_limit:
                continue

            self.set(RequestKeyBuilder.build_key(source, translation, None, text_type), target)
            count += 1

        logger.info("Cache preloaded: %d entries for engine '%s'", count, engine)
        return count

    async def clear(self) -> None:
        """Remove every entry from both tiers and persist the empty cache."""
        removed: int = len(self)
        self._main.clear()
        self._session.clear()
        self._frequency.clear()
        self._dirty = True
        await self.save()
        logger.info("Cache cleared: %d entries removed", removed)

    # Statistics

    @property
    def statistics(self) -> CacheStatistics:
        """Snapshot of the current cache statistics."""
        return CacheStatistics(
            size=len(self._main),
            max_size=self.settings.max_size,
            session_size=len(self._session),
            hits=self._stats.hits,
            misses=self._stats.misses,
            evictions=self._stats.evictions,
            session_hits=self._stats.session_hits,
            promotions=self._stats.promotions,
            demotions=self._stats.demotions,
            tracked_keys=len(self._frequency),
        )

    def reset_statistics(self) -> None:
        self._stats = CacheStatistics()

    def log_status(self) -> None:
        stats: CacheStatistics = self.statistics
        logger.info(
            "Cache status: size %d/%d (%.1f%%), session %d, hit rate %.1f%% (%d hits, %d misses), evictions %d",
            stats.size,
            stats.max_size,
            stats.occupancy * 100,
            stats.session_size,
            stats.hit_rate * 100,
            stats.hits,
            stats.misses,
            stats.evictions,
        )

    # Persistence

    def load(self) -> int:
        """Replace the cache content with the persisted file.

        A missing or malformed file leaves an empty cache. Entries beyond ``max_size`` are dropped,
        keeping the most recent ones.

        Returns:
            int: Number of entries loaded.
        """
        self._main.clear()
        self._session.clear()
        self._frequency.clear()
        if self.path is None:
            return 0

        try:
            data: Any = FileUtils.read_json(self.path)
        except FileMissingError:
            logger.info("No translation cache file found at '%s'", self.path)
            return 0
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as err:
            logger.error("Failed to load translation cache '%s': %s", self.path, err)
            return 0

        if not isinstance(data, list):
            logger.error("Translation cache file '%s' does not hold a list of entries", self.path)
            return 0

        for item in data[-self.settings.max_size :] if self.settings.max_size > 0 else []:
            if not isinstance(item, list) or len(item) != 2 or not isinstance(item[0], str):
                continue
            entry: CachedTranslation | None = CachedTranslation.from_json(item[1])
            if entry is not None:
                self._main[item[0]] = entry

        self._dirty = False
        logger.info("Translation cache loaded: %d entries", len(self._main))
        return len(self._main)

    def _snapshot(self) -> list[list[Any]]:
        return [[key, entry.to_json()] for key, entry in (*self._main.items(), *self._session.items())]

    async def save(self) -> bool:
        """Persist the cache if it changed since the last save.

        The snapshot is taken synchronously, then written to a temporary file and renamed over
        the cache file in a worker thread. Errors are logged and leave the cache dirty.

        Returns:
            bool: True if a file was written.
        """
        if self.path is None:
            self._dirty = False
            return False

        async with self._save_lock:
            if not self._dirty:
                return False
            snapshot: list[list[Any]] = self._snapshot()
            self._dirty = False
            try:
                await asyncio.to_thread(FileUtils.write_json_atomic, self.path, snapshot)
            except FileWriteError as err:
                self._dirty = True
                logger.error("Failed to save translation cache: %s", err)
                return False
            logger.debug("Translation cache saved: %d entries", len(snapshot))
            return True

    async def export_cache_detailed(self, output_path: Path) -> bool:
        """Export cache content to a text file, most frequently accessed entries first.

        Args:
            output_path (Path): Output file path.

        Returns:
            bool: True if export succeeded, False otherwise.
        """
        rows: list[tuple[str, str, str, int]] = [
            (key, "session", entry.translation, self.frequency(key)) for key, entry in self._session.items()
        ]
        rows.extend((key, "main", entry.translation, self.frequency(key)) for key, entry in self._main.items())
        rows.sort(key=lambda row: row[3], reverse=True)

        def _write() -> None:
            with output_path.open("w", encoding="utf-8") as f:
                f.write("Translation Cache Detailed Export\n")
                f.write("=" * 80 + "\n\n")
                for key, tier, translation, frequency in rows:
                    f.write(f"Cache Key: {key}\n")
                    f.write(f"Tier: {tier}\n")
                    f.write(f"Frequency: {frequency}\n")
                    f.write(f"Translation: {translation}\n")
                    f.write("-" * 80 + "\n")

        try:
            await asyncio.to_thread(_write)
        except OSError as err:
            logger.error("Failed to export cache: %s", err)
            return False
        logger.info("Cache exported to '%s' (%d entries)", output_path, len(rows))
        return True

    # Lifecycle

    async def component_load(self) -> None:
        """Load the persisted cache and start the session sweep and auto-save tasks."""
        logger.info("CacheStore initialization started")
        if self.background_tasks:
            logger.warning("CacheStore is already initialized")
            return

        await asyncio.to_thread(self.load)
        self._terminate_event.clear()
        tasks: list[asyncio.Task[None]] = [
            asyncio.create_task(
                self._run_periodically(self.settings.session_cleanup_interval, self._sweep_session),
                name="cache_session_cleanup_task",
            ),
            asyncio.create_task(
                self._run_periodically(self.settings.auto_save_interval, self.save),
                name="cache_auto_save_task",
            ),
        ]
        for task in tasks:
            logger.debug("Creating task: '%s'", task.get_name())
            self.background_tasks.add(task)
        logger.info("CacheStore initialized successfully")

    async def component_teardown(self) -> None:
        """Stop background tasks and perform a final save."""
        logger.info("CacheStore shutdown started")
        self._terminate_event.set()
        if self.background_tasks:
            _, remaining_tasks = await asyncio.wait(self.background_tasks, timeout=2.0)
            for task in remaining_tasks:
                task.cancel()
            if remaining_tasks:
                logger.warning("Some tasks are still pending: %s", [task.get_name() for task in remaining_tasks])
            self.background_tasks.clear()

        try:
            await self.save()
        except Exception as err:
            logger.error("Translation cache final save failed: %s", err)
        logger.info("CacheStore shutdown completed")

    async def _sweep_session(self) -> None:
        self.cleanup_session()

    async def _run_periodically(self, interval: float, action: Callable[[], Awaitable[Any]]) -> None:
        if interval <= 0:
            return
        while not self._terminate_event.is_set():
            try:
                await asyncio.wait_for(self._terminate_event.wait(), timeout=interval)
            except TimeoutError:
                try:
                    await action()
                except Exception as err:
                    logger.error("Periodic cache task failed: %s", err)
