"""Shared data management for the translation pipeline.

This module defines the SharedData class, a centralized container that builds the cache, the
in-flight registry, the engine registry, and the translation pipeline once at process start and
hands them out by reference. It also owns their startup and shutdown order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from core.cache.inflight_manager import InFlightRegistry
from core.cache.store import CacheStore
from core.notifier import Notifier
from core.trans.pipeline import TranslationPipeline
from core.trans.registry import EngineRegistry
from utils.file_utils import FileUtils, FileUtilsError
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable
    from pathlib import Path

    from models.config_models import Config


__all__: list[str] = ["SharedData"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


@dataclass
class SharedData:
    _config: Config = field()
    _engines: EngineRegistry | None = field(default=None)
    _notification_sink: Callable[[str], object] | None = field(default=None)
    _cache_store: CacheStore = field(init=False)
    _inflight_registry: InFlightRegistry = field(init=False)
    _pipeline: TranslationPipeline = field(init=False)

    async def async_init(self) -> None:
        """Build every component, load the persisted cache, and apply the preload file."""
        self._cache_store = CacheStore.from_config(self.config)
        self._inflight_registry = InFlightRegistry()
        if self._engines is None:
            self._engines = EngineRegistry.from_config(self.config)
        self._log_engines()
        self._pipeline = TranslationPipeline.from_config(
            self.config,
            self._cache_store,
            self._engines,
            inflight=self._inflight_registry,
            notifier=Notifier(self._notification_sink),
        )
        await self._cache_store.component_load()
        await self._inflight_registry.component_load()
        self._preload_cache()

    def _log_engines(self) -> None:
        engines: EngineRegistry = self.engines
        if not engines:
            logger.critical("No translation engine is available; every request will fail")
            return
        logger.info("Available translation engines: %s", ", ".join(engines.names()))
        if self.config.TRANSLATION.STREAMING:
            streaming: list[str] = list(engines.streaming_engines())
            if streaming:
                logger.info("Streaming engines: %s", ", ".join(streaming))
            else:
                logger.info("No available engine supports streaming; streamed requests are answered whole")

    def _preload_cache(self) -> None:
        preload_file: str = self.config.CACHE.PRELOAD_FILE
        if not preload_file:
            return
        path: Path = FileUtils.resolve_path(preload_file)
        try:
            FileUtils.validate_file_path(path, ".json")
            dictionary = FileUtils.read_json(path)
        except (FileUtilsError, OSError, ValueError) as err:
            logger.error("Failed to read cache preload file '%s': %s", path, err)
            return
        self._cache_store.preload(dictionary, self.config.TRANSLATION.ENGINE, self.config.TRANSLATION.TO)

    async def close(self) -> None:
        """Shut the pipeline down, then persist the cache."""
        await self._pipeline.shutdown()
        await self._inflight_registry.component_teardown()
        await self._cache_store.component_teardown()

    @property
    def config(self) -> Config:
        return self._config

    @property
    def cache_store(self) -> CacheStore:
        return self._cache_store

    @property
    def inflight_registry(self) -> InFlightRegistry:
        return self._inflight_registry

    @property
    def engines(self) -> EngineRegistry:
        if self._engines is None:
            msg = "SharedData.async_init() has not been called"
            raise RuntimeError(msg)
        return self._engines

    @property
    def pipeline(self) -> TranslationPipeline:
        return self._pipeline
