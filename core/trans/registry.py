from __future__ import annotations

from typing import TYPE_CHECKING

from core.trans.engines import (
    DeeplTranslation,  # noqa: F401
    GPTTranslation,  # noqa: F401
    OpenRouterTranslation,  # noqa: F401
)
from core.trans.interface import EngineNotFoundError, TransInterface, TranslateExceptionError
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable, Mapping

    from models.config_models import Config

__all__: list[str] = ["EngineRegistry"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class EngineRegistry:
    """Map from engine name to a ready-to-use engine instance.

    The pipeline resolves engines only through this object, so tests can hand in stub engines
    and production code can build the instances from the configuration.
    """

    def __init__(self, engines: Mapping[str, TransInterface] | None = None) -> None:
        self._engines: dict[str, TransInterface] = dict(engines or {})

    @classmethod
    def from_config(cls, config: Config) -> EngineRegistry:
        """Instantiate and initialize the configured primary and alternate engines.

        Engines that fail to initialize are logged and left out; the fallback chain then skips them.

        Args:
            config (Config): Application configuration.

        Returns:
            EngineRegistry: Registry holding every engine that initialized successfully.
        """
        registry = cls()
        names: list[str] = [config.TRANSLATION.ENGINE, config.TRANSLATION.ENGINE_ALTERNATE]
        for name in dict.fromkeys(n for n in names if n):
            engine_cls: type[TransInterface] | None = TransInterface.registered.get(name)
            if engine_cls is None:
                logger.critical("Translation class not found: '%s'", name)
                continue
            instance: TransInterface = engine_cls()
            try:
                instance.initialize(config)
            except RuntimeError as err:
                logger.critical("RuntimeError in '%s' translation setup: %s", name, err)
            except TranslateExceptionError as err:
                logger.critical("Exception in '%s' translation setup: %s", name, err)
            else:
                registry.register(name, instance)
                logger.info("Translation engine initialized: '%s'", name)
                logger.debug("Engine attributes: %s", instance.engine_attributes)
        return registry

    def register(self, name: str, engine: TransInterface) -> None:
        if name in self._engines:
            logger.warning("Replacing translation engine '%s'", name)
        self._engines[name] = engine

    def get(self, name: str) -> TransInterface:
        """Return the engine registered under ``name``.

        Raises:
            EngineNotFoundError: If no such engine is available.
        """
        try:
            return self._engines[name]
        except KeyError:
            msg: str = f"Translation engine '{name}' is not available"
            raise EngineNotFoundError(msg) from None

    def names(self) -> list[str]:
        return list(self._engines)

    def __contains__(self, name: object) -> bool:
        return name in self._engines

    def __len__(self) -> int:
        return len(self._engines)

    def streaming_engines(self) -> Iterable[str]:
        return (name for name, engine in self._engines.items() if engine.supports_streaming)

    async def close(self) -> None:
        """Close every engine, logging failures instead of raising."""
        logger.info("Class '%s' termination process started.", self.__class__.__name__)
        for name, engine in self._engines.items():
            try:
                await engine.close()
            except Exception as err:  # noqa: BLE001
                logger.error("Error closing translation engine '%s': %s", name, err)
        logger.info("Class '%s' termination process completed.", self.__class__.__name__)
