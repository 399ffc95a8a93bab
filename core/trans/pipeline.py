"""Translation request pipeline.

``TranslationPipeline.translate`` is the single entry point for callers. A request goes through:

1. line break removal; empty text or identical languages return the text as is,
2. cache lookup,
3. in-flight deduplication,
4. dispatch through the dialogue line batcher, or straight to the engines when it declines,
5. the engine fallback chain, with engine-level batching for allow-listed engines,
6. post-processing (half-width conversion, placeholder code restoration, Chinese script conversion),
7. cache store.

Errors never escape ``translate``: the error message is returned in place of the translation so
callers can display it like any other result.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import TYPE_CHECKING

from core.cache.inflight_manager import InFlightRegistry
from core.cache.key_builder import RequestKeyBuilder
from core.notifier import Notifier
from core.trans.dialogue_batcher import DialogueLineBatcher
from core.trans.engine_batcher import EngineBatcher
from core.trans.interface import (
    BatcherShutdownError,
    EngineNotFoundError,
    EnginesExhaustedError,
    StreamingTransInterface,
    TranslateExceptionError,
    TranslationTimeoutError,
)
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Sequence

    from core.cache.store import CacheStore
    from core.trans.interface import Result, TransInterface
    from core.trans.registry import EngineRegistry
    from models.config_models import Config
    from models.translation_models import PlaceholderTable, TextType, TranslationConfig

__all__: list[str] = ["TranslationPipeline"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class TranslationPipeline:
    """Orchestrates caching, deduplication, batching, and engine fallback for translations."""

    def __init__(
        self,
        cache: CacheStore,
        engines: EngineRegistry,
        *,
        inflight: InFlightRegistry | None = None,
        engine_batcher: EngineBatcher | None = None,
        dialogue_batcher: DialogueLineBatcher | None = None,
        notifier: Notifier | None = None,
        timeout: float = 30.0,
        streaming: bool = True,
    ) -> None:
        """Initialize the pipeline.

        Args:
            cache (CacheStore): Translation cache.
            engines (EngineRegistry): Engines by name.
            inflight (InFlightRegistry | None): Deduplication registry. A new one is created if None.
            engine_batcher (EngineBatcher | None): Engine-level batcher. Engines are always called
                directly if None.
            dialogue_batcher (DialogueLineBatcher | None): Dialogue line batcher. It is bound to
                this pipeline's engine dispatch.
            notifier (Notifier | None): Sink for engine switch messages.
            timeout (float): Seconds allowed for one engine call.
            streaming (bool): Whether ``translate_stream`` may use streaming engines.
        """
        self.cache: CacheStore = cache
        self.engines: EngineRegistry = engines
        self.inflight: InFlightRegistry = inflight or InFlightRegistry()
        self.engine_batcher: EngineBatcher | None = engine_batcher
        self.dialogue_batcher: DialogueLineBatcher | None = dialogue_batcher
        self.notifier: Notifier = notifier or Notifier()
        self.timeout: float = timeout
        self.streaming: bool = streaming
        if self.dialogue_batcher is not None:
            self.dialogue_batcher.bind(self._translate_raw)

    @classmethod
    def from_config(
        cls,
        config: Config,
        cache: CacheStore,
        engines: EngineRegistry,
        *,
        inflight: InFlightRegistry | None = None,
        notifier: Notifier | None = None,
    ) -> TranslationPipeline:
        return cls(
            cache,
            engines,
            inflight=inflight,
            engine_batcher=EngineBatcher.from_config(config),
            dialogue_batcher=DialogueLineBatcher.from_config(config),
            notifier=notifier,
            timeout=config.TRANSLATION.TIMEOUT,
            streaming=config.TRANSLATION.STREAMING,
        )

    @staticmethod
    def post_process(text: str, table: PlaceholderTable | None, to_lang: str = "") -> str:
        """Convert full-width characters to half-width, restore placeholder codes, and convert Chinese script.

        Chinese output is converted to Traditional or Simplified characters to match ``to_lang``.
        """
        text = StringUtils.restore_placeholder_codes(StringUtils.full_to_half(text), table)
        return StringUtils.convert_chinese_script(text, to_lang)

    async def translate(
        self,
        text: str,
        translation: TranslationConfig,
        table: PlaceholderTable | None = None,
        text_type: TextType = "sentence",
    ) -> str:
        """Translate one text.

        Args:
            text (str): Source text. Line breaks are removed.
            translation (TranslationConfig): Engines and language pair.
            table (PlaceholderTable | None): Placeholder table protecting proper nouns.
            text_type (TextType): Kind of text.

        Returns:
            str: The translation, the unchanged text when there is nothing to translate, or the
                error message when translation failed.
        """
        try:
            return await self._translate(text, translation, table, text_type)
        except Exception as err:  # noqa: BLE001
            logger.error("Translation failed: %s", err)
            return str(err)

    async def _translate(
        self,
        text: str,
        translation: TranslationConfig,
        table: PlaceholderTable | None,
        text_type: TextType,
    ) -> str:
        text = StringUtils.strip_line_breaks(text)
        if not text or translation.from_lang == translation.to_lang:
            return text

        key: str = RequestKeyBuilder.build_key(text, translation, table, text_type)
        cached: str | None = self.cache.get(key)
        if cached is not None:
            return cached

        async def compute() -> str:
            raw: str = await self._dispatch(text, translation, table, text_type)
            result: str = self.post_process(raw, table, translation.to_lang)
            self.cache.set(key, result)
            return result

        return await self.inflight.dedupe(key, compute)

    async def _dispatch(
        self,
        text: str,
        translation: TranslationConfig,
        table: PlaceholderTable | None,
        text_type: TextType,
    ) -> str:
        if self.dialogue_batcher is not None:
            future: asyncio.Future[str] | None = self.dialogue_batcher.add_line(text, translation, table, text_type)
            if future is not None:
                return await future
        return await self._translate_raw(text, translation, table, text_type)

    async def _translate_raw(
        self,
        text: str,
        translation: TranslationConfig,
        table: PlaceholderTable | None,
        text_type: TextType,
    ) -> str:
        """Run the engine fallback chain.

        Engines are tried in the order of ``translation.engine_list``. After a failure the next
        engine is tried only if ``auto_change`` is set, and the switch is announced through the
        notifier.

        Raises:
            EngineNotFoundError: If no engine is configured.
            EnginesExhaustedError: If more than one engine was tried and all failed.
            TranslateExceptionError: The single engine's error when no switch was made.
        """
        _ = table
        engine_list: list[str] = translation.engine_list
        if not engine_list:
            msg = "No translation engine configured"
            raise EngineNotFoundError(msg)

        last_error: Exception | None = None
        attempts: int = 0
        for name in engine_list:
            if last_error is not None:
                if not translation.auto_change:
                    break
                self.notifier.notify(f"Change to {name}.")

            attempts += 1
            try:
                return await self._dispatch_engine(text, replace(translation, engine=name), text_type)
            except BatcherShutdownError:
                raise
            except Exception as err:  # noqa: BLE001
                logger.error("Translation by '%s' failed: %s", name, err)
                last_error = err

        if last_error is None:
            msg = "No translation engine was attempted"
            raise EngineNotFoundError(msg)
        if attempts == 1:
            raise last_error
        msg = f"All translation engines failed: {last_error}"
        raise EnginesExhaustedError(msg) from last_error

    def _accepts_batching(self, name: str) -> bool:
        """Whether requests for ``name`` may be joined: allow-listed and declared multi-segment safe."""
        if self.engine_batcher is None or not self.engine_batcher.is_batchable(name) or name not in self.engines:
            return False
        return self.engines.get(name).engine_attributes.accepts_multi_segment

    async def _dispatch_engine(self, text: str, translation: TranslationConfig, text_type: TextType) -> str:
        if self.engine_batcher is not None and self._accepts_batching(translation.engine):
            return await self.engine_batcher.add_to_batch(text, translation, self._call_engine, text_type)
        return await self._call_engine(text, translation, text_type)

    def _resolve_engine(self, name: str) -> TransInterface:
        engine: TransInterface = self.engines.get(name)
        if not engine.is_available:
            msg: str = f"Translation engine '{name}' is currently unavailable"
            raise TranslateExceptionError(msg)
        return engine

    async def _call_engine(self, text: str, translation: TranslationConfig, text_type: TextType) -> str:
        """Perform one upstream call, bounded by the pipeline timeout."""
        engine: TransInterface = self._resolve_engine(translation.engine)
        logger.debug("Engine: '%s', before: '%s'", translation.engine, StringUtils.preview(text))
        try:
            async with asyncio.timeout(self.timeout):
                result: Result = await engine.translation(
                    text, translation.to_lang, translation.from_lang or None, text_type
                )
        except TimeoutError:
            msg: str = f"Translation engine '{translation.engine}' did not answer within {self.timeout} seconds"
            raise TranslationTimeoutError(msg) from None
        translated: str = StringUtils.ensure_str(result.text)
        logger.debug("Engine: '%s', after: '%s'", translation.engine, StringUtils.preview(translated))
        return translated

    async def translate_stream(
        self,
        text: str,
        translation: TranslationConfig,
        table: PlaceholderTable | None = None,
        text_type: TextType = "sentence",
        on_delta: Callable[[str], object] | None = None,
    ) -> str:
        """Translate one text, reporting the translation incrementally.

        With a streaming-capable primary engine, every new piece of output is post-processed on
        its own and passed to ``on_delta``; the assembled translation is post-processed once and
        cached. Otherwise, including cache hits and requests joining an identical in-flight
        request, the complete translation is passed to ``on_delta`` once. A streaming engine that
        fails before its first delta is replaced by the alternate engine; one that fails later
        ends the request with its error message.

        Returns:
            str: The complete translation, or the error message when translation failed.
        """

        def emit(delta: str) -> None:
            if on_delta is None or not delta:
                return
            try:
                on_delta(delta)
            except Exception as err:  # noqa: BLE001
                logger.error("Stream callback failed: %s", err)

        try:
            text = StringUtils.strip_line_breaks(text)
            if not text or translation.from_lang == translation.to_lang:
                return text

            engine: StreamingTransInterface | None = self._streaming_engine(translation.engine)
            if engine is None:
                result: str = await self._translate(text, translation, table, text_type)
                emit(result)
                return result

            key: str = RequestKeyBuilder.build_key(text, translation, table, text_type)
            cached: str | None = self.cache.get(key)
            if cached is not None:
                emit(cached)
                return cached

            streamed: bool = False
            emitted: int = 0

            def forward(delta: str) -> None:
                nonlocal emitted
                if delta:
                    emitted += 1
                emit(delta)

            async def compute() -> str:
                nonlocal streamed
                streamed = True
                try:
                    raw: str = await self._stream_engine(engine, text, translation, table, text_type, forward)
                except Exception as err:  # noqa: BLE001
                    # Delivered deltas cannot be retracted: switch engines only before the first one.
                    if emitted or not (translation.auto_change and len(translation.engine_list) > 1):
                        raise
                    logger.error("Streaming translation by '%s' failed: %s", translation.engine, err)
                    alternate: str = translation.engine_list[1]
                    self.notifier.notify(f"Change to {alternate}.")
                    raw = await self._translate_raw(
                        text, replace(translation, engine=alternate, engine_alternate=""), table, text_type
                    )
                    emit(self.post_process(raw, table, translation.to_lang))
                final: str = self.post_process(raw, table, translation.to_lang)
                self.cache.set(key, final)
                return final

            result = await self.inflight.dedupe(key, compute)
            if not streamed:
                emit(result)
        except Exception as err:  # noqa: BLE001
            logger.error("Streaming translation failed: %s", err)
            return str(err)
        else:
            return result

    def _streaming_engine(self, name: str) -> StreamingTransInterface | None:
        if not self.streaming or name not in self.engines:
            return None
        engine: TransInterface = self.engines.get(name)
        if isinstance(engine, StreamingTransInterface) and engine.supports_streaming and engine.is_available:
            return engine
        return None

    async def _stream_engine(
        self,
        engine: StreamingTransInterface,
        text: str,
        translation: TranslationConfig,
        table: PlaceholderTable | None,
        text_type: TextType,
        emit: Callable[[str], None],
    ) -> str:
        parts: list[str] = []
        try:
            async with asyncio.timeout(self.timeout):
                async for delta in engine.translation_stream(
                    text, translation.to_lang, translation.from_lang or None, text_type
                ):
                    parts.append(delta)
                    emit(self.post_process(delta, table, translation.to_lang))
        except TimeoutError:
            msg: str = f"Translation engine '{translation.engine}' stream exceeded {self.timeout} seconds"
            raise TranslationTimeoutError(msg) from None
        return "".join(parts)

    async def batch_translate(
        self,
        texts: Sequence[str],
        translation: TranslationConfig,
        table: PlaceholderTable | None = None,
        text_type: TextType = "sentence",
    ) -> list[str]:
        """Translate several texts concurrently, returning results in input order."""
        return list(await asyncio.gather(*(self.translate(text, translation, table, text_type) for text in texts)))

    def get_stats(self) -> dict[str, object]:
        stats: dict[str, object] = {"cache": self.cache.statistics, "inflight": len(self.inflight)}
        if self.dialogue_batcher is not None:
            stats["dialogue"] = self.dialogue_batcher.get_stats()
        if self.engine_batcher is not None:
            stats["engine_batches"] = self.engine_batcher.get_stats()
        return stats

    async def shutdown(self) -> None:
        """Flush queued dialogue lines, drop queued engine batches, and close the engines."""
        logger.info("Class '%s' termination process started.", self.__class__.__name__)
        if self.dialogue_batcher is not None:
            await self.dialogue_batcher.cleanup()
        if self.engine_batcher is not None:
            await self.engine_batcher.cleanup()
        await self.engines.close()
        logger.info("Class '%s' termination process completed.", self.__class__.__name__)
