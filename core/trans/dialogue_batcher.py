"""Multi-line dialogue batching.

Games often emit several lines of one dialogue box within milliseconds. Lines arriving within a
debounce window are grouped by engine, language pair, and text type, and each group is sent as
one upstream call joined by a separator. A reply that does not split back into the expected
number of lines is never guessed at: every line of the group is retranslated on its own.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import TYPE_CHECKING, ClassVar

from models.translation_models import BatchItem, BatchStatistics
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable

    from models.config_models import Config
    from models.translation_models import PlaceholderTable, TextType, TranslationConfig

__all__: list[str] = ["DialogueLineBatcher", "DispatchFn"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

type DispatchFn = Callable[[str, TranslationConfig, PlaceholderTable | None, TextType], Awaitable[str]]


class DialogueLineBatcher:
    """Debounced batcher for sequential dialogue lines.

    Attributes:
        SEPARATOR (ClassVar[str]): Joins lines of a combined request.
    """

    SEPARATOR: ClassVar[str] = "\n||||SEP||||\n"

    def __init__(
        self,
        translate_fn: DispatchFn | None = None,
        *,
        enabled: bool = True,
        window: float = 0.1,
        max_size: int = 10,
    ) -> None:
        self.translate_fn: DispatchFn | None = translate_fn
        self.enabled: bool = enabled
        self.window: float = window
        self.max_size: int = max_size
        self._pending: list[BatchItem] = []
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self.statistics: BatchStatistics = BatchStatistics()

    @classmethod
    def from_config(cls, config: Config, translate_fn: DispatchFn | None = None) -> DialogueLineBatcher:
        section = config.BATCH
        return cls(
            translate_fn,
            enabled=section.DIALOGUE_ENABLED,
            window=section.DIALOGUE_WINDOW,
            max_size=section.DIALOGUE_MAX_SIZE,
        )

    def bind(self, translate_fn: DispatchFn) -> None:
        """Set the function that performs the upstream calls."""
        self.translate_fn = translate_fn

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_enabled(self, translation: TranslationConfig) -> bool:
        return self.enabled and translation.multiline_batching and self.translate_fn is not None

    def add_line(
        self,
        text: str,
        translation: TranslationConfig,
        table: PlaceholderTable | None = None,
        text_type: TextType = "sentence",
    ) -> asyncio.Future[str] | None:
        """Queue a line for batched translation.

        Args:
            text (str): Line to translate.
            translation (TranslationConfig): Request settings.
            table (PlaceholderTable | None): Placeholder table of the request.
            text_type (TextType): Kind of text.

        Returns:
            asyncio.Future[str] | None: Resolved with the line's translation, or None when batching
                is disabled and the caller should translate the line itself.
        """
        if not self.is_enabled(translation):
            return None

        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        item = BatchItem(
            text=text,
            translation=translation,
            future=loop.create_future(),
            table=table,
            text_type=text_type,
        )
        self._pending.append(item)
        self.statistics.total_lines += 1

        self._cancel_timer()
        if len(self._pending) >= self.max_size:
            self._spawn_flush()
        else:
            self._timer = loop.call_later(self.window, self._spawn_flush)
        return item.future

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _spawn_flush(self) -> None:
        self._timer = None
        if not self._pending:
            return
        task: asyncio.Task[None] = asyncio.create_task(self._process_batch(), name="dialogue_batch_flush")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process_batch(self) -> None:
        batch: list[BatchItem] = self._pending
        self._pending = []
        if not batch:
            return

        logger.info("Processing batch of %d lines", len(batch))
        groups: dict[str, list[BatchItem]] = defaultdict(list)
        for item in batch:
            groups[item.translation.group_key(item.text_type)].append(item)

        await asyncio.gather(*(self._process_group(key, items) for key, items in groups.items()))

    async def _process_group(self, group_key: str, items: list[BatchItem]) -> None:
        self.statistics.total_batches += 1
        self.statistics.batched_lines += len(items)

        if len(items) == 1:
            await self._translate_item(items[0])
            return

        logger.info("Batching %d lines into single request for '%s'", len(items), group_key)
        first: BatchItem = items[0]
        combined_text: str = self.SEPARATOR.join(item.text for item in items)

        try:
            combined_result: str = await self._call(combined_text, first)
        except Exception as err:  # noqa: BLE001
            logger.error("Batch translation failed, falling back to individual: %s", err)
            await self._translate_individually(items)
            return

        results: list[str] = combined_result.split(self.SEPARATOR)
        if len(results) != len(items):
            logger.warning("Result count mismatch: expected %d, got %d", len(items), len(results))
            await self._translate_individually(items)
            return

        self.statistics.saved_api_calls += len(items) - 1
        for index, (item, result) in enumerate(zip(items, results, strict=True), start=1):
            translated: str = result.strip()
            logger.debug(
                "Line %d/%d: '%s' -> '%s'",
                index,
                len(items),
                StringUtils.preview(item.text),
                StringUtils.preview(translated),
            )
            item.resolve(translated)

    async def _call(self, text: str, item: BatchItem) -> str:
        if self.translate_fn is None:
            msg = "DialogueLineBatcher has no translate function bound"
            raise RuntimeError(msg)
        return await self.translate_fn(text, item.translation, item.table, item.text_type)

    async def _translate_item(self, item: BatchItem) -> None:
        try:
            item.resolve(await self._call(item.text, item))
        except Exception as err:  # noqa: BLE001
            item.reject(err)

    async def _translate_individually(self, items: list[BatchItem]) -> None:
        await asyncio.gather(*(self._translate_item(item) for item in items))

    def get_stats(self) -> dict[str, object]:
        stats: BatchStatistics = self.statistics
        return {
            "enabled": self.enabled,
            "total_lines": stats.total_lines,
            "total_batches": stats.total_batches,
            "avg_lines_per_batch": round(stats.avg_lines_per_batch, 2),
            "saved_api_calls": stats.saved_api_calls,
            "api_call_reduction": round(stats.api_call_reduction, 3),
        }

    def reset_statistics(self) -> None:
        self.statistics = BatchStatistics()

    async def cleanup(self) -> None:
        """Flush queued lines immediately and wait until every queued line is settled."""
        self._cancel_timer()
        if self._pending:
            logger.info("Cleanup: processing %d pending lines", len(self._pending))
            await self._process_batch()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.debug("DialogueLineBatcher cleanup completed")
