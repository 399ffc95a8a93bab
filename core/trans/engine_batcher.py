"""Engine-level micro-batching of independent translation requests.

Requests addressed to an allow-listed engine within a short window are joined with a separator
into one upstream call, and the combined result is split back into one segment per request.
The window is short; this layer smooths incidental request bursts rather than dialogue boxes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Final

from core.trans.interface import BatcherShutdownError, BatchMisalignmentError
from models.translation_models import BatchItem
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Iterable

    from models.config_models import Config
    from models.translation_models import TextType, TranslationConfig

__all__: list[str] = ["EngineBatcher", "EngineCallFn"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

type EngineCallFn = Callable[[str, TranslationConfig, TextType], Awaitable[str]]

MISMATCH_INDIVIDUAL: Final[str] = "individual"
MISMATCH_PROPORTIONAL: Final[str] = "proportional"
SHUTDOWN_MESSAGE: Final[str] = "Application shutting down"


@dataclass
class _EngineQueue:
    items: list[BatchItem] = field(default_factory=list)
    translate_fn: EngineCallFn | None = None
    timer: asyncio.TimerHandle | None = None

    @property
    def total_length(self) -> int:
        return sum(len(item.text) for item in self.items)

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class EngineBatcher:
    """Per-engine request batcher.

    Attributes:
        SEPARATOR (ClassVar[str]): Joins segments of a combined request.
    """

    SEPARATOR: ClassVar[str] = "\n###SEGMENT_SEP###\n"

    def __init__(
        self,
        batchable_engines: Iterable[str] = ("Baidu", "Youdao", "Papago", "DeepL"),
        *,
        window: float = 0.03,
        max_size: int = 10,
        max_length: int = 1000,
        mismatch_policy: str = MISMATCH_INDIVIDUAL,
    ) -> None:
        if mismatch_policy not in (MISMATCH_INDIVIDUAL, MISMATCH_PROPORTIONAL):
            msg: str = f"Unknown batch mismatch policy: '{mismatch_policy}'"
            raise ValueError(msg)
        self.batchable_engines: frozenset[str] = frozenset(batchable_engines)
        self.window: float = window
        self.max_size: int = max_size
        self.max_length: int = max_length
        self.mismatch_policy: str = mismatch_policy
        self._queues: dict[str, _EngineQueue] = {}
        self._flush_tasks: set[asyncio.Task[None]] = set()
        self._closed: bool = False
        self.total_batches: int = 0
        self.batched_requests: int = 0

    @classmethod
    def from_config(cls, config: Config) -> EngineBatcher:
        section = config.BATCH
        return cls(
            section.BATCHABLE_ENGINES,
            window=section.ENGINE_WINDOW,
            max_size=section.ENGINE_MAX_SIZE,
            max_length=section.ENGINE_MAX_LENGTH,
            mismatch_policy=section.MISMATCH_POLICY,
        )

    def is_batchable(self, engine: str) -> bool:
        return engine in self.batchable_engines

    async def add_to_batch(
        self,
        text: str,
        translation: TranslationConfig,
        translate_fn: EngineCallFn,
        text_type: TextType = "sentence",
    ) -> str:
        """Translate ``text``, possibly together with other queued requests.

        Engines outside the allow-list are called directly. Otherwise the request joins the queue
        of its group (engine, language pair, and text type), which is flushed when it reaches
        ``max_size`` items or ``max_length`` characters, or ``window`` seconds after the first item.

        Args:
            text (str): Text to translate.
            translation (TranslationConfig): Request settings; ``engine`` selects the queue.
            translate_fn (EngineCallFn): Performs one upstream call.
            text_type (TextType): Kind of text.

        Returns:
            str: Translation of ``text``.

        Raises:
            BatcherShutdownError: If the batcher was shut down before the request was flushed.
            TranslateExceptionError: If the upstream call fails.
        """
        if not self.is_batchable(translation.engine):
            return await translate_fn(text, translation, text_type)
        if self._closed:
            raise BatcherShutdownError(SHUTDOWN_MESSAGE)

        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        group_key: str = translation.group_key(text_type)
        queue: _EngineQueue = self._queues.setdefault(group_key, _EngineQueue())
        item = BatchItem(
            text=text,
            translation=translation,
            future=loop.create_future(),
            text_type=text_type,
        )
        queue.items.append(item)
        queue.translate_fn = translate_fn

        if len(queue.items) >= self.max_size or queue.total_length >= self.max_length:
            queue.cancel_timer()
            self._spawn_flush(group_key)
        elif queue.timer is None:
            queue.timer = loop.call_later(self.window, self._spawn_flush, group_key)

        return await item.future

    def _spawn_flush(self, group_key: str) -> None:
        queue: _EngineQueue | None = self._queues.get(group_key)
        if queue is None:
            return
        queue.timer = None
        items: list[BatchItem] = queue.items
        queue.items = []
        translate_fn: EngineCallFn | None = queue.translate_fn
        if not items or translate_fn is None:
            return

        task: asyncio.Task[None] = asyncio.create_task(
            self._flush(group_key, items, translate_fn), name=f"engine_batch_flush:{group_key}"
        )
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def _flush(self, group_key: str, items: list[BatchItem], translate_fn: EngineCallFn) -> None:
        first: BatchItem = items[0]
        if len(items) == 1:
            try:
                first.resolve(await translate_fn(first.text, first.translation, first.text_type))
            except Exception as err:  # noqa: BLE001
                first.reject(err)
            return

        logger.info("Batching %d requests for '%s'", len(items), group_key)
        self.total_batches += 1
        self.batched_requests += len(items)
        combined_text: str = self.SEPARATOR.join(item.text for item in items)

        try:
            combined_result: str = await translate_fn(combined_text, first.translation, first.text_type)
        except Exception as err:  # noqa: BLE001
            logger.error("Batch translation failed for '%s': %s", group_key, err)
            for item in items:
                item.reject(err)
            return

        try:
            segments: list[str] = self.split_result(combined_result, len(items))
        except BatchMisalignmentError as err:
            logger.warning("%s (policy: %s)", err, self.mismatch_policy)
            if self.mismatch_policy == MISMATCH_PROPORTIONAL:
                segments = self.split_proportionally(combined_result, len(items))
            else:
                await self._retranslate_individually(items, translate_fn)
                return

        for item, segment in zip(items, segments, strict=True):
            item.resolve(segment)

    @classmethod
    def split_result(cls, combined_result: str, expected: int) -> list[str]:
        """Split a combined translation into trimmed segments.

        Raises:
            BatchMisalignmentError: If the segment count differs from ``expected``.
        """
        segments: list[str] = combined_result.split(cls.SEPARATOR)
        if len(segments) != expected:
            msg: str = f"Result count mismatch: expected {expected}, got {len(segments)}"
            raise BatchMisalignmentError(msg)
        return [segment.strip() for segment in segments]

    @staticmethod
    def split_proportionally(combined_result: str, count: int) -> list[str]:
        """Divide a combined translation evenly by character count."""
        average: float = len(combined_result) / count
        return [combined_result[int(i * average) : int((i + 1) * average)].strip() for i in range(count)]

    @staticmethod
    async def _retranslate_individually(items: list[BatchItem], translate_fn: EngineCallFn) -> None:
        results: list[str | BaseException] = await asyncio.gather(
            *(translate_fn(item.text, item.translation, item.text_type) for item in items),
            return_exceptions=True,
        )
        for item, result in zip(items, results, strict=True):
            if isinstance(result, BaseException):
                item.reject(result)
            else:
                item.resolve(result)

    def get_stats(self) -> dict[str, object]:
        """Pending requests and scheduled flushes per group, plus batching totals."""
        return {
            "groups": {
                group_key: {"pending": len(queue.items), "scheduled": queue.timer is not None}
                for group_key, queue in self._queues.items()
            },
            "total_batches": self.total_batches,
            "batched_requests": self.batched_requests,
        }

    async def cleanup(self) -> None:
        """Reject every queued request and wait for flushes already in progress."""
        self._closed = True
        for group_key, queue in self._queues.items():
            queue.cancel_timer()
            if queue.items:
                logger.info("Rejecting %d pending '%s' requests", len(queue.items), group_key)
            for item in queue.items:
                item.reject(BatcherShutdownError(SHUTDOWN_MESSAGE))
            queue.items = []
        self._queues.clear()

        if self._flush_tasks:
            await asyncio.gather(*self._flush_tasks, return_exceptions=True)
        logger.debug("EngineBatcher cleanup completed")
