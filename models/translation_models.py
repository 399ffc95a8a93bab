"""Models for translation requests and batching.

Defines the per-request translation settings, the placeholder table type, and the
bookkeeping records used by the batchers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    import asyncio

    from models.config_models import Config

__all__: list[str] = [
    "BatchItem",
    "BatchStatistics",
    "PlaceholderTable",
    "TextType",
    "TranslationConfig",
]

type TextType = Literal["sentence", "name", "dialogue"]

# Ordered [code, replacement] pairs protecting proper nouns from the engine.
type PlaceholderTable = list[list[str]] | list[tuple[str, str]]


@dataclass(frozen=True)
class TranslationConfig:
    """Translation settings attached to one request.

    Attributes:
        engine (str): Primary engine name.
        engine_alternate (str): Engine to switch to when the primary engine fails.
        auto_change (bool): Whether to switch to the alternate engine on failure.
        from_lang (str): Source language code.
        to_lang (str): Target language code.
        multiline_batching (bool): Whether dialogue lines may be merged into one request.
    """

    engine: str
    from_lang: str
    to_lang: str
    engine_alternate: str = ""
    auto_change: bool = False
    multiline_batching: bool = True

    @classmethod
    def from_config(cls, config: Config) -> TranslationConfig:
        """Build request settings from the ``[TRANSLATION]`` section."""
        section = config.TRANSLATION
        return cls(
            engine=section.ENGINE,
            from_lang=section.FROM,
            to_lang=section.TO,
            engine_alternate=section.ENGINE_ALTERNATE,
            auto_change=section.AUTO_CHANGE,
            multiline_batching=section.MULTILINE_BATCHING,
        )

    @property
    def engine_list(self) -> list[str]:
        """Engines to try in order, without duplicates or blanks."""
        engines: list[str] = []
        for name in (self.engine, self.engine_alternate):
            if name and name not in engines:
                engines.append(name)
        return engines

    def group_key(self, text_type: str) -> str:
        """Batching equivalence key: items sharing it can travel in one upstream call."""
        return ":".join([self.engine or "unknown", self.from_lang, self.to_lang, text_type or "sentence"])


@dataclass
class BatchItem:
    """One queued request waiting for a batch flush.

    Attributes:
        text (str): Text to translate.
        translation (TranslationConfig): Settings shared by the batch group.
        table (PlaceholderTable | None): Placeholder table of the request.
        text_type (TextType): Kind of text.
        future (asyncio.Future[str]): Resolved with this item's translation.
    """

    text: str
    translation: TranslationConfig
    future: asyncio.Future[str]
    table: PlaceholderTable | None = None
    text_type: TextType = "sentence"

    def resolve(self, value: str) -> None:
        if not self.future.done():
            self.future.set_result(value)

    def reject(self, err: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(err)


@dataclass
class BatchStatistics:
    """Dialogue batching statistics.

    Attributes:
        total_lines (int): Lines submitted while batching was enabled.
        total_batches (int): Groups flushed.
        batched_lines (int): Lines in flushed groups, summed over ``total_batches``.
        saved_api_calls (int): Sum of ``size - 1`` over groups answered by one combined call.
    """

    total_lines: int = 0
    total_batches: int = 0
    batched_lines: int = 0
    saved_api_calls: int = 0

    @property
    def avg_lines_per_batch(self) -> float:
        if self.total_batches == 0:
            return 0.0
        return self.batched_lines / self.total_batches

    @property
    def api_call_reduction(self) -> float:
        """Share of lines that did not need their own upstream call (0.0 to 1.0)."""
        if self.total_lines == 0:
            return 0.0
        return self.saved_api_calls / self.total_lines
