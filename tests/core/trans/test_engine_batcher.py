"""Tests for EngineBatcher."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from core.trans.engine_batcher import EngineBatcher
from core.trans.interface import BatcherShutdownError, BatchMisalignmentError, TranslateExceptionError
from models.translation_models import TranslationConfig

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from models.translation_models import TextType

SEP: str = EngineBatcher.SEPARATOR
BAIDU = TranslationConfig(engine="Baidu", from_lang="en", to_lang="zh-CN")
WORDS: dict[str, str] = {"Hello": "你好", "World": "世界", "Again": "再次"}


class RecordingEngine:
    """Engine call stub translating each separator-joined segment through ``WORDS``."""

    def __init__(self, *, drop_separator: bool = False, fail_combined: bool = False) -> None:
        self.calls: list[str] = []
        self.drop_separator: bool = drop_separator
        self.fail_combined: bool = fail_combined

    async def __call__(self, text: str, translation: TranslationConfig, text_type: TextType) -> str:
        _ = translation, text_type
        self.calls.append(text)
        segments: list[str] = text.split(SEP)
        if len(segments) > 1 and self.fail_combined:
            msg = "combined call failed"
            raise TranslateExceptionError(msg)
        translated: list[str] = [WORDS.get(segment, segment) for segment in segments]
        return ("" if self.drop_separator else SEP).join(translated)


@pytest.fixture
async def batcher() -> AsyncGenerator[EngineBatcher]:
    engine_batcher = EngineBatcher(("Baidu",), window=0.03, max_size=10, max_length=1000)
    yield engine_batcher
    await engine_batcher.cleanup()


@pytest.mark.asyncio
async def test_requests_within_window_share_one_call(batcher: EngineBatcher) -> None:
    engine = RecordingEngine()

    results: list[str] = await asyncio.gather(
        batcher.add_to_batch("Hello", BAIDU, engine),
        batcher.add_to_batch("World", BAIDU, engine),
    )

    assert results == ["你好", "世界"]
    assert engine.calls == [f"Hello{SEP}World"]
    assert batcher.total_batches == 1
    assert batcher.batched_requests == 2


@pytest.mark.asyncio
async def test_single_request_is_sent_alone(batcher: EngineBatcher) -> None:
    engine = RecordingEngine()

    assert await batcher.add_to_batch("Hello", BAIDU, engine) == "你好"
    assert engine.calls == ["Hello"]
    assert batcher.total_batches == 0


@pytest.mark.asyncio
async def test_engine_outside_allow_list_is_called_directly(batcher: EngineBatcher) -> None:
    engine = RecordingEngine()
    gpt = TranslationConfig(engine="GPT", from_lang="en", to_lang="zh-CN")

    results: list[str] = await asyncio.gather(
        batcher.add_to_batch("Hello", gpt, engine),
        batcher.add_to_batch("World", gpt, engine),
    )

    assert results == ["你好", "世界"]
    assert sorted(engine.calls) == ["Hello", "World"]


@pytest.mark.asyncio
async def test_different_target_languages_are_not_merged(batcher: EngineBatcher) -> None:
    engine = RecordingEngine()
    baidu_ja = TranslationConfig(engine="Baidu", from_lang="en", to_lang="ja")

    await asyncio.gather(
        batcher.add_to_batch("Hello", BAIDU, engine),
        batcher.add_to_batch("World", baidu_ja, engine),
    )

    assert sorted(engine.calls) == ["Hello", "World"]


@pytest.mark.asyncio
async def test_reaching_max_size_flushes_without_waiting() -> None:
    engine_batcher = EngineBatcher(("Baidu",), window=10.0, max_size=2)
    engine = RecordingEngine()

    results: list[str] = await asyncio.wait_for(
        asyncio.gather(
            engine_batcher.add_to_batch("Hello", BAIDU, engine),
            engine_batcher.add_to_batch("World", BAIDU, engine),
        ),
        timeout=1.0,
    )

    assert results == ["你好", "世界"]
    await engine_batcher.cleanup()


@pytest.mark.asyncio
async def test_reaching_max_length_flushes_without_waiting() -> None:
    engine_batcher = EngineBatcher(("Baidu",), window=10.0, max_size=10, max_length=8)
    engine = RecordingEngine()

    results: list[str] = await asyncio.wait_for(
        asyncio.gather(
            engine_batcher.add_to_batch("Hello", BAIDU, engine),
            engine_batcher.add_to_batch("World", BAIDU, engine),
        ),
        timeout=1.0,
    )

    assert results == ["你好", "世界"]
    assert len(engine.calls) == 1
    await engine_batcher.cleanup()


@pytest.mark.asyncio
async def test_missing_separator_falls_back_to_individual_calls(batcher: EngineBatcher) -> None:
    engine = RecordingEngine(drop_separator=True)

    results: list[str] = await asyncio.gather(
        batcher.add_to_batch("Hello", BAIDU, engine),
        batcher.add_to_batch("World", BAIDU, engine),
        batcher.add_to_batch("Again", BAIDU, engine),
    )

    assert results == ["你好", "世界", "再次"]
    assert engine.calls[0] == SEP.join(["Hello", "World", "Again"])
    assert sorted(engine.calls[1:]) == ["Again", "Hello", "World"]


@pytest.mark.asyncio
async def test_proportional_policy_splits_by_length() -> None:
    engine_batcher = EngineBatcher(("Baidu",), window=0.01, mismatch_policy="proportional")
    engine = RecordingEngine(drop_separator=True)

    results: list[str] = await asyncio.gather(
        engine_batcher.add_to_batch("Hello", BAIDU, engine),
        engine_batcher.add_to_batch("World", BAIDU, engine),
    )

    assert results == ["你好", "世界"]
    assert len(engine.calls) == 1
    await engine_batcher.cleanup()


@pytest.mark.asyncio
async def test_combined_call_error_rejects_every_item(batcher: EngineBatcher) -> None:
    engine = RecordingEngine(fail_combined=True)

    results = await asyncio.gather(
        batcher.add_to_batch("Hello", BAIDU, engine),
        batcher.add_to_batch("World", BAIDU, engine),
        return_exceptions=True,
    )

    assert all(isinstance(result, TranslateExceptionError) for result in results)


def test_split_result_trims_segments() -> None:
    assert EngineBatcher.split_result(f" 你好 {SEP} 世界 ", 2) == ["你好", "世界"]


def test_split_result_raises_on_count_mismatch() -> None:
    with pytest.raises(BatchMisalignmentError, match="expected 3, got 1"):
        EngineBatcher.split_result("你好世界", 3)


def test_unknown_mismatch_policy_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown batch mismatch policy"):
        EngineBatcher(mismatch_policy="guess")


@pytest.mark.asyncio
async def test_get_stats_reports_pending_groups() -> None:
    engine_batcher = EngineBatcher(("Baidu",), window=10.0)
    engine = RecordingEngine()

    pending: asyncio.Task[str] = asyncio.create_task(engine_batcher.add_to_batch("Hello", BAIDU, engine))
    await asyncio.sleep(0)

    stats = engine_batcher.get_stats()
    assert stats["groups"] == {BAIDU.group_key("sentence"): {"pending": 1, "scheduled": True}}

    await engine_batcher.cleanup()
    with pytest.raises(BatcherShutdownError):
        await pending


@pytest.mark.asyncio
async def test_cleanup_rejects_queued_requests_and_blocks_new_ones() -> None:
    engine_batcher = EngineBatcher(("Baidu",), window=10.0)
    engine = RecordingEngine()

    queued: asyncio.Task[str] = asyncio.create_task(engine_batcher.add_to_batch("Hello", BAIDU, engine))
    await asyncio.sleep(0)
    await engine_batcher.cleanup()

    with pytest.raises(BatcherShutdownError, match="Application shutting down"):
        await queued
    with pytest.raises(BatcherShutdownError):
        await engine_batcher.add_to_batch("World", BAIDU, engine)
    assert engine.calls == []
