"""Tests for CacheStore.

Covers LRU eviction, session promotion and demotion, preloading, and JSON persistence.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from core.cache.key_builder import RequestKeyBuilder
from core.cache.store import CacheStore
from models.cache_models import CacheSettings
from models.translation_models import TranslationConfig

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from models.cache_models import CacheStatistics


def _store(**overrides: int) -> CacheStore:
    params: dict[str, int] = {"max_size": 3, "session_max_size": 2, "promotion_threshold": 3, "demotion_threshold": 2}
    params.update(overrides)
    return CacheStore(CacheSettings(**params))


def test_get_miss_returns_none() -> None:
    store: CacheStore = _store()
    assert store.get("missing") is None
    assert store.statistics.misses == 1


def test_set_then_get_returns_value() -> None:
    store: CacheStore = _store()
    store.set("k", "v")
    assert store.get("k") == "v"
    assert store.is_dirty


def test_inserting_beyond_capacity_evicts_least_recently_used() -> None:
    store: CacheStore = _store()
    for key in ("a", "b", "c"):
        store.set(key, key.upper())

    store.set("d", "D")

    assert "a" not in store
    assert all(key in store for key in ("b", "c", "d"))
    assert store.size == 3
    assert store.statistics.evictions == 1


def test_get_protects_key_from_next_eviction() -> None:
    store: CacheStore = _store()
    for key in ("a", "b", "c"):
        store.set(key, key.upper())

    assert store.get("a") == "A"
    store.set("d", "D")

    assert "a" in store
    assert "b" not in store


def test_overwriting_existing_key_does_not_evict() -> None:
    store: CacheStore = _store()
    for key in ("a", "b", "c"):
        store.set(key, key.upper())

    store.set("a", "A2")

    assert len(store) == 3
    assert store.get("a") == "A2"


def test_third_access_promotes_into_session() -> None:
    store: CacheStore = _store()
    store.set("hot", "HOT")

    store.get("hot")
    store.get("hot")
    assert store.in_main("hot")
    assert not store.in_session("hot")

    store.get("hot")
    assert store.in_session("hot")
    assert not store.in_main("hot")
    assert store.statistics.promotions == 1


def test_promotion_threshold_is_configurable() -> None:
    store: CacheStore = _store(promotion_threshold=2)
    store.set("hot", "HOT")

    store.get("hot")
    store.get("hot")

    assert store.in_session("hot")


def test_session_hits_are_counted() -> None:
    store: CacheStore = _store(promotion_threshold=1)
    store.set("hot", "HOT")
    store.get("hot")

    assert store.get("hot") == "HOT"

    stats: CacheStatistics = store.statistics
    assert stats.session_hits == 1
    assert stats.hits == 2


def test_session_members_are_not_evicted_by_main_tier_pressure() -> None:
    store: CacheStore = _store(promotion_threshold=1)
    store.set("hot", "HOT")
    store.get("hot")

    for key in ("a", "b", "c", "d", "e"):
        store.set(key, key.upper())

    assert store.in_session("hot")
    assert store.get("hot") == "HOT"


def test_set_on_session_key_overwrites_in_place() -> None:
    store: CacheStore = _store(promotion_threshold=1)
    store.set("hot", "HOT")
    store.get("hot")

    store.set("hot", "HOTTER")

    assert store.in_session("hot")
    assert not store.in_main("hot")
    assert store.get("hot") == "HOTTER"


def test_full_session_demotes_its_coldest_member() -> None:
    store: CacheStore = _store(max_size=10, session_max_size=1, promotion_threshold=2)
    store.set("first", "1")
    store.set("second", "2")
    store.get("first")
    store.get("first")
    assert store.in_session("first")

    store.get("second")
    store.get("second")

    assert store.in_session("second")
    assert store.in_main("first")
    assert store.frequency("first") == 0
    assert store.statistics.demotions == 1


def test_cleanup_session_demotes_cold_and_halves_survivors() -> None:
    store: CacheStore = _store(max_size=10, session_max_size=5, promotion_threshold=1, demotion_threshold=2)
    store.set("warm", "W")
    store.set("cold", "C")
    store.get("cold")
    for _ in range(5):
        store.get("warm")
    assert store.frequency("warm") == 5

    demoted: int = store.cleanup_session()

    assert demoted == 1
    assert store.in_main("cold")
    assert store.in_session("warm")
    assert store.frequency("warm") == 2


def test_tiers_are_disjoint() -> None:
    store: CacheStore = _store(max_size=10, promotion_threshold=1)
    for key in ("a", "b", "c"):
        store.set(key, key)
        store.get(key)

    for key in ("a", "b", "c"):
        assert store.in_session(key) != store.in_main(key)


def test_preload_accepts_pairs_and_mappings() -> None:
    store: CacheStore = _store(max_size=10)
    count: int = store.preload(
        [["Hello", "你好"], {"src": "World", "dst": "世界"}, ["x" * 300, "too long"], "junk", ["", "empty"]],
        "Baidu",
        "zh-CN",
    )

    assert count == 2
    translation = TranslationConfig(engine="Baidu", from_lang="en", to_lang="zh-CN")
    assert store.get(RequestKeyBuilder.build_key("hello", translation)) == "你好"
    assert store.get(RequestKeyBuilder.build_key("World", translation)) == "世界"


def test_preload_rejects_non_list_input() -> None:
    store: CacheStore = _store()
    assert store.preload({"Hello": "你好"}, "Baidu", "zh-CN") == 0
    assert len(store) == 0


@pytest.mark.asyncio
async def test_save_and_load_round_trip_both_tiers(tmp_path: Path) -> None:
    path: Path = tmp_path / "cache.json"
    store = CacheStore(CacheSettings(max_size=5, promotion_threshold=1), path)
    store.set("main-key", "main value")
    store.set("hot-key", "hot value")
    store.get("hot-key")

    assert await store.save() is True
    assert not store.is_dirty

    data = json.loads(path.read_text(encoding="utf-8"))
    assert ["main-key", {"translation": "main value"}] in data
    assert ["hot-key", {"translation": "hot value"}] in data

    reloaded = CacheStore(CacheSettings(max_size=5), path)
    assert reloaded.load() == 2
    assert reloaded.get("hot-key") == "hot value"


@pytest.mark.asyncio
async def test_save_skips_when_clean(tmp_path: Path) -> None:
    path: Path = tmp_path / "cache.json"
    store = CacheStore(CacheSettings(), path)

    assert await store.save() is False
    assert not path.exists()


def test_load_keeps_most_recent_entries_when_file_exceeds_capacity(tmp_path: Path) -> None:
    path: Path = tmp_path / "cache.json"
    entries = [[f"k{i}", {"translation": f"v{i}"}] for i in range(5)]
    path.write_text(json.dumps(entries), encoding="utf-8")

    store = CacheStore(CacheSettings(max_size=2), path)

    assert store.load() == 2
    assert "k3" in store
    assert "k4" in store
    assert "k0" not in store


def test_load_ignores_malformed_file(tmp_path: Path) -> None:
    path: Path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")

    store = CacheStore(CacheSettings(), path)

    assert store.load() == 0
    assert len(store) == 0


def test_load_skips_malformed_entries(tmp_path: Path) -> None:
    path: Path = tmp_path / "cache.json"
    path.write_text(json.dumps([["ok", {"translation": "fine"}], ["bad", "value"], "junk"]), encoding="utf-8")

    store = CacheStore(CacheSettings(), path)

    assert store.load() == 1
    assert store.get("ok") == "fine"


@pytest.mark.asyncio
async def test_clear_empties_both_tiers_and_persists(tmp_path: Path) -> None:
    path: Path = tmp_path / "cache.json"
    store = CacheStore(CacheSettings(promotion_threshold=1), path)
    store.set("a", "A")
    store.set("b", "B")
    store.get("b")

    await store.clear()

    assert len(store) == 0
    assert json.loads(path.read_text(encoding="utf-8")) == []


@pytest.mark.asyncio
async def test_export_cache_detailed_lists_hot_entries_first(tmp_path: Path) -> None:
    store = CacheStore(CacheSettings(promotion_threshold=10))
    store.set("cold", "C")
    store.set("hot", "H")
    store.get("hot")
    store.get("hot")
    output: Path = tmp_path / "export.txt"

    assert await store.export_cache_detailed(output) is True

    content: str = output.read_text(encoding="utf-8")
    assert content.index("Cache Key: hot") < content.index("Cache Key: cold")


@pytest.fixture
async def loaded_store(tmp_path: Path) -> AsyncGenerator[CacheStore]:
    store = CacheStore(CacheSettings(auto_save_interval=3600, session_cleanup_interval=3600), tmp_path / "c.json")
    await store.component_load()
    yield store
    await store.component_teardown()


@pytest.mark.asyncio
async def test_component_load_starts_background_tasks(loaded_store: CacheStore) -> None:
    names: set[str] = {task.get_name() for task in loaded_store.background_tasks}
    assert names == {"cache_session_cleanup_task", "cache_auto_save_task"}


@pytest.mark.asyncio
async def test_component_teardown_performs_final_save(tmp_path: Path) -> None:
    path: Path = tmp_path / "c.json"
    store = CacheStore(CacheSettings(auto_save_interval=3600, session_cleanup_interval=3600), path)
    await store.component_load()
    store.set("k", "v")

    await store.component_teardown()

    assert not store.background_tasks
    assert json.loads(path.read_text(encoding="utf-8")) == [["k", {"translation": "v"}]]
