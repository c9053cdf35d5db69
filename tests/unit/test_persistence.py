"""Unit tests for DiskPersistenceStore and key sanitisation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tamdata.models.cache import CacheEntry
from tamdata.providers.cache.persistence import DiskPersistenceStore, sanitize_key


class TestSanitizeKey:
    def test_replaces_unsafe_characters(self) -> None:
        assert sanitize_key("fred:market_size:region=US") == "fred_market_size_region_US"

    def test_keeps_safe_characters(self) -> None:
        assert sanitize_key("gdp_us-2023") == "gdp_us-2023"

    def test_path_separators_cannot_escape_root(self) -> None:
        assert "/" not in sanitize_key("../../etc/passwd")


class TestDiskPersistenceStore:
    @pytest.fixture()
    def store(self, cache_dir: Path) -> DiskPersistenceStore:
        return DiskPersistenceStore(cache_dir)

    def test_creates_root_directory(self, cache_dir: Path) -> None:
        DiskPersistenceStore(cache_dir)
        assert cache_dir.is_dir()

    def test_path_for_uses_json_suffix(self, store: DiskPersistenceStore, cache_dir: Path) -> None:
        assert store.path_for("a:b") == cache_dir / "a_b.json"

    @pytest.mark.asyncio
    async def test_save_and_load(self, store: DiskPersistenceStore) -> None:
        entry = CacheEntry(data={"value": 2.5e13}, timestamp=100.0, ttl=60.0)
        await store.save("gdp_us", entry)
        loaded = await store.load("gdp_us")
        assert loaded == entry

    @pytest.mark.asyncio
    async def test_file_holds_key_data_timestamp_ttl(self, store: DiskPersistenceStore) -> None:
        await store.save("k", CacheEntry(data=[1, 2], timestamp=5.0, ttl=10.0))
        content = json.loads(store.path_for("k").read_text(encoding="utf-8"))
        assert content == {"key": "k", "data": [1, 2], "timestamp": 5.0, "ttl": 10.0}

    @pytest.mark.asyncio
    async def test_colliding_keys_do_not_read_each_other(
        self, store: DiskPersistenceStore
    ) -> None:
        assert store.path_for("a:b") == store.path_for("a_b")
        await store.save("a_b", CacheEntry(data="for a_b", timestamp=0.0, ttl=60.0))

        assert await store.load("a:b") is None
        assert (await store.load("a_b")).data == "for a_b"

    @pytest.mark.asyncio
    async def test_file_without_recorded_key_still_loads(
        self, store: DiskPersistenceStore
    ) -> None:
        store.path_for("legacy").write_text(
            '{"data": 7, "timestamp": 1.0, "ttl": 2.0}', encoding="utf-8"
        )
        assert await store.load("legacy") == CacheEntry(data=7, timestamp=1.0, ttl=2.0)

    @pytest.mark.asyncio
    async def test_non_object_file_returns_none(self, store: DiskPersistenceStore) -> None:
        store.path_for("listy").write_text("[1, 2]", encoding="utf-8")
        assert await store.load("listy") is None

    @pytest.mark.asyncio
    async def test_keys_lists_recorded_keys(
        self, store: DiskPersistenceStore, cache_dir: Path
    ) -> None:
        await store.save("fred:gdp", CacheEntry(data=1, timestamp=0.0, ttl=1.0))
        await store.save("imf:ngdpd", CacheEntry(data=2, timestamp=0.0, ttl=1.0))
        (cache_dir / "junk.json").write_text("{not json", encoding="utf-8")

        assert sorted(await store.keys()) == ["fred:gdp", "imf:ngdpd"]

    @pytest.mark.asyncio
    async def test_load_missing_returns_none(self, store: DiskPersistenceStore) -> None:
        assert await store.load("never-written") is None

    @pytest.mark.asyncio
    async def test_load_corrupt_file_returns_none(self, store: DiskPersistenceStore) -> None:
        store.path_for("broken").write_text("{not json", encoding="utf-8")
        assert await store.load("broken") is None

    @pytest.mark.asyncio
    async def test_load_wrong_shape_returns_none(self, store: DiskPersistenceStore) -> None:
        store.path_for("odd").write_text('{"data": 1}', encoding="utf-8")
        assert await store.load("odd") is None

    @pytest.mark.asyncio
    async def test_load_does_not_filter_expired(self, store: DiskPersistenceStore) -> None:
        entry = CacheEntry(data="old", timestamp=0.0, ttl=1.0)
        await store.save("stale", entry)
        assert await store.load("stale") == entry

    @pytest.mark.asyncio
    async def test_unserialisable_value_is_not_raised(self, store: DiskPersistenceStore) -> None:
        await store.save("bad", CacheEntry(data=object(), timestamp=0.0, ttl=1.0))
        assert await store.load("bad") is None

    @pytest.mark.asyncio
    async def test_remove(self, store: DiskPersistenceStore) -> None:
        await store.save("k", CacheEntry(data=1, timestamp=0.0, ttl=1.0))
        await store.remove("k")
        assert not store.path_for("k").exists()

    @pytest.mark.asyncio
    async def test_remove_missing_is_noop(self, store: DiskPersistenceStore) -> None:
        await store.remove("missing")  # should not raise

    @pytest.mark.asyncio
    async def test_clear_all_only_removes_entries(
        self, store: DiskPersistenceStore, cache_dir: Path
    ) -> None:
        await store.save("a", CacheEntry(data=1, timestamp=0.0, ttl=1.0))
        await store.save("b", CacheEntry(data=2, timestamp=0.0, ttl=1.0))
        (cache_dir / "README.txt").write_text("keep me", encoding="utf-8")

        await store.clear_all()

        assert list(cache_dir.glob("*.json")) == []
        assert (cache_dir / "README.txt").exists()
