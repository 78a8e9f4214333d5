"""Tests for DataStoreCache — hits, tenant eviction and notify wiring."""

from __future__ import annotations

import pytest

from ascfs.storage.cache import DataStoreCache
from ascfs.storage.notify import CacheNotify, CacheNotifyAction, DataStoreCacheItem


class FakeStore:
    def __init__(self, name: str) -> None:
        self.name = name
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def cache() -> DataStoreCache:
    return DataStoreCache()


def _factory(store: FakeStore, calls: list[str]):
    async def create():
        calls.append(store.name)
        return store

    return create


class TestGetOrCreate:
    async def test_created_once(self, cache: DataStoreCache):
        calls: list[str] = []
        store = FakeStore("a")
        first = await cache.get_or_create("00/00/01", "files", _factory(store, calls))
        second = await cache.get_or_create("00/00/01", "FILES", _factory(FakeStore("b"), calls))
        assert first is store
        assert second is store
        assert calls == ["a"]
        assert len(cache) == 1

    async def test_keys_are_per_tenant_and_module(self, cache: DataStoreCache):
        calls: list[str] = []
        await cache.get_or_create("00/00/01", "files", _factory(FakeStore("a"), calls))
        await cache.get_or_create("00/00/01", "logo", _factory(FakeStore("b"), calls))
        await cache.get_or_create("00/00/02", "files", _factory(FakeStore("c"), calls))
        assert calls == ["a", "b", "c"]
        assert cache.get("00/00/02", "files").name == "c"  # type: ignore[union-attr]

    async def test_first_store_wins_a_race(self, cache: DataStoreCache):
        winner = FakeStore("winner")
        loser = FakeStore("loser")

        async def create_racing():
            # another caller fills the slot while this one is still building
            await cache.get_or_create("00/00/01", "files", _factory(winner, []))
            return loser

        result = await cache.get_or_create("00/00/01", "files", create_racing)
        assert result is winner
        assert loser.closed

    async def test_eviction_during_build_rebuilds(self, cache: DataStoreCache):
        stale = FakeStore("stale")
        fresh = FakeStore("fresh")
        calls: list[str] = []

        async def create():
            if not calls:
                calls.append("stale")
                # settings change commits while this store is being built
                cache.evict_tenant("00/00/01")
                return stale
            calls.append("fresh")
            return fresh

        result = await cache.get_or_create("00/00/01", "files", create)

        assert result is fresh
        assert stale.closed
        assert calls == ["stale", "fresh"]
        assert cache.get("00/00/01", "files") is fresh

    async def test_other_tenant_eviction_does_not_rebuild(self, cache: DataStoreCache):
        store = FakeStore("a")

        async def create():
            cache.evict_tenant("00/00/02")
            return store

        assert await cache.get_or_create("00/00/01", "files", create) is store
        assert not store.closed

    async def test_clear_during_build_rebuilds(self, cache: DataStoreCache):
        built: list[FakeStore] = []

        async def create():
            store = FakeStore(str(len(built)))
            built.append(store)
            if len(built) == 1:
                await cache.clear()
            return store

        result = await cache.get_or_create("00/00/01", "files", create)

        assert result is built[1]
        assert built[0].closed


class TestEviction:
    async def test_evict_tenant(self, cache: DataStoreCache):
        for module in ("files", "logo"):
            await cache.get_or_create("00/00/01", module, _factory(FakeStore(module), []))
        await cache.get_or_create("00/00/02", "files", _factory(FakeStore("other"), []))

        evicted = cache.evict_tenant("00/00/01")

        assert sorted(s.name for s in evicted) == ["files", "logo"]  # type: ignore[attr-defined]
        assert len(cache) == 1

    async def test_notify_removal_closes_stores(self, cache: DataStoreCache):
        notify = CacheNotify()
        cache.attach(notify)
        store = FakeStore("a")
        await cache.get_or_create("00/00/01", "files", _factory(store, []))

        await notify.publish(DataStoreCacheItem("00/00/01", "files"), CacheNotifyAction.REMOVE)

        assert store.closed
        assert cache.get("00/00/01", "files") is None

    async def test_detach(self, cache: DataStoreCache):
        notify = CacheNotify()
        cache.attach(notify)
        cache.detach()
        await cache.get_or_create("00/00/01", "files", _factory(FakeStore("a"), []))

        await notify.publish(DataStoreCacheItem("00/00/01", "files"), CacheNotifyAction.REMOVE)

        assert len(cache) == 1
        assert notify.handler_count == 0

    async def test_close(self, cache: DataStoreCache):
        store = FakeStore("a")
        await cache.get_or_create("00/00/01", "files", _factory(store, []))
        await cache.close()
        assert store.closed
        assert len(cache) == 0
