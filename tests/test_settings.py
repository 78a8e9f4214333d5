"""Tests for tenant storage settings, consumers and invalidation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ascfs.core.uow import unit_of_work
from ascfs.storage.config import ConsumerElement, ModuleElement, StorageConfiguration
from ascfs.storage.consumers import ConsumerRegistry, DataStoreConsumer
from ascfs.storage.notify import CacheNotify, CacheNotifyAction, ConsumerCacheItem, DataStoreCacheItem
from ascfs.storage.settings import StorageSettings, StorageSettingsListener, StorageSettingsService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

TENANT = 1


@pytest.fixture
def config() -> StorageConfiguration:
    return StorageConfiguration(
        modules=[
            ModuleElement(name="files"),
            ModuleElement(name="logo", disable_migrate=True),
            ModuleElement(name="hidden", visible=False),
        ],
        consumers=[
            ConsumerElement(
                name="S3",
                type="ascfs.storage.s3.S3DataStore",
                properties={"region": "eu"},
                required=["bucket"],
            )
        ],
    )


@pytest.fixture
def notify() -> CacheNotify:
    return CacheNotify()


@pytest.fixture
def service(config: StorageConfiguration, notify: CacheNotify) -> StorageSettingsService:
    return StorageSettingsService(config, ConsumerRegistry.from_config(config), notify)


def _record_removals(notify: CacheNotify) -> list[DataStoreCacheItem]:
    published: list[DataStoreCacheItem] = []

    async def record(item: DataStoreCacheItem) -> None:
        published.append(item)

    notify.subscribe(DataStoreCacheItem, CacheNotifyAction.REMOVE, record)
    return published


class TestConsumers:
    def test_is_set_requires_properties(self):
        consumer = DataStoreConsumer(name="s3", handler_type="x.Y", required=("bucket",))
        assert not consumer.is_set
        assert consumer.with_props({"bucket": "b"}).is_set
        assert not consumer.with_props({"bucket": ""}).is_set

    def test_with_props_is_a_new_snapshot(self):
        consumer = DataStoreConsumer(name="s3", handler_type="x.Y", props={"a": "1"})
        updated = consumer.with_props({"b": "2"})
        assert consumer.props == {"a": "1"}
        assert updated.props == {"a": "1", "b": "2"}

    def test_registry_lookup(self, config: StorageConfiguration):
        registry = ConsumerRegistry.from_config(config)
        assert registry.get_by_name("s3").handler_type == "ascfs.storage.s3.S3DataStore"
        assert not registry.get_by_name("missing").is_set
        assert registry.names() == ["S3"]


class TestStorageSettingsService:
    async def test_default(self, service: StorageSettingsService, async_session: AsyncSession):
        settings = await service.load_for_tenant(async_session, TENANT)
        assert settings.is_default
        assert settings.props == {}

    async def test_save_and_load(self, service: StorageSettingsService, async_session: AsyncSession):
        await service.save(async_session, TENANT, StorageSettings(module="s3", props={"bucket": "b"}))
        loaded = await service.load_for_tenant(async_session, TENANT)
        assert loaded == StorageSettings(module="s3", props={"bucket": "b"})

    async def test_save_evicts_migratable_modules_on_commit(
        self, service: StorageSettingsService, notify: CacheNotify, session_factory
    ):
        published = _record_removals(notify)
        async with unit_of_work(session_factory) as session:
            await service.save(session, 5, StorageSettings(module="s3"))
            assert published == []

        assert published == [DataStoreCacheItem("00/00/05", "files")]

    async def test_rolled_back_save_evicts_nothing(
        self, service: StorageSettingsService, notify: CacheNotify, session_factory
    ):
        published = _record_removals(notify)
        with pytest.raises(RuntimeError):
            async with unit_of_work(session_factory) as session:
                await service.save(session, 5, StorageSettings(module="s3"))
                raise RuntimeError("abort")

        assert published == []
        async with unit_of_work(session_factory) as session:
            assert (await service.load_for_tenant(session, 5)).is_default

    async def test_get_consumer_applies_tenant_props(self, service: StorageSettingsService):
        consumer = service.get_consumer(StorageSettings(module="s3", props={"bucket": "b"}))
        assert consumer.is_set
        assert consumer.props == {"region": "eu", "bucket": "b"}
        assert not service.get_consumer(StorageSettings()).is_set


class TestListener:
    async def test_consumer_removal_resets_matching_tenants(
        self, service: StorageSettingsService, notify: CacheNotify, session_factory
    ):
        async with unit_of_work(session_factory) as session:
            await service.save(session, 1, StorageSettings(module="s3", props={"bucket": "b"}))
            await service.save(session, 2, StorageSettings(module="other"))

        listener = StorageSettingsListener(service, session_factory)
        listener.attach(notify)
        await notify.publish(ConsumerCacheItem(1, "S3"), CacheNotifyAction.REMOVE)
        await notify.publish(ConsumerCacheItem(2, "s3"), CacheNotifyAction.REMOVE)

        async with unit_of_work(session_factory) as session:
            assert (await service.load_for_tenant(session, 1)).is_default
            assert (await service.load_for_tenant(session, 2)).module == "other"

    async def test_detach(self, service: StorageSettingsService, notify: CacheNotify, session_factory):
        listener = StorageSettingsListener(service, session_factory)
        listener.attach(notify)
        listener.detach()
        assert notify.handler_count == 0
