"""Per-tenant storage settings: which consumer backs the tenant's stores."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ascfs.core.dialect import upsert
from ascfs.core.uow import after_commit, unit_of_work
from ascfs.models.storage import DbStorageSettings

from .notify import CacheNotifyAction, ConsumerCacheItem, DataStoreCacheItem
from .paths import tenant_path

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from .config import StorageConfiguration
    from .consumers import ConsumerRegistry, DataStoreConsumer
    from .notify import CacheNotify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageSettings:
    """Snapshot of a tenant's storage choice.

    ``module`` names a consumer; ``None`` means the statically configured
    handlers.  Changes produce a new snapshot that is saved as a whole.
    """

    module: str | None = None
    props: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_default(self) -> bool:
        return not self.module


class StorageSettingsService:
    """Loads and saves ``StorageSettings`` and publishes cache invalidation."""

    def __init__(
        self,
        config: StorageConfiguration,
        consumers: ConsumerRegistry,
        notify: CacheNotify,
    ) -> None:
        self._config = config
        self._consumers = consumers
        self._notify = notify

    async def load_for_tenant(self, session: AsyncSession, tenant_id: int) -> StorageSettings:
        row = await session.get(DbStorageSettings, tenant_id)
        if row is None:
            return StorageSettings()
        props = json.loads(row.props_json) if row.props_json else {}
        return StorageSettings(module=row.module, props=props)

    async def save(
        self, session: AsyncSession, tenant_id: int, settings: StorageSettings
    ) -> StorageSettings:
        """Persist *settings*; every migratable module of the tenant is evicted
        once *session* commits.
        """
        await upsert(
            session,
            DbStorageSettings,
            values={
                "tenant_id": tenant_id,
                "module": settings.module,
                "props_json": json.dumps(dict(settings.props)) if settings.props else None,
            },
            conflict_keys=["tenant_id"],
        )
        await session.flush()
        logger.info("Storage settings of tenant %s set to %r", tenant_id, settings.module)

        path = tenant_path(tenant_id)
        modules = self._config.get_module_list(except_disabled_migration=True)

        async def _evict() -> None:
            for module in modules:
                await self._notify.publish(DataStoreCacheItem(path, module), CacheNotifyAction.REMOVE)

        after_commit(session, _evict)
        return settings

    async def clear(self, session: AsyncSession, tenant_id: int) -> StorageSettings:
        """Reset the tenant to the statically configured handlers."""
        return await self.save(session, tenant_id, StorageSettings())

    def get_consumer(self, settings: StorageSettings) -> DataStoreConsumer:
        """Consumer selected by *settings*, with the tenant's properties applied."""
        consumer = self._consumers.get_by_name(settings.module or "")
        if settings.props:
            consumer = consumer.with_props(settings.props)
        return consumer


class StorageSettingsListener:
    """Clears tenant settings when the consumer they point at is removed."""

    def __init__(
        self,
        service: StorageSettingsService,
        session_factory: Callable[..., AsyncSession],
    ) -> None:
        self._service = service
        self._session_factory = session_factory
        self._notify: CacheNotify | None = None

    def attach(self, notify: CacheNotify) -> None:
        notify.subscribe(ConsumerCacheItem, CacheNotifyAction.REMOVE, self._on_consumer_removed)
        self._notify = notify

    def detach(self) -> None:
        if self._notify is None:
            return
        self._notify.unsubscribe(
            ConsumerCacheItem, CacheNotifyAction.REMOVE, self._on_consumer_removed
        )
        self._notify = None

    async def _on_consumer_removed(self, item: ConsumerCacheItem) -> None:
        async with unit_of_work(self._session_factory) as session:
            settings = await self._service.load_for_tenant(session, item.tenant_id)
            if settings.module and settings.module.lower() == item.name.lower():
                await self._service.clear(session, item.tenant_id)
