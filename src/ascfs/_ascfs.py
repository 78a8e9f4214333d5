"""Ascfs — async facade wiring persistence, storage handlers and providers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from ascfs.config import AscfsSettings, get_settings
from ascfs.core.factory import DaoFactory
from ascfs.core.file_dao import FILES_MODULE
from ascfs.core.uow import unit_of_work
from ascfs.models import (
    DbFile,
    DbFileIdentity,
    DbFilesSecurity,
    DbFilesTag,
    DbFilesTagLink,
    DbFolder,
    DbFolderTree,
    DbStorageSettings,
    DbTenantQuota,
    DbTenantQuotaRow,
    DbThirdpartyAccount,
    DbThirdpartyIdMapping,
)
from ascfs.storage.cache import DataStoreCache
from ascfs.storage.config import StorageConfiguration, load_storage_config
from ascfs.storage.consumers import ConsumerRegistry
from ascfs.storage.factory import StorageFactory
from ascfs.storage.notify import CacheNotify
from ascfs.storage.settings import StorageSettingsListener, StorageSettingsService
from ascfs.thirdparty.crypto import InstanceCrypto
from ascfs.thirdparty.selector import enabled_kinds

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncEngine

    from ascfs.storage.protocol import DataStore
    from ascfs.thirdparty.provider import ProviderInfo, ProviderSession

    Connector = Callable[[ProviderInfo], Awaitable[ProviderSession]]

logger = logging.getLogger(__name__)

_TABLES = (
    DbFolder,
    DbFolderTree,
    DbFile,
    DbFileIdentity,
    DbFilesSecurity,
    DbThirdpartyIdMapping,
    DbThirdpartyAccount,
    DbFilesTag,
    DbFilesTagLink,
    DbStorageSettings,
    DbTenantQuota,
    DbTenantQuotaRow,
)


class Ascfs:
    """Process-wide runtime: one engine, one store cache, one notifier.

    Tenants get their DAO wiring from ``dao_factory``; every DAO call
    takes a session, normally opened with ``unit_of_work``::

        fs = Ascfs(settings, storage_config=config)
        await fs.create_tables()
        dao = fs.dao_factory(tenant_id=1, user_id="u1")
        async with fs.unit_of_work() as session:
            async with dao.folder_dao(session, folder_id) as folders:
                children = await folders.get_folders(session, folder_id)
    """

    def __init__(
        self,
        settings: AscfsSettings | None = None,
        *,
        engine: AsyncEngine | None = None,
        storage_config: StorageConfiguration | None = None,
        connectors: Mapping[str, Connector] | None = None,
    ) -> None:
        self.settings = settings or get_settings()

        self._owns_engine = engine is None
        self.engine = engine or create_async_engine(self.settings.database_url, echo=False)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

        if storage_config is None and self.settings.storage_config:
            storage_config = load_storage_config(self.settings.storage_config)
        static = storage_config or StorageConfiguration()

        self.notify = CacheNotify()
        self.cache = DataStoreCache()
        self.cache.attach(self.notify)
        self.storage_settings = StorageSettingsService(
            static, ConsumerRegistry.from_config(static), self.notify
        )
        self._listener = StorageSettingsListener(self.storage_settings, self.session_factory)
        self._listener.attach(self.notify)
        self.storage = StorageFactory(
            storage_config,
            self.storage_settings,
            self.cache,
            self.session_factory,
            storage_root=self.settings.storage_root,
            standalone=self.settings.standalone,
        )

        if self.settings.crypto_key:
            self.crypto = InstanceCrypto(self.settings.crypto_key)
        else:
            logger.warning("No crypto key configured; provider credentials will not survive a restart")
            self.crypto = InstanceCrypto(InstanceCrypto.generate_key())
        self.kinds = enabled_kinds(self.settings.thirdparty_providers)
        self._connectors: dict[str, Connector] = {k.lower(): v for k, v in (connectors or {}).items()}
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_tables(self) -> None:
        """Create every ascfs table that does not exist yet."""
        tables = [model.__table__ for model in _TABLES]  # type: ignore[attr-defined]
        async with self.engine.begin() as conn:
            await conn.run_sync(lambda c: SQLModel.metadata.create_all(c, tables=tables, checkfirst=True))

    def unit_of_work(self) -> AbstractAsyncContextManager[AsyncSession]:
        return unit_of_work(self.session_factory)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._listener.detach()
        await self.cache.close()
        if self._owns_engine:
            await self.engine.dispose()

    async def __aenter__(self) -> Ascfs:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    def register_connector(self, provider_key: str, connector: Connector) -> None:
        """Open sessions for links of *provider_key* with *connector*."""
        self._connectors[provider_key.lower()] = connector

    # ------------------------------------------------------------------
    # Tenants
    # ------------------------------------------------------------------

    async def get_storage(self, tenant: int | str | None, module: str) -> DataStore:
        return await self.storage.get_storage(tenant, module)

    def dao_factory(self, tenant_id: int, user_id: str | None = None) -> DaoFactory:
        async def _files_store() -> DataStore:
            return await self.storage.get_storage(tenant_id, FILES_MODULE)

        return DaoFactory(
            tenant_id,
            _files_store,
            self.crypto,
            self._connectors,
            kinds=self.kinds,
            user_id=user_id,
        )

