"""StorageFactory — resolves ``(tenant, module)`` to a configured store."""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from ascfs.core.uow import unit_of_work
from ascfs.exceptions import ConfigurationError, UnknownModuleError

from .config import STORAGE_ROOT_PARAM
from .consumers import DataStoreConsumer
from .paths import tenant_path
from .quota import TenantQuotaController

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from .cache import DataStoreCache
    from .config import StorageConfiguration
    from .protocol import DataStore
    from .quota import QuotaController
    from .settings import StorageSettingsService

logger = logging.getLogger(__name__)


def import_handler(dotted_path: str) -> type:
    """Import a store class from ``package.module.ClassName``."""
    module_path, _, class_name = dotted_path.rpartition(".")
    if not module_path:
        raise ConfigurationError(f"Handler type must be a dotted path: {dotted_path!r}")
    try:
        module = importlib.import_module(module_path)
        return getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot import handler {dotted_path!r}: {e}") from e


def _tenant_id(tenant: int | str | None) -> int | None:
    raw = "" if tenant is None else str(tenant).strip()
    return int(raw) if raw.isdigit() else None


class StorageFactory:
    """Builds and caches ``DataStore`` handles.

    Standalone deployments let a tenant move its migratable modules to a
    configured consumer; otherwise every module uses its static handler.
    """

    def __init__(
        self,
        config: StorageConfiguration | None,
        settings_service: StorageSettingsService,
        cache: DataStoreCache,
        session_factory: Callable[..., AsyncSession],
        *,
        storage_root: str = "",
        standalone: bool = False,
        quota_factory: Callable[[int], QuotaController] | None = None,
    ) -> None:
        self._config = config
        self._settings = settings_service
        self._cache = cache
        self._session_factory = session_factory
        self._storage_root = storage_root
        self.standalone = standalone
        self._quota_factory = quota_factory or (
            lambda tenant_id: TenantQuotaController(tenant_id, session_factory)
        )

    @property
    def config(self) -> StorageConfiguration:
        if self._config is None:
            raise ConfigurationError("Storage configuration section not found")
        return self._config

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def get_storage(
        self,
        tenant: int | str | None,
        module: str,
        controller: QuotaController | None = None,
    ) -> DataStore:
        """Cached store for *module* of *tenant*, created on first use."""
        path = tenant_path(tenant)

        async def _create() -> DataStore:
            config = self.config
            tenant_id = _tenant_id(tenant)
            consumer = DataStoreConsumer()
            if tenant_id is not None:
                async with unit_of_work(self._session_factory) as session:
                    settings = await self._settings.load_for_tenant(session, tenant_id)
                consumer = self._settings.get_consumer(settings)
            quota = controller
            if quota is None and tenant_id is not None:
                quota = self._quota_factory(tenant_id)
            return self._get_data_store(config, path, module, consumer, quota)

        return await self._cache.get_or_create(path, module, _create)

    async def get_storage_from_consumer(
        self,
        tenant: int | str | None,
        module: str,
        consumer: DataStoreConsumer,
        controller: QuotaController | None = None,
    ) -> DataStore:
        """Uncached store for *module* built from an explicit *consumer*."""
        return self._get_data_store(self.config, tenant_path(tenant), module, consumer, controller)

    def get_module_list(self, except_disabled_migration: bool = False) -> list[str]:
        return self.config.get_module_list(except_disabled_migration)

    def get_domain_list(self, module: str) -> list[str]:
        return self.config.get_domain_list(module)

    def _get_data_store(
        self,
        config: StorageConfiguration,
        path: str,
        module: str,
        consumer: DataStoreConsumer,
        controller: QuotaController | None,
    ) -> DataStore:
        element = config.get_module_element(module)
        if element is None:
            raise UnknownModuleError(f"No such module: {module}")

        handler = config.get_handler(element.type)
        if self.standalone and not element.disable_migrate and consumer.is_set:
            handler_type = consumer.handler_type
            props = dict(consumer.props)
        else:
            if handler is None:
                raise ConfigurationError(
                    f"Handler {element.type!r} of module {element.name!r} is not configured"
                )
            handler_type = handler.type
            props = dict(handler.properties)
        if self._storage_root:
            props.setdefault(STORAGE_ROOT_PARAM, self._storage_root)

        store_cls = import_handler(handler_type)
        store: DataStore = store_cls()
        store.configure(path, handler, element, props)
        store.set_quota_controller(controller if element.count else None)
        logger.info("Created %s store for %s/%s", store_cls.__name__, path, element.name)
        return store
