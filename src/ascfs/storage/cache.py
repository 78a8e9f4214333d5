"""DataStoreCache — configured store handles keyed by ``(tenant_path, module)``."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from .notify import CacheNotifyAction, DataStoreCacheItem

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .notify import CacheNotify
    from .protocol import DataStore

logger = logging.getLogger(__name__)


class DataStoreCache:
    """Owned, process-wide cache of live store handles.

    Entries are never refreshed: a hit is returned as is until a
    ``DataStoreCacheItem`` removal evicts every module of that tenant.
    Reads and evictions take an internal lock; store construction runs
    outside it and the first handle stored for a key wins.

    Every eviction bumps the tenant's generation.  A store built while the
    generation moved may carry settings read before the change, so it is
    closed and built again instead of being cached.
    """

    def __init__(self) -> None:
        self._stores: dict[tuple[str, str], DataStore] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()
        self._notify: CacheNotify | None = None

    @staticmethod
    def _key(tenant_path: str, module: str) -> tuple[str, str]:
        return tenant_path, module.lower()

    def _generation(self, tenant_path: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(tenant_path, 0)

    def get(self, tenant_path: str, module: str) -> DataStore | None:
        with self._lock:
            return self._stores.get(self._key(tenant_path, module))

    async def get_or_create(
        self,
        tenant_path: str,
        module: str,
        create: Callable[[], Awaitable[DataStore]],
    ) -> DataStore:
        key = self._key(tenant_path, module)
        while True:
            with self._lock:
                store = self._stores.get(key)
                generation = self._generation(tenant_path)
            if store is not None:
                logger.debug("Store cache hit for %s/%s", tenant_path, module)
                return store

            logger.debug("Store cache miss for %s/%s", tenant_path, module)
            created = await create()
            with self._lock:
                current = self._generation(tenant_path) == generation
                if current:
                    store = self._stores.setdefault(key, created)
            if not current:
                logger.debug("Tenant %s evicted while building %s; rebuilding", tenant_path, module)
                await created.close()
                continue
            if store is not created:
                await created.close()
            return store

    def remove(self, tenant_path: str, module: str) -> DataStore | None:
        with self._lock:
            return self._stores.pop(self._key(tenant_path, module), None)

    def evict_tenant(self, tenant_path: str) -> list[DataStore]:
        """Drop every module cached for *tenant_path*; returns the evicted stores."""
        with self._lock:
            self._generations[tenant_path] = self._generations.get(tenant_path, 0) + 1
            keys = [k for k in self._stores if k[0] == tenant_path]
            evicted = [self._stores.pop(k) for k in keys]
        if evicted:
            logger.debug("Evicted %d store(s) for tenant %s", len(evicted), tenant_path)
        return evicted

    def __len__(self) -> int:
        with self._lock:
            return len(self._stores)

    # ------------------------------------------------------------------
    # Invalidation subscription
    # ------------------------------------------------------------------

    def attach(self, notify: CacheNotify) -> None:
        """Subscribe to settings changes published on *notify*."""
        if self._notify is not None:
            self.detach()
        notify.subscribe(DataStoreCacheItem, CacheNotifyAction.REMOVE, self._on_remove)
        self._notify = notify

    def detach(self) -> None:
        if self._notify is None:
            return
        self._notify.unsubscribe(DataStoreCacheItem, CacheNotifyAction.REMOVE, self._on_remove)
        self._notify = None

    async def _on_remove(self, item: DataStoreCacheItem) -> None:
        for store in self.evict_tenant(item.tenant_id):
            await store.close()

    async def clear(self) -> None:
        with self._lock:
            stores = list(self._stores.values())
            self._stores.clear()
            self._epoch += 1
        for store in stores:
            await store.close()

    async def close(self) -> None:
        self.detach()
        await self.clear()
