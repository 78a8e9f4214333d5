"""CacheNotify and cache item types for storage invalidation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class CacheNotifyAction(Enum):
    """What happened to the cached item."""

    INSERT_OR_UPDATE = "insert_or_update"
    REMOVE = "remove"


@dataclass(frozen=True, slots=True)
class DataStoreCacheItem:
    """Storage settings of a tenant changed for one module.

    Attributes:
        tenant_id: Tenant path (see ``tenant_path``), not the raw tenant id.
        module: Module name the change was published for.
    """

    tenant_id: str
    module: str


@dataclass(frozen=True, slots=True)
class ConsumerCacheItem:
    """A named consumer was reconfigured or removed for a tenant."""

    tenant_id: int
    name: str


class CacheNotify:
    """Dispatches cache items to handlers subscribed per item type and action.

    Handlers are awaited sequentially in subscription order.
    Exceptions are logged but never propagated: a failing subscriber
    leaves its cache stale, it does not fail the publisher.
    """

    def __init__(self) -> None:
        self._handlers: dict[tuple[type, CacheNotifyAction], list[Callable[..., Any]]] = {}

    def subscribe(
        self, item_type: type, action: CacheNotifyAction, handler: Callable[..., Any]
    ) -> None:
        """Append *handler* for items of *item_type* published with *action*."""
        self._handlers.setdefault((item_type, action), []).append(handler)

    def unsubscribe(
        self, item_type: type, action: CacheNotifyAction, handler: Callable[..., Any]
    ) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers.get((item_type, action), [])
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    async def publish(self, item: object, action: CacheNotifyAction) -> None:
        """Deliver *item* to every handler subscribed for its type and *action*."""
        for handler in list(self._handlers.get((type(item), action), [])):
            try:
                await handler(item)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s %s",
                    handler,
                    action.value,
                    item,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()
