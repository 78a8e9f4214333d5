"""DataStoreConsumer snapshots and the registry of configured consumers."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .config import StorageConfiguration


@dataclass(frozen=True)
class DataStoreConsumer:
    """Immutable binding of a consumer name to its handler and properties.

    Updating properties builds a new snapshot via ``with_props``.
    """

    name: str = ""
    handler_type: str = ""
    props: Mapping[str, str] = field(default_factory=dict)
    required: tuple[str, ...] = ()

    @property
    def is_set(self) -> bool:
        """True when the consumer has a handler and every required property."""
        if not self.name or not self.handler_type:
            return False
        return all(self.props.get(key) for key in self.required)

    def with_props(self, props: Mapping[str, str]) -> DataStoreConsumer:
        merged = dict(self.props)
        merged.update(props)
        return replace(self, props=merged)


class ConsumerRegistry:
    """Consumers declared in the static storage configuration."""

    def __init__(self, consumers: Mapping[str, DataStoreConsumer] | None = None) -> None:
        self._consumers = {k.lower(): v for k, v in (consumers or {}).items()}

    @classmethod
    def from_config(cls, config: StorageConfiguration) -> ConsumerRegistry:
        return cls(
            {
                c.name: DataStoreConsumer(
                    name=c.name,
                    handler_type=c.type,
                    props=dict(c.properties),
                    required=tuple(c.required),
                )
                for c in config.consumers
            }
        )

    def get_by_name(self, name: str) -> DataStoreConsumer:
        """Configured consumer for *name*, or an empty (unset) one."""
        return self._consumers.get((name or "").lower(), DataStoreConsumer())

    def names(self) -> list[str]:
        return [c.name for c in self._consumers.values()]
