"""DataStore protocol — the byte-level interface every storage handler implements.

Handlers are created by ``StorageFactory``: instantiated without
arguments, then ``configure``d for one tenant path and module, then
optionally bound to a quota controller.  Both configuration calls return
the store itself so they can be chained.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from .config import HandlerElement, ModuleElement
    from .quota import QuotaController


@runtime_checkable
class DataStore(Protocol):
    """Core byte store interface, addressed by ``(domain, path)``.

    The empty domain ``""`` is the module's default area; named domains
    map to the module's configured domain paths.

    ``session`` is optional on the mutating methods.  It is handed to the
    quota controller so usage rows change inside the caller's
    transaction; stores themselves never touch the database.
    """

    tenant: str
    module: str

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def configure(
        self,
        tenant: str,
        handler: HandlerElement | None,
        module: ModuleElement | None,
        props: Mapping[str, str],
    ) -> DataStore: ...

    def set_quota_controller(self, controller: QuotaController | None) -> DataStore: ...

    async def close(self) -> None:
        """Release clients or handles held by the store."""
        ...

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def save(
        self, domain: str, path: str, data: bytes, *, session: AsyncSession | None = None
    ) -> str:
        """Write *data*, returning the store-relative location."""
        ...

    async def read(self, domain: str, path: str) -> bytes: ...

    async def delete(
        self, domain: str, path: str, *, session: AsyncSession | None = None, quota: bool = True
    ) -> None:
        """Remove one file; ``quota=False`` skips usage bookkeeping."""
        ...

    async def delete_directory(
        self, domain: str, path: str, *, session: AsyncSession | None = None
    ) -> None: ...

    async def exists(self, domain: str, path: str) -> bool: ...

    async def get_file_size(self, domain: str, path: str) -> int: ...

    async def list_files(self, domain: str, path: str, recursive: bool = False) -> list[str]: ...

    async def move(
        self,
        src_domain: str,
        src_path: str,
        dst_domain: str,
        dst_path: str,
        *,
        session: AsyncSession | None = None,
    ) -> str: ...
