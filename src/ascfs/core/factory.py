"""DaoFactory — routes an entry id to the native DAO set or a provider DAO."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from ascfs.exceptions import InvalidEntryIdError
from ascfs.thirdparty.provider import ProviderAccountDao
from ascfs.thirdparty.selector import PROVIDER_KINDS, RegexDaoSelector

from .file_dao import FileDao
from .folder_dao import FolderDao
from .mapping import IdentityMapper, is_native_id
from .security_dao import SecurityDao
from .tag_dao import TagDao
from .tree import FolderTreeService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascfs.storage.protocol import DataStore
    from ascfs.thirdparty.crypto import InstanceCrypto
    from ascfs.thirdparty.provider import ProviderInfo, ProviderSession
    from ascfs.thirdparty.selector import ProviderKind

    from .protocol import SupportsFiles, SupportsFolders, SupportsShares, SupportsTags

logger = logging.getLogger(__name__)


class DaoFactory:
    """Per-tenant DAO wiring.

    Native DAOs are built once and shared; provider DAOs are built per
    call, bound to the link named in the id, and closed when the
    ``async with`` block exits.

    Usage::

        async with factory.folder_dao(session, folder_id) as dao:
            folders = await dao.get_folders(session, folder_id)
    """

    def __init__(
        self,
        tenant_id: int,
        get_store: Callable[[], Awaitable[DataStore]],
        crypto: InstanceCrypto,
        connectors: Mapping[str, Callable[[ProviderInfo], Awaitable[ProviderSession]]] | None = None,
        kinds: Iterable[ProviderKind] = PROVIDER_KINDS,
        user_id: str | None = None,
    ) -> None:
        self.tenant_id = tenant_id
        self.user_id = user_id
        self.kinds = tuple(kinds)

        self.mapper = IdentityMapper(tenant_id, [k.prefix for k in self.kinds])
        self.tree = FolderTreeService()
        self.security = SecurityDao(tenant_id, self.mapper, self.tree)
        self.tags = TagDao(tenant_id, self.mapper)
        self.files = FileDao(tenant_id, self.security, self.tags, get_store)
        self.folders = FolderDao(tenant_id, self.tree, self.files, self.security, self.tags)
        self.accounts = ProviderAccountDao(tenant_id, crypto, connectors, user_id)
        self.selectors = [
            RegexDaoSelector(kind, self.accounts, self.mapper, self.security, self.tags)
            for kind in self.kinds
        ]

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    @staticmethod
    def is_native(entry_id: object) -> bool:
        return is_native_id(entry_id)

    def get_selector(self, entry_id: object) -> RegexDaoSelector | None:
        """First selector (in priority order) matching *entry_id*."""
        for selector in self.selectors:
            if selector.is_match(entry_id):
                return selector
        return None

    def _require_selector(self, entry_id: object) -> RegexDaoSelector:
        selector = self.get_selector(entry_id)
        if selector is None:
            raise InvalidEntryIdError(f"Unrecognised entry id: {entry_id!r}")
        return selector

    def provider_root_id(self, info: ProviderInfo) -> str:
        """Root folder id of a provider link, ``<prefix>-<linkId>``."""
        for kind in self.kinds:
            if info.provider_key.lower() in kind.provider_keys:
                return f"{kind.prefix}-{info.id}"
        raise InvalidEntryIdError(f"Provider {info.provider_key!r} is not enabled")

    async def remove_provider(self, session: AsyncSession, link_id: int) -> None:
        """Disconnect a link and purge every local row keyed by its ids."""
        info = await self.accounts.get_provider_info(session, link_id)
        await self.accounts.remove_provider_info(
            session, link_id, self.mapper, self.provider_root_id(info)
        )

    # ------------------------------------------------------------------
    # DAOs
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def file_dao(self, session: AsyncSession, entry_id: object) -> AsyncGenerator[SupportsFiles]:
        if self.is_native(entry_id):
            yield self.files
            return
        dao = await self._require_selector(entry_id).get_file_dao(session, str(entry_id))
        async with dao:
            yield dao

    @asynccontextmanager
    async def folder_dao(self, session: AsyncSession, entry_id: object) -> AsyncGenerator[SupportsFolders]:
        if self.is_native(entry_id):
            yield self.folders
            return
        dao = await self._require_selector(entry_id).get_folder_dao(session, str(entry_id))
        async with dao:
            yield dao

    @asynccontextmanager
    async def tag_dao(self, session: AsyncSession, entry_id: object) -> AsyncGenerator[SupportsTags]:
        if self.is_native(entry_id):
            yield self.tags
            return
        dao = await self._require_selector(entry_id).get_tag_dao(session, str(entry_id))
        async with dao:
            yield dao

    @asynccontextmanager
    async def security_dao(self, session: AsyncSession, entry_id: object) -> AsyncGenerator[SupportsShares]:
        if self.is_native(entry_id):
            yield self.security
            return
        dao = await self._require_selector(entry_id).get_security_dao(session, str(entry_id))
        async with dao:
            yield dao
