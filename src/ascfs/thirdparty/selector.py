"""Provider kinds and the regex selectors that route composite ids to them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ascfs.exceptions import InvalidEntryIdError, ProviderAccessError

from .dao import ThirdPartyFileDao, ThirdPartyFolderDao, ThirdPartySecurityDao, ThirdPartyTagDao

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascfs.core.mapping import IdentityMapper
    from ascfs.core.security_dao import SecurityDao
    from ascfs.core.tag_dao import TagDao

    from .provider import ProviderAccountDao, ProviderInfo


@dataclass(frozen=True)
class ProviderKind:
    """A provider family: its id prefix and the account keys it serves."""

    prefix: str
    title: str
    provider_keys: tuple[str, ...]


# Selector priority order
PROVIDER_KINDS: tuple[ProviderKind, ...] = (
    ProviderKind("box", "Box", ("box",)),
    ProviderKind("dropbox", "Dropbox", ("dropboxv2", "dropbox")),
    ProviderKind("drive", "Google Drive", ("google", "googledrive")),
    ProviderKind("onedrive", "OneDrive", ("onedrive",)),
    ProviderKind("spoint", "SharePoint", ("sharepoint",)),
    ProviderKind("sbox", "WebDAV", ("webdav", "nextcloud", "owncloud", "yandex", "kdrive")),
)


def enabled_kinds(provider_keys: Iterable[str]) -> tuple[ProviderKind, ...]:
    """Kinds serving at least one of the enabled *provider_keys*, in priority order."""
    enabled = {k.lower() for k in provider_keys}
    return tuple(k for k in PROVIDER_KINDS if enabled.intersection(k.provider_keys))


def kind_for_provider(provider_key: str) -> ProviderKind | None:
    key = provider_key.lower()
    for kind in PROVIDER_KINDS:
        if key in kind.provider_keys:
            return kind
    return None


@dataclass
class ProviderIdInfo:
    """A composite id resolved to its provider link.

    Attributes:
        provider_info: The loaded link.
        path: Raw path part of the id (``|`` separated), ``""`` for the root.
        path_prefix: ``<prefix>-<linkId>``, the id of the provider root.
    """

    provider_info: ProviderInfo
    path: str
    path_prefix: str


class RegexDaoSelector:
    """Routes ids of the form ``<prefix>-<linkId>[-<path>]`` to provider DAOs.

    Each ``get_*_dao`` call builds a fresh DAO bound to the id's provider
    link; callers close it (or use it as an async context manager).
    """

    def __init__(
        self,
        kind: ProviderKind,
        accounts: ProviderAccountDao,
        mapper: IdentityMapper,
        security: SecurityDao,
        tags: TagDao,
    ) -> None:
        self.kind = kind
        self.selector = re.compile(
            rf"^{re.escape(kind.prefix)}-(?P<id>\d+)(-(?P<path>.*))?$", re.DOTALL
        )
        self._accounts = accounts
        self._mapper = mapper
        self._security = security
        self._tags = tags

    @property
    def tenant_id(self) -> int:
        return self._accounts.tenant_id

    def is_match(self, entry_id: object) -> bool:
        return isinstance(entry_id, str) and self.selector.match(entry_id) is not None

    def convert_id(self, entry_id: str | None) -> str | None:
        """Provider path encoded in *entry_id* (``|`` decoded back to ``/``)."""
        if entry_id is None:
            return None
        match = self.selector.match(entry_id)
        if match is None:
            raise InvalidEntryIdError(f"Id is not a {self.kind.title} id: {entry_id!r}")
        return (match.group("path") or "").replace("|", "/")

    def get_id_code(self, entry_id: str | None) -> str | None:
        """Provider link id of *entry_id*, or None when the id is not ours."""
        if entry_id is None:
            return None
        match = self.selector.match(entry_id)
        return match.group("id") if match else None

    async def get_provider_info(self, session: AsyncSession, link_id: int) -> ProviderInfo:
        info = await self._accounts.get_provider_info(session, link_id)
        if info.provider_key.lower() not in self.kind.provider_keys:
            raise ProviderAccessError("Provider id not found or you have no access")
        return info

    async def get_info(self, session: AsyncSession, entry_id: str) -> ProviderIdInfo:
        match = self.selector.match(entry_id) if entry_id is not None else None
        if match is None:
            raise InvalidEntryIdError(f"Id is not a {self.kind.title} id: {entry_id!r}")
        link_id = match.group("id")
        return ProviderIdInfo(
            provider_info=await self.get_provider_info(session, int(link_id)),
            path=match.group("path") or "",
            path_prefix=f"{self.kind.prefix}-{link_id}",
        )

    # ------------------------------------------------------------------
    # DAOs
    # ------------------------------------------------------------------

    async def get_file_dao(self, session: AsyncSession, entry_id: str) -> ThirdPartyFileDao:
        dao = ThirdPartyFileDao(self.tenant_id, self._mapper, self._security, self._tags)
        return dao.init(await self.get_info(session, entry_id), self)

    async def get_folder_dao(self, session: AsyncSession, entry_id: str) -> ThirdPartyFolderDao:
        dao = ThirdPartyFolderDao(self.tenant_id, self._mapper, self._security, self._tags)
        return dao.init(await self.get_info(session, entry_id), self)

    async def get_tag_dao(self, session: AsyncSession, entry_id: str) -> ThirdPartyTagDao:
        dao = ThirdPartyTagDao(self.tenant_id, self._mapper, self._security, self._tags)
        return dao.init(await self.get_info(session, entry_id), self)

    async def get_security_dao(self, session: AsyncSession, entry_id: str) -> ThirdPartySecurityDao:
        dao = ThirdPartySecurityDao(self.tenant_id, self._mapper, self._security, self._tags)
        return dao.init(await self.get_info(session, entry_id), self)

    async def rename_provider(self, session: AsyncSession, info: ProviderInfo, new_title: str) -> None:
        await self._accounts.update_provider_info(session, info.id, customer_title=new_title)
        info.update_title(new_title)

    def __repr__(self) -> str:
        return f"RegexDaoSelector({self.kind.prefix!r})"
