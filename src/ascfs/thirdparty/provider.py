"""Provider links: persisted accounts, their sessions and the account DAO."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import delete
from sqlmodel import select

from ascfs.core.types import FolderType
from ascfs.exceptions import ProviderAccessError, ProviderTransportError
from ascfs.models.accounts import DbThirdpartyAccount
from ascfs.models.security import DbFilesSecurity
from ascfs.models.tags import DbFilesTagLink

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascfs.core.mapping import IdentityMapper

    from .crypto import InstanceCrypto

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Remote session contract
# ---------------------------------------------------------------------------


@dataclass
class RemoteItem:
    """One file or folder as reported by a provider.

    ``path`` is relative to the provider root (``""`` is the root) and
    uses ``/`` as separator.
    """

    path: str
    name: str
    is_folder: bool
    size: int = 0
    modified_on: datetime | None = None


@runtime_checkable
class ProviderSession(Protocol):
    """Authenticated client for one provider account.

    Implementations raise ``ProviderTransportError`` for remote failures
    and ``FileNotFoundError`` for missing paths.
    """

    async def get_item(self, path: str) -> RemoteItem: ...

    async def list_items(self, path: str) -> list[RemoteItem]: ...

    async def create_folder(self, parent_path: str, title: str) -> RemoteItem: ...

    async def upload(self, parent_path: str, title: str, data: bytes) -> RemoteItem: ...

    async def download(self, path: str) -> bytes: ...

    async def move(self, path: str, to_parent_path: str, title: str) -> RemoteItem: ...

    async def copy(self, path: str, to_parent_path: str, title: str) -> RemoteItem: ...

    async def rename(self, path: str, title: str) -> RemoteItem: ...

    async def delete(self, path: str) -> None: ...

    async def close(self) -> None: ...


@dataclass
class AuthData:
    url: str | None = None
    login: str | None = None
    password: str | None = None
    token: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.url or self.login or self.password or self.token)


class ProviderInfo:
    """A loaded provider link with a lazily opened remote session.

    The session is opened on first use through the connector registered
    for ``provider_key`` and released by ``close()``.
    """

    def __init__(
        self,
        id: int,
        provider_key: str,
        customer_title: str,
        owner: str,
        root_folder_type: FolderType,
        create_on: datetime,
        auth: AuthData,
        connector: Callable[[ProviderInfo], Awaitable[ProviderSession]] | None = None,
    ) -> None:
        self.id = id
        self.provider_key = provider_key
        self.customer_title = customer_title
        self.owner = owner
        self.root_folder_type = root_folder_type
        self.create_on = create_on
        self.auth = auth
        self._connector = connector
        self._session: ProviderSession | None = None

    async def session(self) -> ProviderSession:
        if self._session is None:
            if self._connector is None:
                raise ProviderTransportError(
                    f"No connector registered for provider {self.provider_key!r}"
                )
            self._session = await self._connector(self)
        return self._session

    @property
    def is_open(self) -> bool:
        return self._session is not None

    def update_title(self, title: str) -> None:
        self.customer_title = title

    async def close(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()

    def __repr__(self) -> str:
        return f"ProviderInfo(id={self.id!r}, provider_key={self.provider_key!r})"


# ---------------------------------------------------------------------------
# Account DAO
# ---------------------------------------------------------------------------


class ProviderAccountDao:
    """CRUD for ``files_thirdparty_account`` rows of one tenant.

    Credentials are encrypted on write; a credential that no longer
    decrypts is loaded as empty so the link can be re-authorized.
    """

    def __init__(
        self,
        tenant_id: int,
        crypto: InstanceCrypto,
        connectors: Mapping[str, Callable[[ProviderInfo], Awaitable[ProviderSession]]] | None = None,
        user_id: str | None = None,
    ) -> None:
        self.tenant_id = tenant_id
        self.user_id = user_id
        self._crypto = crypto
        self._connectors = {k.lower(): v for k, v in (connectors or {}).items()}

    async def save_provider_info(
        self,
        session: AsyncSession,
        provider_key: str,
        customer_title: str,
        auth: AuthData,
        folder_type: FolderType = FolderType.USER,
    ) -> int:
        row = DbThirdpartyAccount(
            tenant_id=self.tenant_id,
            provider=provider_key,
            customer_title=customer_title,
            user_id=self.user_id or "",
            folder_type=int(folder_type),
            url=auth.url,
            user_name=auth.login,
            password=self._crypto.encrypt(auth.password),
            token=self._crypto.encrypt(auth.token),
            create_on=datetime.now(UTC),
        )
        session.add(row)
        await session.flush()
        assert row.id is not None
        logger.info("Connected %s account %s for tenant %s", provider_key, row.id, self.tenant_id)
        return row.id

    async def get_provider_info(self, session: AsyncSession, link_id: int) -> ProviderInfo:
        """Load one link, raising ``ProviderAccessError`` if absent or foreign."""
        row = await self._get_row(session, link_id)
        if row is None:
            raise ProviderAccessError("Provider id not found or you have no access")
        return self._to_info(row)

    async def get_providers_info(
        self,
        session: AsyncSession,
        folder_type: FolderType | None = None,
    ) -> list[ProviderInfo]:
        query = select(DbThirdpartyAccount).where(DbThirdpartyAccount.tenant_id == self.tenant_id)
        if folder_type is not None:
            query = query.where(DbThirdpartyAccount.folder_type == int(folder_type))
        result = await session.execute(query.order_by(DbThirdpartyAccount.id))
        return [self._to_info(row) for row in result.scalars().all() if self._can_access(row)]

    async def update_provider_info(
        self,
        session: AsyncSession,
        link_id: int,
        customer_title: str | None = None,
        auth: AuthData | None = None,
        folder_type: FolderType | None = None,
    ) -> int:
        row = await self._get_row(session, link_id)
        if row is None:
            raise ProviderAccessError("Provider id not found or you have no access")
        if customer_title:
            row.customer_title = customer_title
        if folder_type is not None:
            row.folder_type = int(folder_type)
        if auth is not None and not auth.is_empty:
            row.url = auth.url or row.url
            row.user_name = auth.login or row.user_name
            if auth.password:
                row.password = self._crypto.encrypt(auth.password)
            if auth.token:
                row.token = self._crypto.encrypt(auth.token)
        session.add(row)
        await session.flush()
        return link_id

    async def remove_provider_info(
        self, session: AsyncSession, link_id: int, mapper: IdentityMapper, path_prefix: str
    ) -> None:
        """Delete the link with its id mappings, shares and tag links."""
        row = await self._get_row(session, link_id)
        if row is None:
            raise ProviderAccessError("Provider id not found or you have no access")

        hashes = await mapper.list_prefix(session, path_prefix, "-")
        if hashes:
            await session.execute(
                delete(DbFilesSecurity).where(
                    DbFilesSecurity.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                    DbFilesSecurity.entry_id.in_(hashes),  # type: ignore[union-attr]
                )
            )
            await session.execute(
                delete(DbFilesTagLink).where(
                    DbFilesTagLink.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                    DbFilesTagLink.entry_id.in_(hashes),  # type: ignore[union-attr]
                )
            )
        await mapper.remove_prefix(session, path_prefix, "-")
        await session.delete(row)
        await session.flush()
        logger.info("Removed provider link %s (tenant %s)", link_id, self.tenant_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _can_access(self, row: DbThirdpartyAccount) -> bool:
        if self.user_id is None:
            return True
        return row.folder_type != int(FolderType.USER) or row.user_id == self.user_id

    async def _get_row(self, session: AsyncSession, link_id: int) -> DbThirdpartyAccount | None:
        row = await session.get(DbThirdpartyAccount, link_id)
        if row is None or row.tenant_id != self.tenant_id or not self._can_access(row):
            return None
        return row

    def _to_info(self, row: DbThirdpartyAccount) -> ProviderInfo:
        ok_password, password = self._crypto.try_decrypt(row.password)
        ok_token, token = self._crypto.try_decrypt(row.token)
        if not (ok_password and ok_token):
            logger.warning("Credentials of provider link %s are unreadable", row.id)
        assert row.id is not None
        return ProviderInfo(
            id=row.id,
            provider_key=row.provider,
            customer_title=row.customer_title,
            owner=row.user_id,
            root_folder_type=FolderType(row.folder_type),
            create_on=row.create_on,
            auth=AuthData(url=row.url, login=row.user_name, password=password, token=token),
            connector=self._connectors.get(row.provider.lower()),
        )
