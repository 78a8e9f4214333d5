"""Provider-backed DAOs — files and folders that live in a remote account.

Entries are addressed by composite ids ``<prefix>-<linkId>[-<path>]``
where ``/`` in the provider path is written as ``|``.  Remote failures
(``ProviderTransportError``) never escape listing and lookup calls: they
come back as entries carrying ``error``, so one broken item does not
abort a whole folder listing.  Title checks before a write are the
exception: they propagate the failure rather than guess a free name.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, or_, update
from sqlmodel import select

from ascfs.core.mapping import _escape_like
from ascfs.core.titles import get_available_title
from ascfs.core.types import EntryType, File, FileEntry, Folder, FolderType
from ascfs.exceptions import (
    EntryNotFoundError,
    InvalidEntryIdError,
    InvalidOperationError,
    ProviderTransportError,
)
from ascfs.models.security import DbFilesSecurity, DbThirdpartyIdMapping
from ascfs.models.tags import DbFilesTagLink

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascfs.core.mapping import IdentityMapper
    from ascfs.core.security_dao import SecurityDao
    from ascfs.core.tag_dao import TagDao
    from ascfs.core.types import ShareRecord, Tag, TagType

    from .provider import ProviderInfo, ProviderSession, RemoteItem
    from .selector import ProviderIdInfo, RegexDaoSelector

logger = logging.getLogger(__name__)


@dataclass
class ErrorItem:
    """Stand-in for a remote item that could not be loaded."""

    path: str
    error: str
    is_folder: bool


class ThirdPartyDaoBase:
    """State shared by the provider DAOs: the bound link and id helpers.

    Constructed empty, then bound with ``init``; ``close`` releases the
    link's remote session.
    """

    def __init__(
        self,
        tenant_id: int,
        mapper: IdentityMapper,
        security: SecurityDao,
        tags: TagDao,
    ) -> None:
        self.tenant_id = tenant_id
        self._mapper = mapper
        self._security = security
        self._tags = tags
        self._info: ProviderInfo | None = None
        self._selector: RegexDaoSelector | None = None
        self.path_prefix = ""

    def init(self, id_info: ProviderIdInfo, selector: RegexDaoSelector):  # noqa: ANN201
        self._info = id_info.provider_info
        self.path_prefix = id_info.path_prefix
        self._selector = selector
        return self

    async def close(self) -> None:
        if self._info is not None:
            await self._info.close()

    async def __aenter__(self):  # noqa: ANN204
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    @property
    def provider_info(self) -> ProviderInfo:
        if self._info is None:
            raise RuntimeError(f"{type(self).__name__} used before init()")
        return self._info

    async def _session(self) -> ProviderSession:
        return await self.provider_info.session()

    # ------------------------------------------------------------------
    # Ids and paths
    # ------------------------------------------------------------------

    def make_id(self, path: str | None = None) -> str:
        """Composite id of provider *path*; the root maps to the bare prefix."""
        path = (path or "").strip("/")
        if not path:
            return self.path_prefix
        return f"{self.path_prefix}-{path.replace('/', '|')}"

    def make_path(self, entry_id: str | None) -> str:
        """Provider path of *entry_id*, ``""`` for the root."""
        if entry_id is None:
            return ""
        assert self._selector is not None
        if self._selector.get_id_code(entry_id) != str(self.provider_info.id):
            raise InvalidEntryIdError(f"Id {entry_id!r} does not belong to {self.path_prefix}")
        return (self._selector.convert_id(entry_id) or "").strip("/")

    @staticmethod
    def parent_path(path: str) -> str:
        return posixpath.dirname(path.strip("/"))

    def path_chain(self, entry_id: str) -> list[str]:
        """Ids from *entry_id* up to the provider root, nearest first."""
        path = self.make_path(entry_id)
        chain = [self.make_id(path)]
        while path:
            path = self.parent_path(path)
            chain.append(self.make_id(path))
        return chain

    def owns(self, entry_id: str | None) -> bool:
        if not entry_id:
            return False
        return entry_id == self.path_prefix or entry_id.startswith(self.path_prefix + "-")

    # ------------------------------------------------------------------
    # Remote access
    # ------------------------------------------------------------------

    async def _get_item(self, path: str, is_folder: bool) -> RemoteItem | ErrorItem | None:
        try:
            session = await self._session()
            return await session.get_item(path)
        except FileNotFoundError:
            return None
        except ProviderTransportError as e:
            logger.warning("%s: cannot load %r: %s", self.path_prefix, path, e)
            return ErrorItem(path=path, error=str(e), is_folder=is_folder)

    async def _list_items(self, path: str, folders: bool | None = None) -> list[RemoteItem | ErrorItem]:
        try:
            session = await self._session()
            items: list[RemoteItem | ErrorItem] = list(await session.list_items(path))
        except ProviderTransportError as e:
            logger.warning("%s: cannot list %r: %s", self.path_prefix, path, e)
            return [ErrorItem(path=path, error=str(e), is_folder=folders is not False)]
        if folders is None:
            return items
        return [i for i in items if i.is_folder == folders]

    # ------------------------------------------------------------------
    # Entry conversion
    # ------------------------------------------------------------------

    def _base_fields(self) -> dict:
        info = self.provider_info
        return {
            "tenant_id": self.tenant_id,
            "created_by": info.owner,
            "modified_by": info.owner,
            "provider_id": info.id,
            "provider_key": info.provider_key,
            "root_folder_id": self.make_id(),
            "root_folder_type": info.root_folder_type,
        }

    def _title(self, path: str) -> str:
        return posixpath.basename(path.strip("/")) or self.provider_info.customer_title

    def to_folder(self, item: RemoteItem | ErrorItem | None) -> Folder | None:
        if item is None:
            return None
        if isinstance(item, ErrorItem):
            return Folder(
                id=self.make_id(item.path),
                title=self._title(item.path),
                parent_id=None,
                folder_type=FolderType.DEFAULT,
                created_on=datetime.now(UTC),
                modified_on=datetime.now(UTC),
                error=item.error,
                **self._base_fields(),
            )
        is_root = not item.path.strip("/")
        created = self.provider_info.create_on if is_root else item.modified_on
        return Folder(
            id=self.make_id(item.path),
            title=self.provider_info.customer_title if is_root else item.name,
            parent_id=None if is_root else self.make_id(self.parent_path(item.path)),
            folder_type=FolderType.DEFAULT,
            created_on=created,
            modified_on=created,
            **self._base_fields(),
        )

    def to_file(self, item: RemoteItem | ErrorItem | None) -> File | None:
        if item is None:
            return None
        if isinstance(item, ErrorItem):
            return File(
                id=self.make_id(item.path),
                title=posixpath.basename(item.path.strip("/")) or self.provider_info.provider_key,
                created_on=datetime.now(UTC),
                modified_on=datetime.now(UTC),
                error=item.error,
                **self._base_fields(),
            )
        return File(
            id=self.make_id(item.path),
            title=item.name or self.provider_info.provider_key,
            folder_id=self.make_id(self.parent_path(item.path)),
            version=1,
            content_length=item.size,
            created_on=item.modified_on,
            modified_on=item.modified_on,
            **self._base_fields(),
        )

    def to_entry(self, item: RemoteItem | ErrorItem) -> FileEntry | None:
        return self.to_folder(item) if item.is_folder else self.to_file(item)

    # ------------------------------------------------------------------
    # Local rows keyed by provider ids
    # ------------------------------------------------------------------

    async def _purge_rows(self, session: AsyncSession, entry_id: str) -> None:
        """Drop mappings, shares and tag links of *entry_id* and everything below it."""
        hashes = await self._mapper.list_prefix(session, entry_id, "|")
        hashes.append(self._mapper.hash_id(entry_id))
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
        await self._mapper.remove_prefix(session, entry_id, "|")
        await session.flush()

    async def _update_path_in_db(self, session: AsyncSession, old_id: str, new_id: str) -> None:
        """Re-key mappings, shares and tag links after a move or rename."""
        if old_id == new_id:
            return
        model = DbThirdpartyIdMapping
        result = await session.execute(
            select(model).where(
                model.tenant_id == self.tenant_id,
                or_(
                    model.id == old_id,
                    model.id.like(_escape_like(old_id + "|") + "%", escape="\\"),  # type: ignore[union-attr]
                ),
            )
        )
        for row in list(result.scalars().all()):
            new_raw = new_id + row.id[len(old_id) :]
            new_hash = await self._mapper.map_id(session, new_raw, save_if_absent=True)
            old_hash = row.hash_id
            for table in (DbFilesSecurity, DbFilesTagLink):
                await session.execute(
                    update(table)
                    .where(table.tenant_id == self.tenant_id, table.entry_id == old_hash)  # type: ignore[arg-type]
                    .values(entry_id=new_hash)
                )
            await session.delete(row)
        await session.flush()

    async def _available_title(self, title: str, parent_path: str) -> str:
        async def _exists(candidate: str) -> bool:
            return await self._exists_in(candidate, parent_path)

        return await get_available_title(title, _exists)

    async def _exists_in(self, title: str, parent_path: str) -> bool:
        """Case-insensitive title check in *parent_path*.

        Unlike listings, a remote failure propagates: an unreadable folder
        cannot prove a title is free.
        """
        remote = await self._session()
        lowered = title.lower()
        return any(item.name.lower() == lowered for item in await remote.list_items(parent_path))


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------


class ThirdPartyFolderDao(ThirdPartyDaoBase):
    async def get_folder(self, session: AsyncSession, folder_id: str) -> Folder | None:
        return self.to_folder(await self._get_item(self.make_path(folder_id), True))

    async def get_root_folder(self, session: AsyncSession) -> Folder | None:
        return await self.get_folder(session, self.make_id())

    async def get_folders(self, session: AsyncSession, parent_id: str) -> list[Folder]:
        items = await self._list_items(self.make_path(parent_id), folders=True)
        return [f for f in (self.to_folder(i) for i in items) if f is not None]

    async def get_parent_folders(self, session: AsyncSession, folder_id: str) -> list[Folder]:
        """Breadcrumbs from the provider root down to *folder_id*."""
        folders: list[Folder] = []
        for entry_id in reversed(self.path_chain(folder_id)):
            folder = await self.get_folder(session, entry_id)
            if folder is not None:
                folders.append(folder)
        return folders

    async def is_empty(self, session: AsyncSession, folder_id: str) -> bool:
        return not await self._list_items(self.make_path(folder_id))

    async def save_folder(self, session: AsyncSession, folder: Folder) -> str:
        """Create *folder* under ``folder.parent_id``, or rename an existing one."""
        remote = await self._session()
        if folder.id and self.owns(folder.id):
            path = self.make_path(folder.id)
            current = await self._get_item(path, True)
            if current is not None and not isinstance(current, ErrorItem):
                if current.name == folder.title:
                    return folder.id
                title = await self._available_title(folder.title, self.parent_path(path))
                renamed = await remote.rename(path, title)
                new_id = self.make_id(renamed.path)
                await self._update_path_in_db(session, folder.id, new_id)
                return new_id

        parent_path = self.make_path(folder.parent_id)
        title = await self._available_title(folder.title, parent_path)
        created = await remote.create_folder(parent_path, title)
        return self.make_id(created.path)

    async def move_folder(self, session: AsyncSession, folder_id: str, to_folder_id: str) -> str:
        path = self.make_path(folder_id)
        to_path = self.make_path(to_folder_id)
        if to_path == path or to_path.startswith(path + "/"):
            raise InvalidOperationError(f"Cannot move {folder_id} into its own subtree")
        title = await self._available_title(posixpath.basename(path), to_path)
        remote = await self._session()
        moved = await remote.move(path, to_path, title)
        new_id = self.make_id(moved.path)
        await self._update_path_in_db(session, folder_id, new_id)
        return new_id

    async def delete_folder(self, session: AsyncSession, folder_id: str) -> None:
        path = self.make_path(folder_id)
        if not path:
            raise InvalidOperationError("The provider root folder cannot be deleted")
        remote = await self._session()
        await remote.delete(path)
        await self._purge_rows(session, folder_id)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class ThirdPartyFileDao(ThirdPartyDaoBase):
    async def get_file(self, session: AsyncSession, file_id: str) -> File | None:
        return self.to_file(await self._get_item(self.make_path(file_id), False))

    async def get_files(self, session: AsyncSession, folder_id: str) -> list[File]:
        items = await self._list_items(self.make_path(folder_id), folders=False)
        return [f for f in (self.to_file(i) for i in items) if f is not None]

    async def is_exist(self, session: AsyncSession, title: str, folder_id: str) -> bool:
        return await self._exists_in(title, self.make_path(folder_id))

    async def get_file_content(self, session: AsyncSession, file_id: str) -> bytes:
        remote = await self._session()
        return await remote.download(self.make_path(file_id))

    async def save_file(self, session: AsyncSession, file: File, data: bytes) -> File:
        """Upload a new file under a free title, or overwrite ``file.id``."""
        remote = await self._session()
        if file.id and self.owns(file.id) and not file.error:
            path = self.make_path(file.id)
            item = await remote.upload(self.parent_path(path), posixpath.basename(path), data)
        else:
            parent_path = self.make_path(file.folder_id)
            title = await self._available_title(file.title, parent_path)
            item = await remote.upload(parent_path, title, data)
        saved = self.to_file(item)
        assert saved is not None
        return saved

    async def move_file(self, session: AsyncSession, file_id: str, to_folder_id: str) -> str:
        path = self.make_path(file_id)
        to_path = self.make_path(to_folder_id)
        title = await self._available_title(posixpath.basename(path), to_path)
        remote = await self._session()
        moved = await remote.move(path, to_path, title)
        new_id = self.make_id(moved.path)
        await self._update_path_in_db(session, file_id, new_id)
        return new_id

    async def copy_file(self, session: AsyncSession, file_id: str, to_folder_id: str) -> File:
        path = self.make_path(file_id)
        to_path = self.make_path(to_folder_id)
        title = await self._available_title(posixpath.basename(path), to_path)
        remote = await self._session()
        copied = self.to_file(await remote.copy(path, to_path, title))
        assert copied is not None
        return copied

    async def delete_file(self, session: AsyncSession, file_id: str) -> None:
        remote = await self._session()
        try:
            await remote.delete(self.make_path(file_id))
        except FileNotFoundError:
            raise EntryNotFoundError(f"File not found: {file_id}") from None
        await self._purge_rows(session, file_id)


# ---------------------------------------------------------------------------
# Tags and shares
# ---------------------------------------------------------------------------


class ThirdPartyTagDao(ThirdPartyDaoBase):
    """Tags on provider entries, stored in the local tag tables."""

    async def save_tags(self, session: AsyncSession, tags: Iterable[Tag]) -> list[Tag]:
        return await self._tags.save_tags(session, [t for t in tags if self.owns(t.entry_id)])

    async def remove_tags(self, session: AsyncSession, tags: Iterable[Tag]) -> None:
        await self._tags.remove_tags(session, [t for t in tags if self.owns(t.entry_id)])

    async def get_tags(
        self,
        session: AsyncSession,
        entry_id: str,
        entry_type: EntryType,
        tag_type: TagType | None = None,
    ) -> list[Tag]:
        if not self.owns(entry_id):
            return []
        return await self._tags.get_tags(session, entry_id, entry_type, tag_type)

    async def get_tags_for_owner(
        self, session: AsyncSession, owner: str, tag_type: TagType | None = None
    ) -> list[Tag]:
        tags = await self._tags.get_tags_for_owner(session, owner, tag_type)
        return [t for t in tags if self.owns(t.entry_id)]


class ThirdPartySecurityDao(ThirdPartyDaoBase):
    """Shares on provider entries.

    Inheritance follows the provider path: a folder ``n`` path segments
    above the entry's folder contributes its records at level ``n``.
    """

    async def set_share(self, session: AsyncSession, record: ShareRecord) -> None:
        await self._security.set_share(session, record)

    async def delete_share_records(self, session: AsyncSession, records: Iterable[ShareRecord]) -> None:
        await self._security.delete_share_records(session, records)

    async def remove_subject(self, session: AsyncSession, subject: str) -> None:
        await self._security.remove_subject(session, subject)

    async def is_shared(self, session: AsyncSession, entry_id: str, entry_type: EntryType) -> bool:
        return await self._security.is_shared(session, entry_id, entry_type)

    async def get_pure_share_records(
        self, session: AsyncSession, entries: FileEntry | Iterable[FileEntry] | None
    ) -> list[ShareRecord]:
        return await self._security.get_pure_share_records(session, entries)

    async def get_shares(
        self, session: AsyncSession, entries: FileEntry | Iterable[FileEntry] | None
    ) -> list[ShareRecord]:
        if entries is None:
            return []
        items = [entries] if isinstance(entries, FileEntry) else list(entries)

        folder_levels: dict[str, int] = {}
        files: list[str] = []
        for entry in items:
            if entry.entry_type == EntryType.FILE:
                assert isinstance(entry, File)
                mapped = await self._mapper.map_id(session, entry.id)
                if mapped is not None:
                    files.append(mapped)
                folder_id = entry.folder_id
            else:
                folder_id = entry.id
            if not folder_id or not self.owns(folder_id):
                continue
            for level, ancestor in enumerate(self.path_chain(folder_id)):
                mapped = await self._mapper.map_id(session, ancestor)
                if mapped is not None and level < folder_levels.get(mapped, level + 1):
                    folder_levels[mapped] = level
        return await self._security.get_shares_by_levels(session, folder_levels, files)
