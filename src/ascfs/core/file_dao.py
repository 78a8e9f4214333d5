"""FileDao — native file versions and their content in the ``files`` store."""

from __future__ import annotations

import logging
import posixpath
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, update
from sqlmodel import select

from ascfs.exceptions import EntryNotFoundError
from ascfs.models.files import DbFile, DbFileIdentity

from .mapping import is_native_id
from .titles import get_available_title
from .types import EntryType, File
from .uow import after_commit, after_rollback

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascfs.storage.protocol import DataStore

    from .security_dao import SecurityDao
    from .tag_dao import TagDao

logger = logging.getLogger(__name__)

FILES_MODULE = "files"


def original_content_path(file_id: int, version: int, title: str) -> str:
    """Store path of one version's content, bucketed by thousands of ids.

    >>> original_content_path(1234, 2, "report.docx")
    'folder_2000/file_1234/v2/content.docx'
    """
    ext = posixpath.splitext(title)[1]
    bucket = (file_id // 1000 + 1) * 1000
    return f"folder_{bucket}/file_{file_id}/v{version}/content{ext}"


def _native(entry_id: str | int | None, what: str = "file") -> int:
    if entry_id is None or not is_native_id(entry_id):
        raise EntryNotFoundError(f"Not a native {what} id: {entry_id!r}")
    return int(entry_id)


class FileDao:
    """Native file CRUD.  Every save creates a version row and writes content.

    ``get_store`` returns the tenant's store for the ``files`` module; the
    store applies the tenant quota on writes.
    """

    def __init__(
        self,
        tenant_id: int,
        security: SecurityDao,
        tags: TagDao,
        get_store: Callable[[], Awaitable[DataStore]],
    ) -> None:
        self.tenant_id = tenant_id
        self._security = security
        self._tags = tags
        self._get_store = get_store

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_file(
        self, session: AsyncSession, file_id: str | int, version: int | None = None
    ) -> File | None:
        if not is_native_id(file_id):
            return None
        query = select(DbFile).where(DbFile.tenant_id == self.tenant_id, DbFile.id == int(file_id))
        if version is None:
            query = query.where(DbFile.current_version.is_(True))  # type: ignore[union-attr]
        else:
            query = query.where(DbFile.version == version)
        row = (await session.execute(query)).scalars().first()
        return self._to_file(row) if row else None

    async def get_files(self, session: AsyncSession, folder_id: str | int) -> list[File]:
        if not is_native_id(folder_id):
            return []
        result = await session.execute(
            select(DbFile)
            .where(
                DbFile.tenant_id == self.tenant_id,
                DbFile.folder_id == int(folder_id),
                DbFile.current_version.is_(True),  # type: ignore[union-attr]
            )
            .order_by(DbFile.title)
        )
        return [self._to_file(row) for row in result.scalars().all()]

    async def get_file_versions(self, session: AsyncSession, file_id: str | int) -> list[File]:
        result = await session.execute(
            select(DbFile)
            .where(DbFile.tenant_id == self.tenant_id, DbFile.id == _native(file_id))
            .order_by(DbFile.version)
        )
        return [self._to_file(row) for row in result.scalars().all()]

    async def is_exist(self, session: AsyncSession, title: str, folder_id: str | int) -> bool:
        """True if a current file named *title* is in *folder_id* (case-insensitive)."""
        result = await session.execute(
            select(DbFile.id)
            .where(
                DbFile.tenant_id == self.tenant_id,
                DbFile.folder_id == _native(folder_id, "folder"),
                DbFile.current_version.is_(True),  # type: ignore[union-attr]
                func.lower(DbFile.title) == title.lower(),
            )
            .limit(1)
        )
        return result.first() is not None

    async def get_file_content(
        self, session: AsyncSession, file_id: str | int, version: int | None = None
    ) -> bytes:
        file = await self.get_file(session, file_id, version)
        if file is None:
            raise EntryNotFoundError(f"File not found: {file_id}")
        store = await self._get_store()
        return await store.read("", original_content_path(int(file.id), file.version, file.title))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def save_file(self, session: AsyncSession, file: File, data: bytes) -> File:
        """Store a new file, or a new version when ``file.id`` already exists.

        Content is written before the row is inserted, so a rejected
        write (quota) leaves no row behind.  The quota change rides on
        *session*; if the transaction rolls back, the written content is
        removed again.
        """
        now = datetime.now(UTC)
        folder_id = _native(file.folder_id, "folder")
        current = await self.get_file(session, file.id) if file.id else None

        if current is None:
            identity = DbFileIdentity(tenant_id=self.tenant_id)
            session.add(identity)
            await session.flush()
            assert identity.id is not None
            file_id = identity.id
            version = 1
            created_by, created_on = file.created_by or file.modified_by, now
        else:
            file_id = int(current.id)
            version = current.version + 1
            created_by, created_on = current.created_by, current.created_on or now

        store = await self._get_store()
        location = original_content_path(file_id, version, file.title)
        after_rollback(session, lambda: store.delete("", location, quota=False))
        await store.save("", location, data, session=session)

        if current is not None:
            await session.execute(
                update(DbFile)
                .where(DbFile.tenant_id == self.tenant_id, DbFile.id == file_id)  # type: ignore[arg-type]
                .values(current_version=False)
            )
        row = DbFile(
            id=file_id,
            version=version,
            tenant_id=self.tenant_id,
            folder_id=folder_id,
            title=file.title,
            content_length=len(data),
            current_version=True,
            create_by=created_by,
            create_on=created_on,
            modified_by=file.modified_by or created_by,
            modified_on=now,
        )
        session.add(row)
        await session.flush()
        logger.debug("Saved file %s v%s in folder %s", file_id, version, folder_id)
        return self._to_file(row)

    async def move_file(self, session: AsyncSession, file_id: str | int, to_folder_id: str | int) -> str:
        native = _native(file_id)
        result = await session.execute(
            update(DbFile)
            .where(DbFile.tenant_id == self.tenant_id, DbFile.id == native)  # type: ignore[arg-type]
            .values(folder_id=_native(to_folder_id, "folder"), modified_on=datetime.now(UTC))
        )
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise EntryNotFoundError(f"File not found: {file_id}")
        await session.flush()
        return str(native)

    async def copy_file(self, session: AsyncSession, file_id: str | int, to_folder_id: str | int) -> File:
        """Copy the current version into *to_folder_id* under a free title."""
        source = await self.get_file(session, file_id)
        if source is None:
            raise EntryNotFoundError(f"File not found: {file_id}")
        data = await self.get_file_content(session, file_id)

        async def _exists(title: str) -> bool:
            return await self.is_exist(session, title, to_folder_id)

        title = await get_available_title(source.title, _exists)
        copy = File(
            id="",
            title=title,
            tenant_id=self.tenant_id,
            folder_id=str(to_folder_id),
            created_by=source.modified_by,
            modified_by=source.modified_by,
        )
        return await self.save_file(session, copy, data)

    async def delete_file(self, session: AsyncSession, file_id: str | int) -> None:
        """Delete every version, shares and tag links; content goes on commit."""
        versions = await self.get_file_versions(session, file_id)
        if not versions:
            return
        await self._delete_rows(session, versions)

    async def delete_files_in_folders(self, session: AsyncSession, folder_ids: Iterable[int]) -> list[str]:
        """Delete all files in *folder_ids*; returns the deleted file ids."""
        ids = list(folder_ids)
        if not ids:
            return []
        result = await session.execute(
            select(DbFile).where(
                DbFile.tenant_id == self.tenant_id,
                DbFile.folder_id.in_(ids),  # type: ignore[union-attr]
            )
        )
        versions = [self._to_file(row) for row in result.scalars().all()]
        await self._delete_rows(session, versions)
        return sorted({f.id for f in versions}, key=int)

    async def _delete_rows(self, session: AsyncSession, versions: list[File]) -> None:
        store = await self._get_store()
        for file in versions:
            location = original_content_path(int(file.id), file.version, file.title)
            after_commit(session, lambda location=location: store.delete("", location))

        file_ids = sorted({int(f.id) for f in versions})
        await session.execute(
            delete(DbFile).where(
                DbFile.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                DbFile.id.in_(file_ids),  # type: ignore[union-attr]
            )
        )
        keys = [str(i) for i in file_ids]
        await self._security.remove_entries(session, keys, EntryType.FILE)
        await self._tags.remove_entries(session, keys, EntryType.FILE)
        await session.flush()

    @staticmethod
    def _to_file(row: DbFile) -> File:
        return File(
            id=str(row.id),
            title=row.title,
            tenant_id=row.tenant_id,
            folder_id=str(row.folder_id),
            version=row.version,
            content_length=row.content_length,
            created_by=row.create_by,
            created_on=row.create_on,
            modified_by=row.modified_by,
            modified_on=row.modified_on,
        )
