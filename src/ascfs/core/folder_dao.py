"""FolderDao — native folders, kept consistent with the closure table."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, func
from sqlmodel import select

from ascfs.exceptions import EntryNotFoundError
from ascfs.models.files import DbFile
from ascfs.models.folders import DbFolder

from .mapping import is_native_id
from .types import EntryType, Folder, FolderType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .file_dao import FileDao
    from .security_dao import SecurityDao
    from .tag_dao import TagDao
    from .tree import FolderTreeService

logger = logging.getLogger(__name__)


def _native(folder_id: str | int | None) -> int:
    if folder_id is None or not is_native_id(folder_id):
        raise EntryNotFoundError(f"Not a native folder id: {folder_id!r}")
    return int(folder_id)


class FolderDao:
    """Native folder CRUD.

    Creation, moves and deletes update ``files_folder`` and the closure
    table in the caller's session; deletes also remove the subtree's
    files, shares and tag links.
    """

    def __init__(
        self,
        tenant_id: int,
        tree: FolderTreeService,
        files: FileDao,
        security: SecurityDao,
        tags: TagDao,
    ) -> None:
        self.tenant_id = tenant_id
        self._tree = tree
        self._files = files
        self._security = security
        self._tags = tags

    async def _get_row(self, session: AsyncSession, folder_id: int) -> DbFolder | None:
        row = await session.get(DbFolder, folder_id)
        if row is None or row.tenant_id != self.tenant_id:
            return None
        return row

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_folder(self, session: AsyncSession, folder_id: str | int) -> Folder | None:
        if not is_native_id(folder_id):
            return None
        row = await self._get_row(session, int(folder_id))
        return self._to_folder(row) if row else None

    async def get_folders(self, session: AsyncSession, parent_id: str | int) -> list[Folder]:
        """Direct children of *parent_id*, by title."""
        result = await session.execute(
            select(DbFolder)
            .where(DbFolder.tenant_id == self.tenant_id, DbFolder.parent_id == _native(parent_id))
            .order_by(DbFolder.title)
        )
        return [self._to_folder(row) for row in result.scalars().all()]

    async def get_parent_folders(self, session: AsyncSession, folder_id: str | int) -> list[Folder]:
        """Breadcrumbs: the folder's ancestors root first, ending with the folder."""
        chain = await self._tree.get_ancestor_chain(session, _native(folder_id))
        if not chain:
            return []
        result = await session.execute(
            select(DbFolder).where(
                DbFolder.tenant_id == self.tenant_id,
                DbFolder.id.in_(chain),  # type: ignore[union-attr]
            )
        )
        by_id = {row.id: row for row in result.scalars().all()}
        return [self._to_folder(by_id[fid]) for fid in chain if fid in by_id]

    async def is_empty(self, session: AsyncSession, folder_id: str | int) -> bool:
        native = _native(folder_id)
        folders = await session.execute(
            select(func.count())
            .select_from(DbFolder)
            .where(DbFolder.tenant_id == self.tenant_id, DbFolder.parent_id == native)
        )
        if folders.scalar_one():
            return False
        files = await session.execute(
            select(func.count())
            .select_from(DbFile)
            .where(DbFile.tenant_id == self.tenant_id, DbFile.folder_id == native)
        )
        return files.scalar_one() == 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def save_folder(self, session: AsyncSession, folder: Folder) -> str:
        """Create *folder*, or rename it when ``folder.id`` exists.

        A new folder gets its closure rows in the same session.
        """
        now = datetime.now(UTC)
        if folder.id and is_native_id(folder.id):
            row = await self._get_row(session, int(folder.id))
            if row is not None:
                row.title = folder.title
                row.modified_by = folder.modified_by or row.modified_by
                row.modified_on = now
                session.add(row)
                await session.flush()
                return str(row.id)

        parent_id = int(folder.parent_id) if folder.parent_id and is_native_id(folder.parent_id) else 0
        if parent_id and await self._get_row(session, parent_id) is None:
            raise EntryNotFoundError(f"Parent folder not found: {folder.parent_id}")

        row = DbFolder(
            tenant_id=self.tenant_id,
            parent_id=parent_id,
            title=folder.title,
            folder_type=int(folder.folder_type),
            create_by=folder.created_by,
            create_on=now,
            modified_by=folder.modified_by or folder.created_by,
            modified_on=now,
        )
        session.add(row)
        await session.flush()
        assert row.id is not None
        await self._tree.add_folder(session, row.id, parent_id)
        logger.debug("Created folder %s under %s", row.id, parent_id)
        return str(row.id)

    async def move_folder(self, session: AsyncSession, folder_id: str | int, to_folder_id: str | int) -> str:
        """Re-parent the subtree of *folder_id* under *to_folder_id*."""
        native = _native(folder_id)
        target = _native(to_folder_id)
        row = await self._get_row(session, native)
        if row is None:
            raise EntryNotFoundError(f"Folder not found: {folder_id}")
        if await self._get_row(session, target) is None:
            raise EntryNotFoundError(f"Folder not found: {to_folder_id}")

        await self._tree.move_subtree(session, native, target)
        row.parent_id = target
        row.modified_on = datetime.now(UTC)
        session.add(row)
        await session.flush()
        return str(native)

    async def delete_folder(self, session: AsyncSession, folder_id: str | int) -> None:
        """Delete the folder's subtree with its files, shares and tag links."""
        native = _native(folder_id)
        if await self._get_row(session, native) is None:
            return

        members = await self._tree.get_descendants(session, [native])
        await self._files.delete_files_in_folders(session, members)

        keys = [str(fid) for fid in members]
        await self._security.remove_entries(session, keys, EntryType.FOLDER)
        await self._tags.remove_entries(session, keys, EntryType.FOLDER)
        await session.execute(
            delete(DbFolder).where(
                DbFolder.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                DbFolder.id.in_(list(members)),  # type: ignore[union-attr]
            )
        )
        await self._tree.delete_subtree(session, native)
        await session.flush()
        logger.debug("Deleted folder %s (%d folders)", native, len(members))

    async def get_or_create_root(
        self,
        session: AsyncSession,
        folder_type: FolderType,
        owner: str | None = None,
        title: str | None = None,
    ) -> str:
        """Id of the section root of *folder_type*, created on first request.

        ``USER``, ``TRASH``, ``RECENT``, ``FAVORITES`` and ``TEMPLATES``
        roots are per owner; other sections are shared by the tenant.
        """
        query = select(DbFolder.id).where(
            DbFolder.tenant_id == self.tenant_id,
            DbFolder.parent_id == 0,
            DbFolder.folder_type == int(folder_type),
        )
        per_owner = folder_type in _OWNED_ROOTS
        if per_owner:
            query = query.where(DbFolder.create_by == owner)
        row = (await session.execute(query.limit(1))).first()
        if row is not None:
            return str(row[0])

        return await self.save_folder(
            session,
            Folder(
                id="",
                title=title or folder_type.name.lower(),
                tenant_id=self.tenant_id,
                folder_type=folder_type,
                created_by=owner,
                modified_by=owner,
            ),
        )

    def _to_folder(self, row: DbFolder) -> Folder:
        return Folder(
            id=str(row.id),
            title=row.title,
            tenant_id=row.tenant_id,
            parent_id=str(row.parent_id) if row.parent_id else None,
            folder_type=FolderType(row.folder_type),
            created_by=row.create_by,
            created_on=row.create_on,
            modified_by=row.modified_by,
            modified_on=row.modified_on,
        )


_OWNED_ROOTS = frozenset(
    {FolderType.USER, FolderType.TRASH, FolderType.RECENT, FolderType.FAVORITES, FolderType.TEMPLATES}
)
