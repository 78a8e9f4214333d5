"""SecurityDao — share records and hierarchical permission resolution.

Stateless per tenant: receives the tenant and the id mapper at
construction and a session at call time.  Methods flush but never
commit; the multi-step revocation and subject purge rely on the caller's
unit of work so that partial application is never observable.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, cast, delete, or_
from sqlmodel import select

from ascfs.models.files import DbFile
from ascfs.models.folders import DbFolderTree
from ascfs.models.security import DbFilesSecurity

from .dialect import upsert
from .mapping import is_native_id
from .types import EntryType, File, FileEntry, FileShare, ShareRecord

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from .mapping import IdentityMapper
    from .tree import FolderTreeService

logger = logging.getLogger(__name__)


def _as_list(entries: FileEntry | Iterable[FileEntry] | None) -> list[FileEntry]:
    if entries is None:
        return []
    if isinstance(entries, FileEntry):
        return [entries]
    return list(entries)


def sort_shares(records: list[ShareRecord]) -> list[ShareRecord]:
    """Nearest level first; at equal level the stronger share first."""
    return sorted(records, key=lambda r: (r.level, -int(r.share)))


class SecurityDao:
    """Share CRUD and permission resolution over the folder closure table."""

    def __init__(self, tenant_id: int, mapper: IdentityMapper, tree: FolderTreeService) -> None:
        self.tenant_id = tenant_id
        self._mapper = mapper
        self._tree = tree

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def set_share(self, session: AsyncSession, record: ShareRecord) -> None:
        """Grant, change or revoke one share.

        ``FileShare.NONE`` deletes instead of storing.  Revoking a native
        folder also drops the subject's rows on every descendant folder
        and on every file directly inside any of them.
        """
        if record.share == FileShare.NONE:
            await self._revoke(session, record)
            return

        entry_id = await self._mapper.map_id(session, record.entry_id, save_if_absent=True)
        await upsert(
            session,
            DbFilesSecurity,
            values={
                "tenant_id": self.tenant_id,
                "entry_id": entry_id,
                "entry_type": int(record.entry_type),
                "subject": record.subject,
                "owner": record.owner,
                "security": int(record.share),
                "timestamp": datetime.now(UTC),
            },
            conflict_keys=["tenant_id", "entry_id", "entry_type", "subject"],
        )
        await session.flush()

    async def _revoke(self, session: AsyncSession, record: ShareRecord) -> None:
        entry_id = await self._mapper.map_id(session, record.entry_id)
        if not entry_id:
            return

        model = DbFilesSecurity
        files: list[str] = []
        if record.entry_type == EntryType.FOLDER:
            if is_native_id(entry_id):
                folder_ids = await self._tree.get_descendants(session, [int(entry_id)])
                folders = [str(f) for f in folder_ids]
                result = await session.execute(
                    select(DbFile.id)
                    .where(
                        DbFile.tenant_id == self.tenant_id,
                        DbFile.folder_id.in_(list(folder_ids)),  # type: ignore[union-attr]
                    )
                    .distinct()
                )
                files.extend(str(row[0]) for row in result.all())
            else:
                # Provider hierarchies are not in the closure table
                folders = [entry_id]

            await session.execute(
                delete(model).where(
                    model.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                    model.entry_id.in_(folders),  # type: ignore[union-attr]
                    model.entry_type == int(EntryType.FOLDER),  # type: ignore[arg-type]
                    model.subject == record.subject,  # type: ignore[arg-type]
                )
            )
        else:
            files.append(entry_id)

        if files:
            await session.execute(
                delete(model).where(
                    model.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                    model.entry_id.in_(files),  # type: ignore[union-attr]
                    model.entry_type == int(EntryType.FILE),  # type: ignore[arg-type]
                    model.subject == record.subject,  # type: ignore[arg-type]
                )
            )
        await session.flush()

    async def delete_share_records(self, session: AsyncSession, records: Iterable[ShareRecord]) -> None:
        """Delete exactly the listed rows, without cascading."""
        model = DbFilesSecurity
        for record in records:
            entry_id = await self._mapper.map_id(session, record.entry_id)
            if entry_id is None:
                continue
            await session.execute(
                delete(model).where(
                    model.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                    model.entry_id == entry_id,  # type: ignore[arg-type]
                    model.entry_type == int(record.entry_type),  # type: ignore[arg-type]
                    model.subject == record.subject,  # type: ignore[arg-type]
                )
            )
        await session.flush()

    async def remove_subject(self, session: AsyncSession, subject: str) -> None:
        """Drop every row granted to or owned by *subject*."""
        model = DbFilesSecurity
        await session.execute(
            delete(model).where(
                model.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                or_(model.subject == subject, model.owner == subject),  # type: ignore[arg-type]
            )
        )
        await session.flush()
        logger.info("Removed share records of subject %s (tenant %s)", subject, self.tenant_id)

    async def remove_entries(
        self, session: AsyncSession, entry_ids: Iterable[str], entry_type: EntryType
    ) -> None:
        """Drop all rows on already-mapped *entry_ids*, used when entries are deleted."""
        ids = list(entry_ids)
        if not ids:
            return
        model = DbFilesSecurity
        await session.execute(
            delete(model).where(
                model.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                model.entry_id.in_(ids),  # type: ignore[union-attr]
                model.entry_type == int(entry_type),  # type: ignore[arg-type]
            )
        )
        await session.flush()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def is_shared(self, session: AsyncSession, entry_id: str, entry_type: EntryType) -> bool:
        mapped = await self._mapper.map_id(session, entry_id)
        if mapped is None:
            return False
        model = DbFilesSecurity
        result = await session.execute(
            select(model.subject)
            .where(
                model.tenant_id == self.tenant_id,
                model.entry_id == mapped,
                model.entry_type == int(entry_type),
            )
            .limit(1)
        )
        return result.first() is not None

    async def get_shares_for_subjects(
        self, session: AsyncSession, subjects: Iterable[str]
    ) -> list[ShareRecord]:
        model = DbFilesSecurity
        result = await session.execute(
            select(model).where(
                model.tenant_id == self.tenant_id,
                model.subject.in_(list(subjects)),  # type: ignore[union-attr]
            )
        )
        return await self._to_records(session, [(row, -1) for row in result.scalars().all()])

    async def get_shares(
        self,
        session: AsyncSession,
        entries: FileEntry | Iterable[FileEntry] | None,
    ) -> list[ShareRecord]:
        """Share records that apply to *entries*, inherited ones included.

        Folder records are collected through the closure table for every
        native folder of the input (the entry itself, or a file's folder);
        file records only when placed directly on an input file.  Ordered
        by ``level`` ascending, then share strength descending.
        """
        files: list[str] = []
        folder_ids: list[int] = []
        for entry in _as_list(entries):
            await self._select_for_share(session, entry, files, None, folder_ids)

        model = DbFilesSecurity
        tree = DbFolderTree
        rows: list[tuple[DbFilesSecurity, int]] = []
        if folder_ids:
            result = await session.execute(
                select(model, tree.level)
                .join(tree, model.entry_id == cast(tree.parent_id, String))  # type: ignore[arg-type]
                .where(
                    model.tenant_id == self.tenant_id,
                    model.entry_type == int(EntryType.FOLDER),
                    tree.folder_id.in_(folder_ids),  # type: ignore[union-attr]
                )
            )
            rows.extend((row, level) for row, level in result.all())

        if files:
            result = await session.execute(
                select(model).where(
                    model.tenant_id == self.tenant_id,
                    model.entry_type == int(EntryType.FILE),
                    model.entry_id.in_(files),  # type: ignore[union-attr]
                )
            )
            rows.extend((row, -1) for row in result.scalars().all())

        return sort_shares(await self._to_records(session, rows))

    async def get_shares_by_levels(
        self,
        session: AsyncSession,
        folder_levels: Mapping[str, int],
        file_ids: Iterable[str] = (),
    ) -> list[ShareRecord]:
        """Resolve shares for a hierarchy the closure table does not hold.

        *folder_levels* maps mapped folder keys to their distance from the
        requested entry; *file_ids* are mapped keys of direct file records.
        Ordered like ``get_shares``.
        """
        model = DbFilesSecurity
        rows: list[tuple[DbFilesSecurity, int]] = []
        if folder_levels:
            result = await session.execute(
                select(model).where(
                    model.tenant_id == self.tenant_id,
                    model.entry_type == int(EntryType.FOLDER),
                    model.entry_id.in_(list(folder_levels)),  # type: ignore[union-attr]
                )
            )
            rows.extend((row, folder_levels[row.entry_id]) for row in result.scalars().all())
        files = list(file_ids)
        if files:
            result = await session.execute(
                select(model).where(
                    model.tenant_id == self.tenant_id,
                    model.entry_type == int(EntryType.FILE),
                    model.entry_id.in_(files),  # type: ignore[union-attr]
                )
            )
            rows.extend((row, -1) for row in result.scalars().all())
        return sort_shares(await self._to_records(session, rows))

    async def get_pure_share_records(
        self,
        session: AsyncSession,
        entries: FileEntry | Iterable[FileEntry] | None,
    ) -> list[ShareRecord]:
        """Records placed exactly on *entries* (or a file's folder), no ancestor walk."""
        files: list[str] = []
        folders: list[str] = []
        for entry in _as_list(entries):
            await self._select_for_share(session, entry, files, folders, None)

        model = DbFilesSecurity
        rows: list[tuple[DbFilesSecurity, int]] = []
        if folders:
            result = await session.execute(
                select(model).where(
                    model.tenant_id == self.tenant_id,
                    model.entry_type == int(EntryType.FOLDER),
                    model.entry_id.in_(folders),  # type: ignore[union-attr]
                )
            )
            rows.extend((row, -1) for row in result.scalars().all())
        if files:
            result = await session.execute(
                select(model).where(
                    model.tenant_id == self.tenant_id,
                    model.entry_type == int(EntryType.FILE),
                    model.entry_id.in_(files),  # type: ignore[union-attr]
                )
            )
            rows.extend((row, -1) for row in result.scalars().all())
        return await self._to_records(session, rows)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _select_for_share(
        self,
        session: AsyncSession,
        entry: FileEntry,
        files: list[str],
        folders: list[str] | None,
        folder_ids: list[int] | None,
    ) -> None:
        if entry.entry_type == EntryType.FILE:
            assert isinstance(entry, File)
            file_id = await self._mapper.map_id(session, entry.id)
            folder_id: str | None = entry.folder_id
            if file_id is not None and file_id not in files:
                files.append(file_id)
        else:
            folder_id = entry.id

        if folder_id is None:
            return
        if folder_ids is not None and is_native_id(folder_id) and int(folder_id) not in folder_ids:
            folder_ids.append(int(folder_id))
        if folders is not None:
            mapped = await self._mapper.map_id(session, folder_id)
            if mapped is not None and mapped not in folders:
                folders.append(mapped)

    async def _to_records(
        self,
        session: AsyncSession,
        rows: list[tuple[DbFilesSecurity, int]],
    ) -> list[ShareRecord]:
        resolved = await self._mapper.resolve_ids(session, {row.entry_id for row, _ in rows})
        seen: set[tuple[str, int, str, int]] = set()
        records: list[ShareRecord] = []
        for row, level in rows:
            key = (row.entry_id, row.entry_type, row.subject, level)
            if key in seen:
                continue
            seen.add(key)
            records.append(
                ShareRecord(
                    tenant_id=row.tenant_id,
                    entry_id=resolved.get(row.entry_id, row.entry_id),
                    entry_type=EntryType(row.entry_type),
                    subject=row.subject,
                    owner=row.owner,
                    share=FileShare(row.security),
                    level=level,
                    timestamp=row.timestamp,
                )
            )
        return records
