"""DAO protocols — the surface shared by native and provider-backed DAOs.

``DaoFactory`` hands out either implementation for an entry id; callers
program against these protocols and never need to know which one they
got.  Native DAOs carry extra operations (versions, section roots,
closure-table queries) that are reached through the concrete classes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from .types import EntryType, File, FileEntry, Folder, ShareRecord, Tag, TagType


@runtime_checkable
class SupportsFiles(Protocol):
    async def get_file(self, session: AsyncSession, file_id: str) -> File | None: ...

    async def get_files(self, session: AsyncSession, folder_id: str) -> list[File]: ...

    async def is_exist(self, session: AsyncSession, title: str, folder_id: str) -> bool: ...

    async def get_file_content(self, session: AsyncSession, file_id: str) -> bytes: ...

    async def save_file(self, session: AsyncSession, file: File, data: bytes) -> File: ...

    async def move_file(self, session: AsyncSession, file_id: str, to_folder_id: str) -> str: ...

    async def copy_file(self, session: AsyncSession, file_id: str, to_folder_id: str) -> File: ...

    async def delete_file(self, session: AsyncSession, file_id: str) -> None: ...


@runtime_checkable
class SupportsFolders(Protocol):
    async def get_folder(self, session: AsyncSession, folder_id: str) -> Folder | None: ...

    async def get_folders(self, session: AsyncSession, parent_id: str) -> list[Folder]: ...

    async def get_parent_folders(self, session: AsyncSession, folder_id: str) -> list[Folder]: ...

    async def is_empty(self, session: AsyncSession, folder_id: str) -> bool: ...

    async def save_folder(self, session: AsyncSession, folder: Folder) -> str: ...

    async def move_folder(self, session: AsyncSession, folder_id: str, to_folder_id: str) -> str: ...

    async def delete_folder(self, session: AsyncSession, folder_id: str) -> None: ...


@runtime_checkable
class SupportsTags(Protocol):
    async def save_tags(self, session: AsyncSession, tags: Iterable[Tag]) -> list[Tag]: ...

    async def remove_tags(self, session: AsyncSession, tags: Iterable[Tag]) -> None: ...

    async def get_tags(
        self,
        session: AsyncSession,
        entry_id: str,
        entry_type: EntryType,
        tag_type: TagType | None = None,
    ) -> list[Tag]: ...

    async def get_tags_for_owner(
        self, session: AsyncSession, owner: str, tag_type: TagType | None = None
    ) -> list[Tag]: ...


@runtime_checkable
class SupportsShares(Protocol):
    async def set_share(self, session: AsyncSession, record: ShareRecord) -> None: ...

    async def delete_share_records(self, session: AsyncSession, records: Iterable[ShareRecord]) -> None: ...

    async def remove_subject(self, session: AsyncSession, subject: str) -> None: ...

    async def is_shared(self, session: AsyncSession, entry_id: str, entry_type: EntryType) -> bool: ...

    async def get_shares(
        self, session: AsyncSession, entries: FileEntry | Iterable[FileEntry] | None
    ) -> list[ShareRecord]: ...

    async def get_pure_share_records(
        self, session: AsyncSession, entries: FileEntry | Iterable[FileEntry] | None
    ) -> list[ShareRecord]: ...
