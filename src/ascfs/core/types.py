"""Entry, share and tag value types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum


class EntryType(IntEnum):
    """Kind of entry a share, tag or mapping row refers to."""

    FOLDER = 1
    FILE = 2


class FileShare(IntEnum):
    """Access level granted by a share record.

    Values are ordered by strength; comparing two members compares
    how permissive they are.  ``NONE`` is never stored.
    """

    NONE = 0
    RESTRICT = 1
    READ = 2
    COMMENT = 3
    REVIEW = 4
    FILL_FORMS = 5
    READ_WRITE = 6


class FolderType(IntEnum):
    """Root section a folder hierarchy belongs to."""

    DEFAULT = 0
    COMMON = 1
    BUNCH = 2
    TRASH = 3
    USER = 5
    SHARE = 6
    RECENT = 7
    FAVORITES = 8
    TEMPLATES = 9


class TagType(IntEnum):
    NEW = 1
    FAVORITE = 2
    SYSTEM = 4
    LOCKED = 8
    RECENT = 16
    TEMPLATE = 32


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass
class FileEntry(ABC):
    """Fields shared by files and folders, native or provider-backed.

    ``id`` is the native integer id rendered as a string, or a composite
    provider id ``<prefix>-<linkId>[-<path>]``.  ``error`` is set on
    synthetic entries standing in for a provider item that failed to load.
    """

    id: str
    title: str
    tenant_id: int = 0
    created_by: str | None = None
    created_on: datetime | None = None
    modified_by: str | None = None
    modified_on: datetime | None = None
    root_folder_id: str | None = None
    root_folder_type: FolderType = FolderType.DEFAULT
    provider_id: int | None = None
    provider_key: str | None = None
    shared: bool = False
    error: str | None = None

    @property
    @abstractmethod
    def entry_type(self) -> EntryType: ...

    @property
    def provider_entry(self) -> bool:
        return self.provider_id is not None


@dataclass
class Folder(FileEntry):
    parent_id: str | None = None
    folder_type: FolderType = FolderType.DEFAULT

    @property
    def entry_type(self) -> EntryType:
        return EntryType.FOLDER


@dataclass
class File(FileEntry):
    folder_id: str | None = None
    version: int = 1
    content_length: int = 0

    @property
    def entry_type(self) -> EntryType:
        return EntryType.FILE


# ---------------------------------------------------------------------------
# Shares and tags
# ---------------------------------------------------------------------------


@dataclass
class ShareRecord:
    """Access-control entry.

    ``level`` is filled in by hierarchical queries: the closure distance
    from the shared folder to the requested entry's folder, or ``-1`` for
    a record placed directly on a file.
    """

    tenant_id: int
    entry_id: str
    entry_type: EntryType
    subject: str
    owner: str
    share: FileShare
    level: int = -1
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class Tag:
    name: str
    tag_type: TagType
    owner: str
    entry_id: str | None = None
    entry_type: EntryType | None = None
    count: int = 1
    id: int | None = None
    created_by: str | None = None
    created_on: datetime | None = None
