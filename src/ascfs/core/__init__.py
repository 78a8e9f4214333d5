"""Core layer: entry types, id mapping, the folder closure table and native DAOs."""

from .file_dao import FileDao, original_content_path
from .folder_dao import FolderDao
from .mapping import IdentityMapper, is_native_id
from .protocol import SupportsFiles, SupportsFolders, SupportsShares, SupportsTags
from .security_dao import SecurityDao, sort_shares
from .tag_dao import TagDao
from .titles import get_available_title, increment_title
from .tree import FolderTreeService
from .types import (
    EntryType,
    File,
    FileEntry,
    FileShare,
    Folder,
    FolderType,
    ShareRecord,
    Tag,
    TagType,
)
from .uow import unit_of_work

__all__ = [
    "EntryType",
    "File",
    "FileDao",
    "FileEntry",
    "FileShare",
    "Folder",
    "FolderDao",
    "FolderTreeService",
    "FolderType",
    "IdentityMapper",
    "SecurityDao",
    "ShareRecord",
    "SupportsFiles",
    "SupportsFolders",
    "SupportsShares",
    "SupportsTags",
    "Tag",
    "TagDao",
    "TagType",
    "get_available_title",
    "increment_title",
    "is_native_id",
    "original_content_path",
    "sort_shares",
    "unit_of_work",
]
