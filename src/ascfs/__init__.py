"""ascfs: multi-tenant file storage core.

Native and provider-backed files behind one DAO surface, closure-table
share resolution, and cached per-tenant storage handlers with quotas.
"""

__version__ = "0.1.0"

from ascfs._ascfs import Ascfs
from ascfs.config import AscfsSettings, get_settings
from ascfs.core.factory import DaoFactory
from ascfs.core.types import (
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
from ascfs.exceptions import (
    AscfsError,
    ConfigurationError,
    EntryNotFoundError,
    InvalidEntryIdError,
    InvalidOperationError,
    ProviderAccessError,
    ProviderTransportError,
    QuotaExceededError,
    StorageError,
    UnknownModuleError,
)
from ascfs.storage.factory import StorageFactory
from ascfs.storage.protocol import DataStore
from ascfs.thirdparty.provider import AuthData, ProviderSession, RemoteItem

__all__ = [
    "Ascfs",
    "AscfsError",
    "AscfsSettings",
    "AuthData",
    "ConfigurationError",
    "DaoFactory",
    "DataStore",
    "EntryNotFoundError",
    "EntryType",
    "File",
    "FileEntry",
    "FileShare",
    "Folder",
    "FolderType",
    "InvalidEntryIdError",
    "InvalidOperationError",
    "ProviderAccessError",
    "ProviderSession",
    "ProviderTransportError",
    "QuotaExceededError",
    "RemoteItem",
    "ShareRecord",
    "StorageError",
    "StorageFactory",
    "Tag",
    "TagType",
    "UnknownModuleError",
    "__version__",
    "get_settings",
]
