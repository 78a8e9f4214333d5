"""Custom exception hierarchy for the ascfs storage core."""


class AscfsError(Exception):
    """Base exception for all ascfs errors."""


class InvalidEntryIdError(AscfsError, ValueError):
    """Raised when an entry id does not match any known id shape."""


class EntryNotFoundError(AscfsError):
    """Raised when a native file or folder does not exist."""


class InvalidOperationError(AscfsError, ValueError):
    """Raised on structurally invalid requests (e.g. moving a folder into itself)."""


class ProviderAccessError(AscfsError, PermissionError):
    """Raised when a provider link is missing or not accessible to the caller."""


class ProviderTransportError(AscfsError):
    """Raised by provider sessions on remote API failures (timeouts, 4xx/5xx)."""


class UnknownModuleError(AscfsError, ValueError):
    """Raised when a storage module name is not configured."""


class ConfigurationError(AscfsError, RuntimeError):
    """Raised when the static storage configuration is missing or invalid."""


class QuotaExceededError(AscfsError):
    """Raised when a write would exceed the tenant quota."""


class StorageError(AscfsError):
    """Raised on store I/O failures."""
