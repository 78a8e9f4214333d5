"""SQLModel database models for ascfs."""

from ascfs.models.accounts import DbThirdpartyAccount
from ascfs.models.files import DbFile, DbFileIdentity
from ascfs.models.folders import DbFolder, DbFolderTree
from ascfs.models.security import DbFilesSecurity, DbThirdpartyIdMapping
from ascfs.models.storage import DbStorageSettings, DbTenantQuota, DbTenantQuotaRow
from ascfs.models.tags import DbFilesTag, DbFilesTagLink

__all__ = [
    "DbFile",
    "DbFileIdentity",
    "DbFilesSecurity",
    "DbFilesTag",
    "DbFilesTagLink",
    "DbFolder",
    "DbFolderTree",
    "DbStorageSettings",
    "DbTenantQuota",
    "DbTenantQuotaRow",
    "DbThirdpartyAccount",
    "DbThirdpartyIdMapping",
]
