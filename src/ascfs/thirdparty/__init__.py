"""Provider-backed storage: linked accounts, id selectors and their DAOs."""

from .crypto import InstanceCrypto
from .dao import (
    ErrorItem,
    ThirdPartyDaoBase,
    ThirdPartyFileDao,
    ThirdPartyFolderDao,
    ThirdPartySecurityDao,
    ThirdPartyTagDao,
)
from .provider import AuthData, ProviderAccountDao, ProviderInfo, ProviderSession, RemoteItem
from .selector import (
    PROVIDER_KINDS,
    ProviderIdInfo,
    ProviderKind,
    RegexDaoSelector,
    enabled_kinds,
    kind_for_provider,
)

__all__ = [
    "PROVIDER_KINDS",
    "AuthData",
    "ErrorItem",
    "InstanceCrypto",
    "ProviderAccountDao",
    "ProviderIdInfo",
    "ProviderInfo",
    "ProviderKind",
    "ProviderSession",
    "RegexDaoSelector",
    "RemoteItem",
    "ThirdPartyDaoBase",
    "ThirdPartyFileDao",
    "ThirdPartyFolderDao",
    "ThirdPartySecurityDao",
    "ThirdPartyTagDao",
    "enabled_kinds",
    "kind_for_provider",
]
