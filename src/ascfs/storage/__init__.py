"""Storage layer: configured byte stores per tenant and module."""

from .base import BaseDataStore
from .cache import DataStoreCache
from .config import (
    STORAGE_ROOT_PARAM,
    ConsumerElement,
    DomainElement,
    HandlerElement,
    ModuleElement,
    StorageConfiguration,
    load_storage_config,
)
from .consumers import ConsumerRegistry, DataStoreConsumer
from .disc import DiscDataStore
from .factory import StorageFactory, import_handler
from .notify import CacheNotify, CacheNotifyAction, ConsumerCacheItem, DataStoreCacheItem
from .paths import tenant_path
from .protocol import DataStore
from .quota import QuotaController, TenantQuotaController
from .s3 import S3DataStore
from .settings import StorageSettings, StorageSettingsListener, StorageSettingsService

__all__ = [
    "STORAGE_ROOT_PARAM",
    "BaseDataStore",
    "CacheNotify",
    "CacheNotifyAction",
    "ConsumerCacheItem",
    "ConsumerElement",
    "ConsumerRegistry",
    "DataStore",
    "DataStoreCache",
    "DataStoreCacheItem",
    "DataStoreConsumer",
    "DiscDataStore",
    "DomainElement",
    "HandlerElement",
    "ModuleElement",
    "QuotaController",
    "S3DataStore",
    "StorageConfiguration",
    "StorageFactory",
    "StorageSettings",
    "StorageSettingsListener",
    "StorageSettingsService",
    "TenantQuotaController",
    "import_handler",
    "load_storage_config",
    "tenant_path",
]
