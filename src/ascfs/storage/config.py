"""Static storage configuration: handlers, modules, domains and consumers.

Loaded once at startup from YAML::

    handlers:
      - name: disc
        type: ascfs.storage.disc.DiscDataStore
        properties:
          $STORAGE_ROOT: /var/www/data
    modules:
      - name: files
        type: disc
        path: $STORAGE_ROOT/Products/Files
        domains:
          - name: files_temp
            path: $STORAGE_ROOT/Products/Files/temp
    consumers:
      - name: s3
        type: ascfs.storage.s3.S3DataStore
        required: [bucket, access_key, secret_key]
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from ascfs.exceptions import ConfigurationError

STORAGE_ROOT_PARAM = "$STORAGE_ROOT"


class HandlerElement(BaseModel):
    name: str
    type: str
    properties: dict[str, str] = Field(default_factory=dict)


class DomainElement(BaseModel):
    name: str
    type: str = "disc"
    path: str = ""
    virtual_path: str = ""
    visible: bool = True
    public: bool = False
    count: bool = True
    expires: int | None = None


class ModuleElement(BaseModel):
    """One logical storage module (``files``, ``mail``, ``logo`` ...).

    ``count=False`` exempts the module from quota accounting;
    ``disable_migrate=True`` pins it to the configured handler even when
    the tenant selected a custom consumer.
    """

    name: str
    type: str = "disc"
    path: str = ""
    virtual_path: str = ""
    visible: bool = True
    count: bool = True
    disable_migrate: bool = False
    public: bool = False
    append_tenant_id: bool = True
    domains: list[DomainElement] = Field(default_factory=list)

    def get_domain(self, name: str) -> DomainElement | None:
        for domain in self.domains:
            if domain.name.lower() == name.lower():
                return domain
        return None


class ConsumerElement(BaseModel):
    """A named, externally configured store binding.

    ``required`` lists the property keys that must be non-empty for the
    consumer to count as fully configured.
    """

    name: str
    type: str
    properties: dict[str, str] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class StorageConfiguration(BaseModel):
    handlers: list[HandlerElement] = Field(default_factory=list)
    modules: list[ModuleElement] = Field(default_factory=list)
    consumers: list[ConsumerElement] = Field(default_factory=list)

    def get_handler(self, name: str) -> HandlerElement | None:
        for handler in self.handlers:
            if handler.name.lower() == name.lower():
                return handler
        return None

    def get_module_element(self, name: str) -> ModuleElement | None:
        for module in self.modules:
            if module.name.lower() == name.lower():
                return module
        return None

    def get_module_list(self, except_disabled_migration: bool = False) -> list[str]:
        """Names of visible modules, optionally skipping migration-pinned ones."""
        return [
            m.name
            for m in self.modules
            if m.visible and not (except_disabled_migration and m.disable_migrate)
        ]

    def get_domain_list(self, module: str) -> list[str]:
        element = self.get_module_element(module)
        if element is None:
            return []
        return [d.name for d in element.domains if d.visible]


def load_storage_config(path: str | Path) -> StorageConfiguration:
    """Parse the YAML module configuration at *path*.

    Any failure is a deployment error: the storage layer cannot run
    without it.
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigurationError(f"Storage configuration not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse storage configuration {config_path}: {e}") from e
    try:
        return StorageConfiguration(**raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid storage configuration {config_path}: {e}") from e
