"""Process-level settings, read from ``ASCFS_*`` environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AscfsSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ASCFS_", case_sensitive=False)

    database_url: str = Field(default="sqlite+aiosqlite:///ascfs.db")
    storage_config: str | None = Field(
        default=None, description="Path to the YAML storage module configuration"
    )
    storage_root: str = Field(
        default="./data", description="Value substituted for $STORAGE_ROOT in module paths"
    )
    standalone: bool = False
    crypto_key: str | None = Field(
        default=None, description="Fernet key used for provider credentials"
    )
    thirdparty_enable: str = Field(
        default="box|dropboxv2|google|onedrive|sharepoint|webdav|nextcloud|owncloud|yandex"
    )

    @property
    def thirdparty_providers(self) -> list[str]:
        """Enabled provider keys; ``|`` and ``,`` both separate entries."""
        raw = self.thirdparty_enable.replace(",", "|")
        return [p.strip() for p in raw.split("|") if p.strip()]


@lru_cache
def get_settings() -> AscfsSettings:
    return AscfsSettings()
