"""Per-tenant storage settings and quota rows."""

from __future__ import annotations

from sqlmodel import Field, SQLModel


class DbStorageSettings(SQLModel, table=True):
    """Serialized ``StorageSettings`` for one tenant.

    ``props_json`` is ``None`` when no consumer properties are set.
    """

    __tablename__ = "core_storage_settings"

    tenant_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    module: str | None = Field(default=None)
    props_json: str | None = Field(default=None)


class DbTenantQuota(SQLModel, table=True):
    """Quota limits for a tenant.  Missing row means unlimited."""

    __tablename__ = "tenants_quota"

    tenant_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    max_total_size: int | None = Field(default=None)
    max_file_size: int | None = Field(default=None)


class DbTenantQuotaRow(SQLModel, table=True):
    """Bytes used by a tenant under one ``/<module>/<domain>`` path."""

    __tablename__ = "tenants_quotarow"

    tenant_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    path: str = Field(primary_key=True)
    counter: int = Field(default=0)
