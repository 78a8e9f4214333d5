"""Share records and third-party id mappings."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class DbFilesSecurity(SQLModel, table=True):
    """One access-control entry.

    ``entry_id`` holds the mapped id: the native integer id as text, or
    the hash of a provider id.  A ``FileShare.NONE`` grant is never stored.
    """

    __tablename__ = "files_security"

    tenant_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    entry_id: str = Field(primary_key=True)
    entry_type: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    subject: str = Field(primary_key=True)
    owner: str = Field(default="", index=True)
    security: int = Field(default=0)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class DbThirdpartyIdMapping(SQLModel, table=True):
    """Maps a long provider id to its fixed-width hash."""

    __tablename__ = "files_thirdparty_id_mapping"

    hash_id: str = Field(primary_key=True)
    tenant_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    id: str = Field(index=True)
