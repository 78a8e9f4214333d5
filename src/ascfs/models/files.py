"""Native file rows — one row per file version."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class DbFile(SQLModel, table=True):
    """A single version of a native file.

    ``(id, version)`` is the key; exactly one row per ``id`` carries
    ``current_version=True``.
    """

    __tablename__ = "files_file"

    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    version: int = Field(default=1, primary_key=True, sa_column_kwargs={"autoincrement": False})
    tenant_id: int = Field(index=True)
    folder_id: int = Field(index=True)
    title: str = Field(default="")
    content_length: int = Field(default=0)
    current_version: bool = Field(default=True)
    create_by: str | None = Field(default=None)
    create_on: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    modified_by: str | None = Field(default=None)
    modified_on: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class DbFileIdentity(SQLModel, table=True):
    """Issued file ids.  Rows are never deleted, so an id is never reused."""

    __tablename__ = "files_file_id"

    id: int | None = Field(default=None, primary_key=True)
    tenant_id: int = Field(index=True)
