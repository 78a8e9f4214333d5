"""Tags and their links to entries."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class DbFilesTag(SQLModel, table=True):
    __tablename__ = "files_tag"

    id: int | None = Field(default=None, primary_key=True)
    tenant_id: int = Field(index=True)
    name: str = Field(default="")
    owner: str = Field(default="")
    flag: int = Field(default=0)


class DbFilesTagLink(SQLModel, table=True):
    __tablename__ = "files_tag_link"

    tenant_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    tag_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    entry_id: str = Field(primary_key=True)
    entry_type: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    create_by: str | None = Field(default=None)
    create_on: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    tag_count: int = Field(default=0)
