"""Native folder rows and the folder closure table."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class DbFolder(SQLModel, table=True):
    """A native folder.  ``parent_id`` is ``0`` for section roots."""

    __tablename__ = "files_folder"

    id: int | None = Field(default=None, primary_key=True)
    tenant_id: int = Field(index=True)
    parent_id: int = Field(default=0, index=True)
    title: str = Field(default="")
    folder_type: int = Field(default=0)
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


class DbFolderTree(SQLModel, table=True):
    """One closure edge: ``folder_id`` lies ``level`` steps below ``parent_id``.

    Every folder has a ``level == 0`` row pointing at itself.
    """

    __tablename__ = "files_folder_tree"

    parent_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    folder_id: int = Field(
        primary_key=True, index=True, sa_column_kwargs={"autoincrement": False}
    )
    level: int = Field(default=0)
