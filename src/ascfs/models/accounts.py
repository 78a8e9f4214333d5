"""Third-party provider links."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class DbThirdpartyAccount(SQLModel, table=True):
    """A connected provider account.

    ``password`` and ``token`` are stored encrypted; see
    ``ascfs.thirdparty.crypto.InstanceCrypto``.
    """

    __tablename__ = "files_thirdparty_account"

    id: int | None = Field(default=None, primary_key=True)
    tenant_id: int = Field(index=True)
    provider: str = Field(default="")
    customer_title: str = Field(default="")
    user_id: str = Field(default="", index=True)
    folder_type: int = Field(default=0)
    url: str | None = Field(default=None)
    user_name: str | None = Field(default=None)
    password: str | None = Field(default=None)
    token: str | None = Field(default=None)
    create_on: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
