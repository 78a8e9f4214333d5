"""IdentityMapper — provider ids to fixed-width keys and back."""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, or_
from sqlmodel import select

from ascfs.models.security import DbThirdpartyIdMapping

from .dialect import upsert

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def is_native_id(entry_id: object) -> bool:
    """True for native entries, whose ids are plain non-negative integers."""
    if isinstance(entry_id, int):
        return entry_id >= 0
    return isinstance(entry_id, str) and entry_id.isdigit()


class IdentityMapper:
    """Translates provider ids into short keys stored in security/tag tables.

    Native ids pass through unchanged.  Ids carrying one of the
    configured provider prefixes hash deterministically, so they need no
    stored row to be mapped; the row is only written (once) so that the
    hash can be resolved back to the original id later.
    """

    def __init__(self, tenant_id: int, thirdparty_prefixes: Iterable[str] = ()) -> None:
        self.tenant_id = tenant_id
        self._prefixes = tuple(f"{p}-" for p in thirdparty_prefixes)

    @staticmethod
    def hash_id(raw_id: str) -> str:
        """Stable lower-case hex digest of *raw_id*."""
        return hashlib.md5(raw_id.encode("utf-8")).hexdigest()

    def is_thirdparty(self, raw_id: str) -> bool:
        return bool(self._prefixes) and raw_id.startswith(self._prefixes)

    async def map_id(
        self,
        session: AsyncSession,
        raw_id: object,
        save_if_absent: bool = False,
    ) -> str | None:
        """Return the canonical key for *raw_id*.

        ``None`` means the id is unmapped; callers treat that as "no rows
        can reference it", not as an error.
        """
        if raw_id is None:
            return None
        raw = str(raw_id)
        if is_native_id(raw):
            return raw

        if self.is_thirdparty(raw):
            hashed = self.hash_id(raw)
            if save_if_absent:
                await self._save(session, raw, hashed)
            return hashed

        model = DbThirdpartyIdMapping
        result = await session.execute(
            select(model.hash_id).where(
                model.tenant_id == self.tenant_id,
                model.hash_id == raw,
            )
        )
        if result.first() is not None:
            return raw

        result = await session.execute(
            select(model.hash_id).where(
                model.tenant_id == self.tenant_id,
                model.id == raw,
            )
        )
        row = result.first()
        if row is not None:
            return row[0]

        if not save_if_absent:
            return None
        hashed = self.hash_id(raw)
        await self._save(session, raw, hashed)
        return hashed

    async def resolve_id(self, session: AsyncSession, canonical_id: str | None) -> str | None:
        """Reverse of ``map_id``: the original id behind *canonical_id*."""
        if canonical_id is None:
            return None
        if is_native_id(canonical_id):
            return canonical_id
        model = DbThirdpartyIdMapping
        result = await session.execute(
            select(model.id).where(
                model.tenant_id == self.tenant_id,
                model.hash_id == canonical_id,
            )
        )
        row = result.first()
        return row[0] if row else None

    async def resolve_ids(self, session: AsyncSession, canonical_ids: Iterable[str]) -> dict[str, str]:
        """Bulk ``resolve_id``; unknown keys are left out of the result."""
        ids = list(canonical_ids)
        native = {c: c for c in ids if is_native_id(c)}
        hashed = [c for c in ids if not is_native_id(c)]
        if not hashed:
            return native
        model = DbThirdpartyIdMapping
        result = await session.execute(
            select(model.hash_id, model.id).where(
                model.tenant_id == self.tenant_id,
                model.hash_id.in_(hashed),  # type: ignore[union-attr]
            )
        )
        native.update({h: i for h, i in result.all()})
        return native

    async def list_prefix(
        self, session: AsyncSession, root_id: str, separator: str = "-"
    ) -> list[str]:
        """Hash keys of *root_id* and of every mapped id below it.

        Ids below the root continue it with *separator*: ``-`` under a
        provider link, ``|`` under a provider folder.
        """
        model = DbThirdpartyIdMapping
        pattern = _escape_like(root_id + separator) + "%"
        result = await session.execute(
            select(model.hash_id).where(
                model.tenant_id == self.tenant_id,
                or_(
                    model.id == root_id,
                    model.id.like(pattern, escape="\\"),  # type: ignore[union-attr]
                ),
            )
        )
        return [row[0] for row in result.all()]

    async def remove_prefix(self, session: AsyncSession, root_id: str, separator: str = "-") -> int:
        """Drop the mappings of *root_id* and everything below it."""
        hashes = await self.list_prefix(session, root_id, separator)
        if not hashes:
            return 0
        model = DbThirdpartyIdMapping
        await session.execute(
            delete(model).where(
                model.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                model.hash_id.in_(hashes),  # type: ignore[union-attr]
            )
        )
        await session.flush()
        return len(hashes)

    async def _save(self, session: AsyncSession, raw_id: str, hashed: str) -> None:
        await upsert(
            session,
            DbThirdpartyIdMapping,
            values={"hash_id": hashed, "tenant_id": self.tenant_id, "id": raw_id},
            conflict_keys=["hash_id", "tenant_id"],
            update_keys=[],
        )
        logger.debug("Mapped %s -> %s (tenant %s)", raw_id, hashed, self.tenant_id)
