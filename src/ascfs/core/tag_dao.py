"""TagDao — tags (new, favorite, recent, ...) linked to entries."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete
from sqlmodel import select

from ascfs.models.tags import DbFilesTag, DbFilesTagLink

from .dialect import upsert
from .types import EntryType, Tag, TagType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from .mapping import IdentityMapper


class TagDao:
    """Tag CRUD keyed by mapped entry ids."""

    def __init__(self, tenant_id: int, mapper: IdentityMapper) -> None:
        self.tenant_id = tenant_id
        self._mapper = mapper

    async def save_tags(self, session: AsyncSession, tags: Iterable[Tag]) -> list[Tag]:
        """Create tag rows as needed and link them to their entries."""
        saved: list[Tag] = []
        for tag in tags:
            if tag.entry_id is None or tag.entry_type is None:
                continue
            tag_id = await self._get_or_create_tag(session, tag)
            entry_id = await self._mapper.map_id(session, tag.entry_id, save_if_absent=True)
            await upsert(
                session,
                DbFilesTagLink,
                values={
                    "tenant_id": self.tenant_id,
                    "tag_id": tag_id,
                    "entry_id": entry_id,
                    "entry_type": int(tag.entry_type),
                    "create_by": tag.created_by or tag.owner,
                    "create_on": datetime.now(UTC),
                    "tag_count": tag.count,
                },
                conflict_keys=["tenant_id", "tag_id", "entry_id", "entry_type"],
                update_keys=["create_on", "tag_count"],
            )
            tag.id = tag_id
            saved.append(tag)
        await session.flush()
        return saved

    async def remove_tags(self, session: AsyncSession, tags: Iterable[Tag]) -> None:
        """Unlink tags from their entries; tags left without links are deleted."""
        for tag in tags:
            tag_id = await self._find_tag(session, tag.name, tag.tag_type, tag.owner)
            if tag_id is None or tag.entry_id is None or tag.entry_type is None:
                continue
            entry_id = await self._mapper.map_id(session, tag.entry_id)
            if entry_id is None:
                continue
            await session.execute(
                delete(DbFilesTagLink).where(
                    DbFilesTagLink.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                    DbFilesTagLink.tag_id == tag_id,  # type: ignore[arg-type]
                    DbFilesTagLink.entry_id == entry_id,  # type: ignore[arg-type]
                    DbFilesTagLink.entry_type == int(tag.entry_type),  # type: ignore[arg-type]
                )
            )
            await self._delete_if_unlinked(session, tag_id)
        await session.flush()

    async def remove_entries(
        self, session: AsyncSession, entry_ids: Iterable[str], entry_type: EntryType
    ) -> None:
        """Drop links of already-mapped *entry_ids*, used when entries are deleted."""
        ids = list(entry_ids)
        if not ids:
            return
        await session.execute(
            delete(DbFilesTagLink).where(
                DbFilesTagLink.tenant_id == self.tenant_id,  # type: ignore[arg-type]
                DbFilesTagLink.entry_id.in_(ids),  # type: ignore[union-attr]
                DbFilesTagLink.entry_type == int(entry_type),  # type: ignore[arg-type]
            )
        )
        await session.flush()

    async def get_tags(
        self,
        session: AsyncSession,
        entry_id: str,
        entry_type: EntryType,
        tag_type: TagType | None = None,
    ) -> list[Tag]:
        mapped = await self._mapper.map_id(session, entry_id)
        if mapped is None:
            return []
        query = (
            select(DbFilesTag, DbFilesTagLink)
            .join(DbFilesTagLink, DbFilesTagLink.tag_id == DbFilesTag.id)  # type: ignore[arg-type]
            .where(
                DbFilesTag.tenant_id == self.tenant_id,
                DbFilesTagLink.tenant_id == self.tenant_id,
                DbFilesTagLink.entry_id == mapped,
                DbFilesTagLink.entry_type == int(entry_type),
            )
        )
        if tag_type is not None:
            query = query.where(DbFilesTag.flag == int(tag_type))
        result = await session.execute(query)
        return [self._to_tag(tag, link, entry_id) for tag, link in result.all()]

    async def get_tags_for_owner(
        self, session: AsyncSession, owner: str, tag_type: TagType | None = None
    ) -> list[Tag]:
        query = (
            select(DbFilesTag, DbFilesTagLink)
            .join(DbFilesTagLink, DbFilesTagLink.tag_id == DbFilesTag.id)  # type: ignore[arg-type]
            .where(
                DbFilesTag.tenant_id == self.tenant_id,
                DbFilesTagLink.tenant_id == self.tenant_id,
                DbFilesTag.owner == owner,
            )
        )
        if tag_type is not None:
            query = query.where(DbFilesTag.flag == int(tag_type))
        result = await session.execute(query)
        rows = result.all()
        resolved = await self._mapper.resolve_ids(session, {link.entry_id for _, link in rows})
        return [
            self._to_tag(tag, link, resolved.get(link.entry_id, link.entry_id))
            for tag, link in rows
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _find_tag(
        self, session: AsyncSession, name: str, tag_type: TagType, owner: str
    ) -> int | None:
        result = await session.execute(
            select(DbFilesTag.id).where(
                DbFilesTag.tenant_id == self.tenant_id,
                DbFilesTag.name == name,
                DbFilesTag.flag == int(tag_type),
                DbFilesTag.owner == owner,
            )
        )
        row = result.first()
        return row[0] if row else None

    async def _get_or_create_tag(self, session: AsyncSession, tag: Tag) -> int:
        tag_id = await self._find_tag(session, tag.name, tag.tag_type, tag.owner)
        if tag_id is not None:
            return tag_id
        row = DbFilesTag(
            tenant_id=self.tenant_id,
            name=tag.name,
            owner=tag.owner,
            flag=int(tag.tag_type),
        )
        session.add(row)
        await session.flush()
        assert row.id is not None
        return row.id

    async def _delete_if_unlinked(self, session: AsyncSession, tag_id: int) -> None:
        result = await session.execute(
            select(DbFilesTagLink.entry_id)
            .where(
                DbFilesTagLink.tenant_id == self.tenant_id,
                DbFilesTagLink.tag_id == tag_id,
            )
            .limit(1)
        )
        if result.first() is None:
            await session.execute(
                delete(DbFilesTag).where(DbFilesTag.id == tag_id)  # type: ignore[arg-type]
            )

    @staticmethod
    def _to_tag(tag: DbFilesTag, link: DbFilesTagLink, entry_id: str) -> Tag:
        return Tag(
            id=tag.id,
            name=tag.name,
            tag_type=TagType(tag.flag),
            owner=tag.owner,
            entry_id=entry_id,
            entry_type=EntryType(link.entry_type),
            count=link.tag_count,
            created_by=link.create_by,
            created_on=link.create_on,
        )
