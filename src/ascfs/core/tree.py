"""FolderTreeService — the materialized folder closure table.

Every native folder ``F`` has one row ``(F, F, 0)`` and one row
``(A, F, d)`` for each ancestor ``A`` at distance ``d``.  All methods
flush but never commit; multi-statement rewrites rely on the caller's
unit of work for atomicity.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import and_, delete, insert
from sqlmodel import select

from ascfs.exceptions import InvalidOperationError
from ascfs.models.folders import DbFolderTree

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession


class FolderTreeService:
    """Ancestor/descendant queries and subtree rewrites."""

    def __init__(self, tree_model: type[DbFolderTree] = DbFolderTree) -> None:
        self._tree_model = tree_model

    async def add_folder(self, session: AsyncSession, folder_id: int, parent_id: int) -> None:
        """Insert closure rows for a newly created folder."""
        model = self._tree_model
        rows = [{"parent_id": folder_id, "folder_id": folder_id, "level": 0}]
        if parent_id:
            result = await session.execute(
                select(model.parent_id, model.level).where(model.folder_id == parent_id)
            )
            rows.extend(
                {"parent_id": ancestor, "folder_id": folder_id, "level": level + 1}
                for ancestor, level in result.all()
            )
        await session.execute(insert(model), rows)
        await session.flush()

    async def get_descendants(self, session: AsyncSession, parent_ids: Iterable[int]) -> set[int]:
        """Every folder below any of *parent_ids*, the parents included."""
        ids = list(parent_ids)
        if not ids:
            return set()
        model = self._tree_model
        result = await session.execute(
            select(model.folder_id).where(model.parent_id.in_(ids))  # type: ignore[union-attr]
        )
        return {row[0] for row in result.all()}

    async def get_subtree_levels(self, session: AsyncSession, folder_id: int) -> dict[int, int]:
        """``{descendant: depth below folder_id}``, the folder itself at depth 0."""
        model = self._tree_model
        result = await session.execute(
            select(model.folder_id, model.level).where(model.parent_id == folder_id)
        )
        return {fid: level for fid, level in result.all()}

    async def get_ancestor_chain(self, session: AsyncSession, folder_id: int) -> list[int]:
        """Ancestors of *folder_id* ordered root first, ending with the folder."""
        model = self._tree_model
        result = await session.execute(
            select(model.parent_id)
            .where(model.folder_id == folder_id)
            .order_by(model.level.desc())  # type: ignore[union-attr]
        )
        return [row[0] for row in result.all()]

    async def get_level(self, session: AsyncSession, parent_id: int, folder_id: int) -> int | None:
        """Distance from *parent_id* down to *folder_id*, or None if unrelated."""
        model = self._tree_model
        result = await session.execute(
            select(model.level).where(
                model.parent_id == parent_id,
                model.folder_id == folder_id,
            )
        )
        row = result.first()
        return row[0] if row else None

    async def move_subtree(self, session: AsyncSession, folder_id: int, new_parent_id: int) -> None:
        """Re-hang the subtree rooted at *folder_id* under *new_parent_id*.

        Rows inside the subtree are kept; rows linking it to the old
        ancestors are deleted and rows to the new ancestor chain inserted.
        """
        subtree = await self.get_subtree_levels(session, folder_id)
        if new_parent_id in subtree:
            raise InvalidOperationError(
                f"Cannot move folder {folder_id} into its own subtree ({new_parent_id})"
            )

        model = self._tree_model
        members = list(subtree)
        await session.execute(
            delete(model).where(
                and_(
                    model.folder_id.in_(members),  # type: ignore[union-attr]
                    model.parent_id.not_in(members),  # type: ignore[union-attr]
                )
            )
        )

        if new_parent_id:
            result = await session.execute(
                select(model.parent_id, model.level).where(model.folder_id == new_parent_id)
            )
            ancestors = result.all()
            rows = [
                {"parent_id": ancestor, "folder_id": member, "level": level + depth + 1}
                for ancestor, level in ancestors
                for member, depth in subtree.items()
            ]
            if rows:
                await session.execute(insert(model), rows)
        await session.flush()

    async def delete_subtree(self, session: AsyncSession, folder_id: int) -> set[int]:
        """Delete every closure row of the subtree; returns the removed folder ids."""
        members = await self.get_descendants(session, [folder_id])
        if not members:
            return set()
        model = self._tree_model
        await session.execute(
            delete(model).where(model.folder_id.in_(list(members)))  # type: ignore[union-attr]
        )
        await session.flush()
        return members
