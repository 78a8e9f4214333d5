"""Tenant quota enforcement for store writes."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import func
from sqlmodel import select

from ascfs.core.dialect import upsert
from ascfs.core.uow import unit_of_work
from ascfs.exceptions import QuotaExceededError
from ascfs.models.storage import DbTenantQuota, DbTenantQuotaRow

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@runtime_checkable
class QuotaController(Protocol):
    """Usage bookkeeping behind a store.

    ``session`` is optional on all methods: when given, reads and row
    changes go through it and commit or roll back with the caller's
    transaction.
    """

    async def quota_used_check(self, size: int, *, session: AsyncSession | None = None) -> None:
        """Raise ``QuotaExceededError`` if *size* more bytes would not fit."""
        ...

    async def quota_used_add(
        self,
        module: str,
        domain: str,
        size: int,
        quota_check: bool = True,
        *,
        session: AsyncSession | None = None,
    ) -> None: ...

    async def quota_used_delete(
        self, module: str, domain: str, size: int, *, session: AsyncSession | None = None
    ) -> None: ...


def quota_row_path(module: str, domain: str) -> str:
    return f"/{module}/{domain}"


class TenantQuotaController:
    """Tracks bytes used by one tenant against its ``tenants_quota`` limits.

    Usage is the sum of the tenant's ``tenants_quotarow`` counters, read
    through the same session that changes them, so a caller's pending
    writes are included and a rollback leaves nothing behind.
    """

    def __init__(self, tenant_id: int, session_factory: Callable[..., AsyncSession]) -> None:
        self.tenant_id = tenant_id
        self._session_factory = session_factory
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def _use(self, session: AsyncSession | None) -> AsyncGenerator[AsyncSession]:
        if session is not None:
            yield session
            return
        async with unit_of_work(self._session_factory) as own:
            yield own

    async def current_size(self, *, session: AsyncSession | None = None) -> int:
        async with self._use(session) as s:
            result = await s.execute(
                select(func.coalesce(func.sum(DbTenantQuotaRow.counter), 0)).where(
                    DbTenantQuotaRow.tenant_id == self.tenant_id
                )
            )
            return int(result.scalar_one())

    async def quota_used_check(self, size: int, *, session: AsyncSession | None = None) -> None:
        async with self._use(session) as s:
            quota = await s.get(DbTenantQuota, self.tenant_id)
            if quota is None:
                return
            if quota.max_file_size is not None and size > quota.max_file_size:
                raise QuotaExceededError(
                    f"Exceeds the maximum file size ({size} > {quota.max_file_size} bytes)"
                )
            if (
                quota.max_total_size is not None
                and await self.current_size(session=s) + size > quota.max_total_size
            ):
                raise QuotaExceededError("Exceeded maximum amount of disk quota")

    async def quota_used_add(
        self,
        module: str,
        domain: str,
        size: int,
        quota_check: bool = True,
        *,
        session: AsyncSession | None = None,
    ) -> None:
        size = abs(size)
        async with self._lock, self._use(session) as s:
            if quota_check:
                await self.quota_used_check(size, session=s)
            await self._change_row(s, module, domain, size)

    async def quota_used_delete(
        self, module: str, domain: str, size: int, *, session: AsyncSession | None = None
    ) -> None:
        async with self._lock, self._use(session) as s:
            await self._change_row(s, module, domain, -abs(size))

    async def _change_row(self, session: AsyncSession, module: str, domain: str, delta: int) -> None:
        path = quota_row_path(module, domain)
        # column select: the identity map may hold a row the upsert below made stale
        result = await session.execute(
            select(DbTenantQuotaRow.counter).where(
                DbTenantQuotaRow.tenant_id == self.tenant_id,
                DbTenantQuotaRow.path == path,
            )
        )
        current = result.scalar_one_or_none() or 0
        counter = max(0, current + delta)
        await upsert(
            session,
            DbTenantQuotaRow,
            values={"tenant_id": self.tenant_id, "path": path, "counter": counter},
            conflict_keys=["tenant_id", "path"],
        )
        await session.flush()
        logger.debug("Quota row %s for tenant %s -> %s", path, self.tenant_id, counter)
