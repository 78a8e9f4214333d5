"""Tests for unit_of_work and its transaction hooks."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ascfs.core.uow import after_commit, after_rollback, unit_of_work
from ascfs.models.storage import DbTenantQuota

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def _recorder(events: list[str], name: str):
    async def hook() -> None:
        events.append(name)

    return hook


class TestUnitOfWork:
    async def test_commits(self, session_factory: async_sessionmaker[AsyncSession]):
        async with unit_of_work(session_factory) as session:
            session.add(DbTenantQuota(tenant_id=7, max_total_size=10))

        async with unit_of_work(session_factory) as session:
            row = await session.get(DbTenantQuota, 7)
            assert row is not None
            assert row.max_total_size == 10

    async def test_rolls_back_and_reraises(self, session_factory: async_sessionmaker[AsyncSession]):
        with pytest.raises(ValueError):
            async with unit_of_work(session_factory) as session:
                session.add(DbTenantQuota(tenant_id=7))
                await session.flush()
                raise ValueError("boom")

        async with unit_of_work(session_factory) as session:
            assert await session.get(DbTenantQuota, 7) is None


class TestHooks:
    async def test_commit_hooks_run_in_order(self, session_factory: async_sessionmaker[AsyncSession]):
        events: list[str] = []
        async with unit_of_work(session_factory) as session:
            after_commit(session, _recorder(events, "first"))
            after_commit(session, _recorder(events, "second"))
            after_rollback(session, _recorder(events, "undo"))
            assert events == []

        assert events == ["first", "second"]

    async def test_rollback_hooks_only_on_failure(self, session_factory: async_sessionmaker[AsyncSession]):
        events: list[str] = []
        with pytest.raises(RuntimeError):
            async with unit_of_work(session_factory) as session:
                after_commit(session, _recorder(events, "done"))
                after_rollback(session, _recorder(events, "undo"))
                raise RuntimeError("abort")

        assert events == ["undo"]

    async def test_failing_hook_is_logged(
        self, session_factory: async_sessionmaker[AsyncSession], caplog: pytest.LogCaptureFixture
    ):
        events: list[str] = []

        async def broken() -> None:
            raise OSError("disk gone")

        async with unit_of_work(session_factory) as session:
            after_commit(session, broken)
            after_commit(session, _recorder(events, "after"))

        assert events == ["after"]
        assert "Transaction hook" in caplog.text
        assert "disk gone" in caplog.text
