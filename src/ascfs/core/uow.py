"""Unit of work — one session, one transaction, commit or rollback.

Work outside the database (store content, cache invalidation) attaches to
the transaction with ``after_commit`` / ``after_rollback``; the hooks are
kept in ``session.info`` and run by ``unit_of_work`` once the outcome is
known.  Only the hooks of the actual outcome run.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    Hook = Callable[[], Awaitable[object]]

logger = logging.getLogger(__name__)

_COMMIT_HOOKS = "ascfs.after_commit"
_ROLLBACK_HOOKS = "ascfs.after_rollback"


def after_commit(session: AsyncSession, hook: Hook) -> None:
    """Run *hook* once the transaction of *session* has committed."""
    session.info.setdefault(_COMMIT_HOOKS, []).append(hook)


def after_rollback(session: AsyncSession, hook: Hook) -> None:
    """Run *hook* if the transaction of *session* is rolled back."""
    session.info.setdefault(_ROLLBACK_HOOKS, []).append(hook)


async def _run_hooks(session: AsyncSession, key: str) -> None:
    hooks: list[Hook] = session.info.pop(key, [])
    session.info.pop(_ROLLBACK_HOOKS if key == _COMMIT_HOOKS else _COMMIT_HOOKS, None)
    for hook in hooks:
        try:
            await hook()
        except Exception:
            logger.exception("Transaction hook %r failed", hook)


@asynccontextmanager
async def unit_of_work(
    session_factory: Callable[..., AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Yield a fresh session; commit on success, roll back on any error.

    The yielded session is the transaction boundary: DAO methods that take
    it only flush, so every statement issued through it commits together.
    """
    session = session_factory()
    try:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            await _run_hooks(session, _ROLLBACK_HOOKS)
            raise
        await _run_hooks(session, _COMMIT_HOOKS)
    finally:
        await session.close()
