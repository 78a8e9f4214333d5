"""Shared fixtures for ascfs tests."""

from __future__ import annotations

import posixpath
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import ascfs.models  # noqa: F401  (registers tables)
from ascfs.core.mapping import IdentityMapper
from ascfs.core.security_dao import SecurityDao
from ascfs.core.tag_dao import TagDao
from ascfs.core.tree import FolderTreeService
from ascfs.exceptions import ProviderTransportError
from ascfs.thirdparty.provider import RemoteItem

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

TENANT = 1
PREFIXES = ("box", "dropbox", "drive", "onedrive", "spoint", "sbox")


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session, rolled back after each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mapper() -> IdentityMapper:
    return IdentityMapper(TENANT, PREFIXES)


@pytest.fixture
def tree() -> FolderTreeService:
    return FolderTreeService()


@pytest.fixture
def security(mapper: IdentityMapper, tree: FolderTreeService) -> SecurityDao:
    return SecurityDao(TENANT, mapper, tree)


@pytest.fixture
def tags(mapper: IdentityMapper) -> TagDao:
    return TagDao(TENANT, mapper)


# ---------------------------------------------------------------------------
# Fake provider
# ---------------------------------------------------------------------------


class FakeProviderSession:
    """In-memory ``ProviderSession``: a dict of paths to folders or bytes.

    Paths listed in ``broken`` raise ``ProviderTransportError`` on any
    access, like an item the remote API refuses to return.
    """

    def __init__(self) -> None:
        self.folders: set[str] = {""}
        self.files: dict[str, bytes] = {}
        self.broken: set[str] = set()
        self.closed = False
        self.modified_on = datetime(2024, 1, 1, tzinfo=UTC)

    def _check(self, path: str) -> None:
        if path in self.broken:
            raise ProviderTransportError(f"remote error on {path!r}")

    def _item(self, path: str) -> RemoteItem:
        if path in self.folders:
            return RemoteItem(path=path, name=posixpath.basename(path), is_folder=True, modified_on=self.modified_on)
        return RemoteItem(
            path=path,
            name=posixpath.basename(path),
            is_folder=False,
            size=len(self.files[path]),
            modified_on=self.modified_on,
        )

    @staticmethod
    def _join(parent: str, title: str) -> str:
        return f"{parent}/{title}" if parent else title

    def _children(self, path: str) -> list[str]:
        everything = sorted(self.folders | set(self.files))
        return [p for p in everything if p and posixpath.dirname(p) == path]

    async def get_item(self, path: str) -> RemoteItem:
        self._check(path)
        if path not in self.folders and path not in self.files:
            raise FileNotFoundError(path)
        return self._item(path)

    async def list_items(self, path: str) -> list[RemoteItem]:
        self._check(path)
        return [self._item(p) for p in self._children(path)]

    async def create_folder(self, parent_path: str, title: str) -> RemoteItem:
        path = self._join(parent_path, title)
        self.folders.add(path)
        return self._item(path)

    async def upload(self, parent_path: str, title: str, data: bytes) -> RemoteItem:
        path = self._join(parent_path, title)
        self.files[path] = data
        return self._item(path)

    async def download(self, path: str) -> bytes:
        self._check(path)
        return self.files[path]

    async def move(self, path: str, to_parent_path: str, title: str) -> RemoteItem:
        target = self._join(to_parent_path, title)
        self._relocate(path, target, keep=False)
        return self._item(target)

    async def copy(self, path: str, to_parent_path: str, title: str) -> RemoteItem:
        target = self._join(to_parent_path, title)
        self._relocate(path, target, keep=True)
        return self._item(target)

    async def rename(self, path: str, title: str) -> RemoteItem:
        target = self._join(posixpath.dirname(path), title)
        self._relocate(path, target, keep=False)
        return self._item(target)

    async def delete(self, path: str) -> None:
        if path not in self.folders and path not in self.files:
            raise FileNotFoundError(path)
        self.files = {p: d for p, d in self.files.items() if p != path and not p.startswith(path + "/")}
        self.folders = {p for p in self.folders if p != path and not p.startswith(path + "/")}

    async def close(self) -> None:
        self.closed = True

    def _relocate(self, source: str, target: str, keep: bool) -> None:
        def _moved(p: str) -> str | None:
            if p == source:
                return target
            if p.startswith(source + "/"):
                return target + p[len(source) :]
            return None

        files = {_moved(p): d for p, d in self.files.items() if _moved(p)}
        folders = {_moved(p) for p in self.folders if _moved(p)}
        if not keep:
            self.files = {p: d for p, d in self.files.items() if _moved(p) is None}
            self.folders = {p for p in self.folders if _moved(p) is None}
        self.files.update(files)  # type: ignore[arg-type]
        self.folders.update(folders)  # type: ignore[arg-type]


@pytest.fixture
def remote() -> FakeProviderSession:
    return FakeProviderSession()
