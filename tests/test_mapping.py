"""Tests for IdentityMapper — provider ids to canonical keys and back."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import select

from ascfs.core.mapping import IdentityMapper, is_native_id
from ascfs.models.security import DbThirdpartyIdMapping

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def _rows(session: AsyncSession) -> list[DbThirdpartyIdMapping]:
    result = await session.execute(select(DbThirdpartyIdMapping))
    return list(result.scalars().all())


class TestIsNativeId:
    def test_digits(self):
        assert is_native_id("42")
        assert is_native_id(0)

    def test_not_native(self):
        assert not is_native_id("box-1")
        assert not is_native_id("")
        assert not is_native_id(-3)
        assert not is_native_id(None)


class TestHash:
    def test_md5_hex(self):
        hashed = IdentityMapper.hash_id("box-1-a|b")
        assert len(hashed) == 32
        assert hashed == hashed.lower()
        assert "-" not in hashed

    def test_deterministic(self):
        assert IdentityMapper.hash_id("x") == IdentityMapper.hash_id("x")


class TestMapId:
    async def test_native_passthrough(self, mapper: IdentityMapper, async_session: AsyncSession):
        assert await mapper.map_id(async_session, "17") == "17"
        assert await mapper.map_id(async_session, 17) == "17"
        assert await _rows(async_session) == []

    async def test_none(self, mapper: IdentityMapper, async_session: AsyncSession):
        assert await mapper.map_id(async_session, None) is None

    async def test_provider_id_hashes_without_row(
        self, mapper: IdentityMapper, async_session: AsyncSession
    ):
        mapped = await mapper.map_id(async_session, "box-3-docs")
        assert mapped == IdentityMapper.hash_id("box-3-docs")
        assert await _rows(async_session) == []

    async def test_save_if_absent_is_idempotent(
        self, mapper: IdentityMapper, async_session: AsyncSession
    ):
        first = await mapper.map_id(async_session, "box-3-docs", save_if_absent=True)
        second = await mapper.map_id(async_session, "box-3-docs", save_if_absent=True)
        assert first == second
        assert await mapper.map_id(async_session, "box-3-docs") == first
        rows = await _rows(async_session)
        assert len(rows) == 1
        assert rows[0].id == "box-3-docs"

    async def test_unknown_shape_without_save(self, mapper: IdentityMapper, async_session: AsyncSession):
        assert await mapper.map_id(async_session, "mystery-id") is None

    async def test_unknown_shape_saved_then_found(
        self, mapper: IdentityMapper, async_session: AsyncSession
    ):
        hashed = await mapper.map_id(async_session, "mystery-id", save_if_absent=True)
        assert hashed == IdentityMapper.hash_id("mystery-id")
        assert await mapper.map_id(async_session, "mystery-id") == hashed

    async def test_known_hash_maps_to_itself(
        self, mapper: IdentityMapper, async_session: AsyncSession
    ):
        hashed = await mapper.map_id(async_session, "box-3-docs", save_if_absent=True)
        assert await mapper.map_id(async_session, hashed) == hashed

    async def test_tenant_isolation(self, async_session: AsyncSession):
        a = IdentityMapper(1, ["box"])
        b = IdentityMapper(2, ["box"])
        await a.map_id(async_session, "other-x", save_if_absent=True)
        assert await b.map_id(async_session, "other-x") is None


class TestResolve:
    async def test_round_trip(self, mapper: IdentityMapper, async_session: AsyncSession):
        hashed = await mapper.map_id(async_session, "drive-5-a|b", save_if_absent=True)
        assert await mapper.resolve_id(async_session, hashed) == "drive-5-a|b"

    async def test_native(self, mapper: IdentityMapper, async_session: AsyncSession):
        assert await mapper.resolve_id(async_session, "9") == "9"

    async def test_unknown(self, mapper: IdentityMapper, async_session: AsyncSession):
        assert await mapper.resolve_id(async_session, "f" * 32) is None
        assert await mapper.resolve_id(async_session, None) is None

    async def test_bulk(self, mapper: IdentityMapper, async_session: AsyncSession):
        hashed = await mapper.map_id(async_session, "box-1-a", save_if_absent=True)
        resolved = await mapper.resolve_ids(async_session, ["3", hashed, "0" * 32 + "x"])
        assert resolved == {"3": "3", hashed: "box-1-a"}


class TestPrefix:
    async def test_remove_prefix_is_link_scoped(
        self, mapper: IdentityMapper, async_session: AsyncSession
    ):
        for raw in ("box-1", "box-1-a", "box-1-a|b", "box-10-c"):
            await mapper.map_id(async_session, raw, save_if_absent=True)

        removed = await mapper.remove_prefix(async_session, "box-1")
        assert removed == 3
        assert [r.id for r in await _rows(async_session)] == ["box-10-c"]

    async def test_folder_separator(self, mapper: IdentityMapper, async_session: AsyncSession):
        for raw in ("box-1-a", "box-1-a|b", "box-1-ab"):
            await mapper.map_id(async_session, raw, save_if_absent=True)

        hashes = await mapper.list_prefix(async_session, "box-1-a", "|")
        assert sorted(hashes) == sorted(
            [IdentityMapper.hash_id("box-1-a"), IdentityMapper.hash_id("box-1-a|b")]
        )

    async def test_like_wildcards_escaped(self, mapper: IdentityMapper, async_session: AsyncSession):
        await mapper.map_id(async_session, "box-1-a_b|c", save_if_absent=True)
        await mapper.map_id(async_session, "box-1-axb|c", save_if_absent=True)
        hashes = await mapper.list_prefix(async_session, "box-1-a_b", "|")
        assert hashes == [IdentityMapper.hash_id("box-1-a_b|c")]
