"""Tests for ProviderAccountDao — persisted provider links."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlmodel import select

from ascfs.core.types import EntryType, FileShare, FolderType, ShareRecord, Tag, TagType
from ascfs.exceptions import ProviderAccessError, ProviderTransportError
from ascfs.models.accounts import DbThirdpartyAccount
from ascfs.models.security import DbFilesSecurity, DbThirdpartyIdMapping
from ascfs.models.tags import DbFilesTagLink
from ascfs.thirdparty.crypto import InstanceCrypto
from ascfs.thirdparty.provider import AuthData, ProviderAccountDao

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from ascfs.core.mapping import IdentityMapper
    from ascfs.core.security_dao import SecurityDao
    from ascfs.core.tag_dao import TagDao

    from conftest import FakeProviderSession

TENANT = 1


@pytest.fixture
def crypto() -> InstanceCrypto:
    return InstanceCrypto(InstanceCrypto.generate_key())


@pytest.fixture
def accounts(crypto: InstanceCrypto) -> ProviderAccountDao:
    return ProviderAccountDao(TENANT, crypto)


class TestSaveAndLoad:
    async def test_credentials_encrypted_at_rest(
        self, accounts: ProviderAccountDao, async_session: AsyncSession
    ):
        link = await accounts.save_provider_info(
            async_session, "webdav", "NAS", AuthData(url="https://nas", login="bob", password="pw")
        )
        row = await async_session.get(DbThirdpartyAccount, link)
        assert row is not None
        assert row.password not in (None, "pw")

        info = await accounts.get_provider_info(async_session, link)
        assert info.auth.password == "pw"
        assert info.auth.login == "bob"
        assert info.customer_title == "NAS"
        assert info.root_folder_type == FolderType.USER

    async def test_unreadable_credentials_load_empty(
        self, accounts: ProviderAccountDao, async_session: AsyncSession
    ):
        other = ProviderAccountDao(TENANT, InstanceCrypto(InstanceCrypto.generate_key()))
        link = await other.save_provider_info(async_session, "box", "Box", AuthData(token="tok"))

        info = await accounts.get_provider_info(async_session, link)
        assert info.auth.token == ""

    async def test_other_tenant_has_no_access(self, crypto: InstanceCrypto, async_session: AsyncSession):
        mine = ProviderAccountDao(TENANT, crypto)
        link = await mine.save_provider_info(async_session, "box", "Box", AuthData(token="t"))
        with pytest.raises(ProviderAccessError):
            await ProviderAccountDao(2, crypto).get_provider_info(async_session, link)

    async def test_personal_link_hidden_from_other_users(
        self, crypto: InstanceCrypto, async_session: AsyncSession
    ):
        bob = ProviderAccountDao(TENANT, crypto, user_id="bob")
        carol = ProviderAccountDao(TENANT, crypto, user_id="carol")
        personal = await bob.save_provider_info(async_session, "box", "Mine", AuthData(token="t"))
        shared = await bob.save_provider_info(
            async_session, "box", "Common", AuthData(token="t"), FolderType.COMMON
        )

        with pytest.raises(ProviderAccessError):
            await carol.get_provider_info(async_session, personal)
        assert [i.id for i in await carol.get_providers_info(async_session)] == [shared]
        assert [i.id for i in await bob.get_providers_info(async_session)] == [personal, shared]
        assert [i.id for i in await bob.get_providers_info(async_session, FolderType.COMMON)] == [shared]


class TestUpdate:
    async def test_update_title_and_token(self, accounts: ProviderAccountDao, async_session: AsyncSession):
        link = await accounts.save_provider_info(async_session, "box", "Old", AuthData(token="t1"))
        await accounts.update_provider_info(async_session, link, customer_title="New", auth=AuthData(token="t2"))
        info = await accounts.get_provider_info(async_session, link)
        assert info.customer_title == "New"
        assert info.auth.token == "t2"

    async def test_update_missing(self, accounts: ProviderAccountDao, async_session: AsyncSession):
        with pytest.raises(ProviderAccessError):
            await accounts.update_provider_info(async_session, 404, customer_title="x")


class TestRemove:
    async def test_purges_rows_of_link_only(
        self,
        accounts: ProviderAccountDao,
        mapper: IdentityMapper,
        security: SecurityDao,
        tags: TagDao,
        async_session: AsyncSession,
    ):
        link = await accounts.save_provider_info(async_session, "box", "Box", AuthData(token="t"))
        other = await accounts.save_provider_info(async_session, "box", "Box 2", AuthData(token="t"))
        mine, theirs = f"box-{link}-docs", f"box-{other}-docs"
        for entry in (mine, theirs):
            await security.set_share(
                async_session, ShareRecord(TENANT, entry, EntryType.FOLDER, "carol", "bob", FileShare.READ)
            )
            await tags.save_tags(
                async_session, [Tag("fav", TagType.FAVORITE, "bob", entry_id=entry, entry_type=EntryType.FOLDER)]
            )

        await accounts.remove_provider_info(async_session, link, mapper, f"box-{link}")

        with pytest.raises(ProviderAccessError):
            await accounts.get_provider_info(async_session, link)
        mapped = (await async_session.execute(select(DbThirdpartyIdMapping.id))).scalars().all()
        assert mapped == [theirs]
        shares = (await async_session.execute(select(DbFilesSecurity.entry_id))).scalars().all()
        assert shares == [mapper.hash_id(theirs)]
        links = (await async_session.execute(select(DbFilesTagLink.entry_id))).scalars().all()
        assert links == [mapper.hash_id(theirs)]


class TestProviderSession:
    async def test_lazy_open_and_close(self, crypto: InstanceCrypto, remote: FakeProviderSession, async_session: AsyncSession):
        opened: list[int] = []

        async def connect(info):
            opened.append(info.id)
            return remote

        accounts = ProviderAccountDao(TENANT, crypto, {"BOX": connect})
        link = await accounts.save_provider_info(async_session, "box", "Box", AuthData(token="t"))
        info = await accounts.get_provider_info(async_session, link)

        assert not info.is_open
        assert await info.session() is remote
        assert await info.session() is remote
        assert opened == [link]

        await info.close()
        assert not info.is_open
        assert remote.closed

    async def test_no_connector(self, accounts: ProviderAccountDao, async_session: AsyncSession):
        link = await accounts.save_provider_info(async_session, "box", "Box", AuthData(token="t"))
        info = await accounts.get_provider_info(async_session, link)
        with pytest.raises(ProviderTransportError):
            await info.session()
