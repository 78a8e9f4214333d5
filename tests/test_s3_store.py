"""Tests for S3DataStore against an in-memory object client."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

import ascfs.storage.s3 as s3_module
from ascfs.exceptions import StorageError
from ascfs.storage.config import DomainElement, HandlerElement, ModuleElement
from ascfs.storage.s3 import S3DataStore


class FakeS3Error(Exception):
    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code


@dataclass
class _Stat:
    size: int


@dataclass
class _Object:
    object_name: str
    is_dir: bool = False


class _Response:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self.released = False

    def read(self) -> bytes:
        return self._data

    def close(self) -> None:
        pass

    def release_conn(self) -> None:
        self.released = True


class FakeMinio:
    """Bucket contents as a dict of object names to bytes."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}

    def put_object(self, bucket: str, name: str, data, length: int) -> None:
        self.objects[name] = data.read(length)

    def get_object(self, bucket: str, name: str) -> _Response:
        if name not in self.objects:
            raise FakeS3Error("NoSuchKey")
        return _Response(self.objects[name])

    def stat_object(self, bucket: str, name: str) -> _Stat:
        if name not in self.objects:
            raise FakeS3Error("NoSuchKey")
        return _Stat(len(self.objects[name]))

    def remove_object(self, bucket: str, name: str) -> None:
        self.objects.pop(name, None)

    def copy_object(self, bucket: str, name: str, source) -> None:
        self.objects[name] = self.objects[source.object_name]

    def list_objects(self, bucket: str, prefix: str = "", recursive: bool = False) -> list[_Object]:
        found: dict[str, _Object] = {}
        for name in sorted(self.objects):
            if not name.startswith(prefix):
                continue
            rest = name[len(prefix) :]
            if recursive or "/" not in rest:
                found[name] = _Object(name)
            else:
                folder = prefix + rest.split("/", 1)[0] + "/"
                found[folder] = _Object(folder, is_dir=True)
        return list(found.values())


class RecordingQuota:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, int]] = []

    async def quota_used_check(self, size: int, *, session=None) -> None:
        pass

    async def quota_used_add(
        self, module: str, domain: str, size: int, quota_check: bool = True, *, session=None
    ) -> None:
        self.calls.append(("add", domain, size))

    async def quota_used_delete(self, module: str, domain: str, size: int, *, session=None) -> None:
        self.calls.append(("delete", domain, size))


@pytest.fixture(autouse=True)
def _fake_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(s3_module, "S3Error", FakeS3Error)


@pytest.fixture
def client() -> FakeMinio:
    return FakeMinio()


@pytest.fixture
def store(client: FakeMinio) -> S3DataStore:
    module = ModuleElement(name="files", type="s3", domains=[DomainElement(name="temp", count=False)])
    return S3DataStore(client).configure(
        "00/00/01", HandlerElement(name="s3", type="ascfs.storage.s3.S3DataStore"), module, {"bucket": "b"}
    )


class TestConfigure:
    def test_bucket_required(self):
        with pytest.raises(StorageError, match="bucket"):
            S3DataStore(FakeMinio()).configure("00/00/01", None, ModuleElement(name="files"), {})


class TestContent:
    async def test_keys_are_namespaced(self, store: S3DataStore, client: FakeMinio):
        name = await store.save("", "a/one.bin", b"1")
        await store.save("temp", "up.bin", b"22")
        assert name == "00/00/01/files/a/one.bin"
        assert sorted(client.objects) == ["00/00/01/files/a/one.bin", "00/00/01/files/temp/up.bin"]

    async def test_read_and_size(self, store: S3DataStore):
        await store.save("", "f.bin", b"hello")
        assert await store.read("", "f.bin") == b"hello"
        assert await store.get_file_size("", "f.bin") == 5
        assert await store.exists("", "f.bin")
        assert not await store.exists("", "g.bin")

    async def test_missing_object(self, store: S3DataStore):
        with pytest.raises(FileNotFoundError):
            await store.read("", "nope.bin")
        with pytest.raises(FileNotFoundError):
            await store.get_file_size("", "nope.bin")

    async def test_list_files(self, store: S3DataStore):
        await store.save("", "a/one.bin", b"1")
        await store.save("", "a/b/two.bin", b"2")
        assert await store.list_files("", "a") == ["a/one.bin"]
        assert await store.list_files("", "a", recursive=True) == ["a/b/two.bin", "a/one.bin"]

    async def test_delete_directory(self, store: S3DataStore, client: FakeMinio):
        await store.save("", "a/one.bin", b"1")
        await store.save("", "a/b/two.bin", b"2")
        await store.save("", "keep.bin", b"3")
        await store.delete_directory("", "a")
        assert list(client.objects) == ["00/00/01/files/keep.bin"]

    async def test_move(self, store: S3DataStore):
        await store.save("temp", "up.bin", b"abc")
        target = await store.move("temp", "up.bin", "", "final/up.bin")
        assert target == "00/00/01/files/final/up.bin"
        assert await store.read("", "final/up.bin") == b"abc"
        assert not await store.exists("temp", "up.bin")

    async def test_parent_segments_rejected(self, store: S3DataStore):
        with pytest.raises(PermissionError):
            await store.save("", "../other/x.bin", b"x")


class TestQuota:
    async def test_overwrite_and_delete(self, store: S3DataStore):
        quota = RecordingQuota()
        store.set_quota_controller(quota)
        await store.save("", "f.bin", b"1234")
        await store.save("", "f.bin", b"12")
        await store.delete("", "f.bin")
        await store.save("temp", "t.bin", b"skip")
        assert quota.calls == [
            ("add", "", 4),
            ("delete", "", 4),
            ("add", "", 2),
            ("delete", "", 2),
        ]

    async def test_delete_without_bookkeeping(self, store: S3DataStore, client: FakeMinio):
        quota = RecordingQuota()
        store.set_quota_controller(quota)
        await store.save("", "f.bin", b"1234")
        await store.delete("", "f.bin", quota=False)
        assert client.objects == {}
        assert quota.calls == [("add", "", 4)]
