"""S3DataStore — module content in an S3-compatible bucket via MinIO."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from io import BytesIO
from typing import TYPE_CHECKING

from minio import Minio
from minio.commonconfig import CopySource
from minio.error import S3Error

from ascfs.exceptions import StorageError

from .base import BaseDataStore

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from .config import HandlerElement, ModuleElement

logger = logging.getLogger(__name__)


def _normalize_key(key: str) -> str:
    """Sanitize a relative key (no absolute path, no parent escapes)."""
    k = (key or "").strip().replace("\\", "/").lstrip("/")
    if ".." in k.split("/"):
        raise PermissionError(f"Key cannot contain parent path segments: {key}")
    return k


class S3DataStore(BaseDataStore):
    """Objects are keyed ``<tenant>/<module>/<domain>/<path>``.

    Properties: ``endpoint`` (``host:port`` or URL), ``access_key``,
    ``secret_key``, ``bucket``, ``secure`` (``"true"``/``"false"``) and
    ``region``.  The client is created on first use; MinIO calls are
    blocking and run in worker threads.
    """

    def __init__(self, client: Minio | None = None) -> None:
        super().__init__()
        self._client = client
        self.bucket = ""

    def configure(
        self,
        tenant: str,
        handler: HandlerElement | None,
        module: ModuleElement | None,
        props: Mapping[str, str],
    ) -> S3DataStore:
        super().configure(tenant, handler, module, props)
        self.bucket = self.props.get("bucket", "")
        if not self.bucket:
            raise StorageError("S3 store requires a 'bucket' property")
        return self

    @property
    def client(self) -> Minio:
        if self._client is None:
            endpoint = self.props.get("endpoint", "s3.amazonaws.com")
            secure = self.props.get("secure", "true").lower() != "false"
            if endpoint.startswith("http://"):
                secure = False
            endpoint = endpoint.replace("https://", "").replace("http://", "").rstrip("/")
            self._client = Minio(
                endpoint,
                access_key=self.props.get("access_key"),
                secret_key=self.props.get("secret_key"),
                region=self.props.get("region") or None,
                secure=secure,
            )
            logger.info("S3 client for bucket %s at %s", self.bucket, endpoint)
        return self._client

    def _object_name(self, domain: str, path: str) -> str:
        parts = [self.tenant.strip("/"), self.module, (domain or "").strip("/"), _normalize_key(path)]
        return posixpath.join(*[p for p in parts if p])

    def _prefix(self, domain: str) -> str:
        return self._object_name(domain, "") + "/"

    async def close(self) -> None:
        self._client = None

    # -------- content --------

    async def save(
        self, domain: str, path: str, data: bytes, *, session: AsyncSession | None = None
    ) -> str:
        name = self._object_name(domain, path)
        await self._quota_check(domain, len(data), session)
        previous = await self._size_or_zero(name)
        try:
            await asyncio.to_thread(
                self.client.put_object,
                self.bucket,
                name,
                BytesIO(data),
                len(data),
            )
        except S3Error as e:
            raise StorageError(f"Upload failed for '{name}': {e}") from e
        await self._quota_delete(domain, previous, session)
        await self._quota_add(domain, len(data), session)
        return name

    async def read(self, domain: str, path: str) -> bytes:
        name = self._object_name(domain, path)

        def _get() -> bytes:
            response = self.client.get_object(self.bucket, name)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()

        try:
            return await asyncio.to_thread(_get)
        except S3Error as e:
            if e.code == "NoSuchKey":
                raise FileNotFoundError(f"Object not found: {name}") from e
            raise StorageError(f"Download failed for '{name}': {e}") from e

    async def delete(
        self, domain: str, path: str, *, session: AsyncSession | None = None, quota: bool = True
    ) -> None:
        name = self._object_name(domain, path)
        size = await self._size_or_zero(name)
        try:
            await asyncio.to_thread(self.client.remove_object, self.bucket, name)
        except S3Error as e:
            raise StorageError(f"Delete failed for '{name}': {e}") from e
        if quota:
            await self._quota_delete(domain, size, session)

    async def delete_directory(
        self, domain: str, path: str, *, session: AsyncSession | None = None
    ) -> None:
        for key in await self.list_files(domain, path, recursive=True):
            await self.delete(domain, key, session=session)

    async def exists(self, domain: str, path: str) -> bool:
        return await self._stat(self._object_name(domain, path)) is not None

    async def get_file_size(self, domain: str, path: str) -> int:
        name = self._object_name(domain, path)
        size = await self._stat(name)
        if size is None:
            raise FileNotFoundError(f"Object not found: {name}")
        return size

    async def list_files(self, domain: str, path: str, recursive: bool = False) -> list[str]:
        base = self._prefix(domain)
        sub = _normalize_key(path)
        prefix = base + (sub.rstrip("/") + "/" if sub else "")

        def _list() -> list[str]:
            return [
                o.object_name[len(base) :]
                for o in self.client.list_objects(self.bucket, prefix=prefix, recursive=recursive)
                if o.object_name and not o.is_dir
            ]

        try:
            return sorted(await asyncio.to_thread(_list))
        except S3Error as e:
            raise StorageError(f"Failed to list '{prefix}': {e}") from e

    async def move(
        self,
        src_domain: str,
        src_path: str,
        dst_domain: str,
        dst_path: str,
        *,
        session: AsyncSession | None = None,
    ) -> str:
        source = self._object_name(src_domain, src_path)
        target = self._object_name(dst_domain, dst_path)
        size = await self.get_file_size(src_domain, src_path)
        try:
            await asyncio.to_thread(
                self.client.copy_object, self.bucket, target, CopySource(self.bucket, source)
            )
            await asyncio.to_thread(self.client.remove_object, self.bucket, source)
        except S3Error as e:
            raise StorageError(f"Move failed for '{source}': {e}") from e
        if src_domain.lower() != dst_domain.lower():
            await self._quota_delete(src_domain, size, session)
            await self._quota_add(dst_domain, size, session)
        return target

    # -------- helpers --------

    async def _stat(self, name: str) -> int | None:
        try:
            stat = await asyncio.to_thread(self.client.stat_object, self.bucket, name)
        except S3Error as e:
            if e.code in ("NoSuchKey", "NoSuchObject", "NotFound"):
                return None
            raise StorageError(f"Stat failed for '{name}': {e}") from e
        return stat.size or 0

    async def _size_or_zero(self, name: str) -> int:
        return await self._stat(name) or 0
