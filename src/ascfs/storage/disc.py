"""DiscDataStore — module content on the local filesystem."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from ascfs.exceptions import StorageError

from .base import BaseDataStore
from .config import STORAGE_ROOT_PARAM

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from .config import HandlerElement, ModuleElement

logger = logging.getLogger(__name__)

TENANT_PLACEHOLDER = "{0}"


class DiscDataStore(BaseDataStore):
    """Stores module content under per-domain directories.

    Module and domain paths are templates: ``$STORAGE_ROOT`` is replaced
    by the configured storage root and ``{0}`` by the tenant path (the
    tenant path is appended when the template has no placeholder).

    Security: _resolve_path() ensures all paths stay within the domain
    directory, preventing path traversal attacks.
    """

    def __init__(self) -> None:
        super().__init__()
        self._roots: dict[str, Path] = {}

    def configure(
        self,
        tenant: str,
        handler: HandlerElement | None,
        module: ModuleElement | None,
        props: Mapping[str, str],
    ) -> DiscDataStore:
        super().configure(tenant, handler, module, props)
        self._roots = {}
        if module is None:
            return self

        base = module.path or f"{STORAGE_ROOT_PARAM}/{module.name}"
        self._roots[""] = self._expand(base, module.append_tenant_id)
        for domain in module.domains:
            template = domain.path or f"{base.rstrip('/')}/{domain.name}"
            self._roots[domain.name.lower()] = self._expand(template, module.append_tenant_id)
        logger.debug("Disc store %s/%s rooted at %s", self.tenant, self.module, self._roots[""])
        return self

    def _expand(self, template: str, append_tenant: bool) -> Path:
        root = self.props.get(STORAGE_ROOT_PARAM, "")
        path = template.replace(STORAGE_ROOT_PARAM, root)
        if TENANT_PLACEHOLDER in path:
            path = path.replace(TENANT_PLACEHOLDER, self.tenant)
        elif append_tenant:
            path = f"{path.rstrip('/')}/{self.tenant}"
        return Path(path).expanduser().resolve()

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def get_root(self, domain: str) -> Path:
        try:
            return self._roots[(domain or "").lower()]
        except KeyError:
            if "" not in self._roots:
                raise StorageError(f"Store for module {self.module!r} is not configured") from None
            return self._roots[""] / domain

    def _resolve_path(self, domain: str, path: str) -> Path:
        """Resolve *path* inside the directory of *domain*.

        Rejects paths that resolve outside the domain directory.
        """
        root = self.get_root(domain)
        rel = path.replace("\\", "/").lstrip("/")
        if not rel:
            return root

        resolved = (root / rel).resolve()
        try:
            resolved.relative_to(root)
        except ValueError:
            raise PermissionError(
                f"Path traversal detected: {path} resolves outside domain directory"
            ) from None
        return resolved

    def _relative(self, domain: str, physical: Path) -> str:
        return physical.relative_to(self.get_root(domain)).as_posix()

    # =========================================================================
    # Content
    # =========================================================================

    async def save(
        self, domain: str, path: str, data: bytes, *, session: AsyncSession | None = None
    ) -> str:
        target = self._resolve_path(domain, path)
        await self._quota_check(domain, len(data), session)

        previous = target.stat().st_size if target.is_file() else 0

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

        await self._quota_delete(domain, previous, session)
        await self._quota_add(domain, len(data), session)
        return self._relative(domain, target)

    async def read(self, domain: str, path: str) -> bytes:
        target = self._resolve_path(domain, path)
        if not target.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    async def delete(
        self, domain: str, path: str, *, session: AsyncSession | None = None, quota: bool = True
    ) -> None:
        target = self._resolve_path(domain, path)
        if not target.is_file():
            return
        size = target.stat().st_size
        try:
            await asyncio.to_thread(target.unlink)
        except OSError as e:
            raise StorageError(f"Cannot delete {path}: {e}") from e
        if quota:
            await self._quota_delete(domain, size, session)

    async def delete_directory(
        self, domain: str, path: str, *, session: AsyncSession | None = None
    ) -> None:
        target = self._resolve_path(domain, path)
        if target == self.get_root(domain) or not target.is_dir():
            return
        size = await asyncio.to_thread(_directory_size, target)
        try:
            await asyncio.to_thread(shutil.rmtree, target)
        except OSError as e:
            raise StorageError(f"Cannot delete directory {path}: {e}") from e
        await self._quota_delete(domain, size, session)

    async def exists(self, domain: str, path: str) -> bool:
        return self._resolve_path(domain, path).exists()

    async def get_file_size(self, domain: str, path: str) -> int:
        target = self._resolve_path(domain, path)
        if not target.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        return target.stat().st_size

    async def list_files(self, domain: str, path: str, recursive: bool = False) -> list[str]:
        target = self._resolve_path(domain, path)
        if not target.is_dir():
            return []
        pattern = "**/*" if recursive else "*"
        found = await asyncio.to_thread(lambda: sorted(target.glob(pattern)))
        return [self._relative(domain, p) for p in found if p.is_file()]

    async def move(
        self,
        src_domain: str,
        src_path: str,
        dst_domain: str,
        dst_path: str,
        *,
        session: AsyncSession | None = None,
    ) -> str:
        source = self._resolve_path(src_domain, src_path)
        target = self._resolve_path(dst_domain, dst_path)
        if not source.is_file():
            raise FileNotFoundError(f"File not found: {src_path}")
        size = source.stat().st_size

        def _move() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(target))

        try:
            await asyncio.to_thread(_move)
        except OSError as e:
            raise StorageError(f"Cannot move {src_path} to {dst_path}: {e}") from e

        if src_domain.lower() != dst_domain.lower():
            await self._quota_delete(src_domain, size, session)
            await self._quota_add(dst_domain, size, session)
        return self._relative(dst_domain, target)


def _directory_size(path: Path) -> int:
    return sum(p.stat().st_size for p in path.rglob("*") if p.is_file())
