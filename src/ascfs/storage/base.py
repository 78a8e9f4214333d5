"""BaseDataStore — configuration and quota bookkeeping shared by handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from .config import HandlerElement, ModuleElement
    from .quota import QuotaController


class BaseDataStore:
    """Common state for ``DataStore`` implementations.

    Subclasses implement the content methods; quota calls go through
    ``_quota_check`` / ``_quota_add`` / ``_quota_delete`` so exempt
    modules and domains are skipped in one place.
    """

    def __init__(self) -> None:
        self.tenant = ""
        self.module = ""
        self.handler: HandlerElement | None = None
        self.module_element: ModuleElement | None = None
        self.props: dict[str, str] = {}
        self.quota_controller: QuotaController | None = None

    def configure(
        self,
        tenant: str,
        handler: HandlerElement | None,
        module: ModuleElement | None,
        props: Mapping[str, str],
    ) -> BaseDataStore:
        self.tenant = tenant
        self.handler = handler
        self.module_element = module
        self.module = module.name if module is not None else ""
        self.props = dict(props)
        return self

    def set_quota_controller(self, controller: QuotaController | None) -> BaseDataStore:
        self.quota_controller = controller
        return self

    async def close(self) -> None:
        return None

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def _counts(self, domain: str) -> bool:
        if self.quota_controller is None:
            return False
        if self.module_element is None:
            return True
        if not self.module_element.count:
            return False
        element = self.module_element.get_domain(domain) if domain else None
        return element is None or element.count

    async def _quota_check(self, domain: str, size: int, session: AsyncSession | None = None) -> None:
        if self._counts(domain):
            assert self.quota_controller is not None
            await self.quota_controller.quota_used_check(size, session=session)

    async def _quota_add(self, domain: str, size: int, session: AsyncSession | None = None) -> None:
        if self._counts(domain) and size:
            assert self.quota_controller is not None
            await self.quota_controller.quota_used_add(
                self.module, domain, size, quota_check=False, session=session
            )

    async def _quota_delete(self, domain: str, size: int, session: AsyncSession | None = None) -> None:
        if self._counts(domain) and size:
            assert self.quota_controller is not None
            await self.quota_controller.quota_used_delete(self.module, domain, size, session=session)
