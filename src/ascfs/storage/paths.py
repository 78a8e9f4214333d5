"""Tenant path namespacing for store keys and disc layouts."""

from __future__ import annotations

DEFAULT_TENANT = "default"


def tenant_path(tenant: int | str | None) -> str:
    """Namespace a raw tenant identifier.

    Numeric ids are zero padded to six digits and split in pairs from the
    right (``5`` -> ``00/00/05``, ``1234567`` -> ``123/45/67``); ``0``
    stays ``0``.  Names pass through unchanged, an empty tenant becomes
    ``default``.

    >>> tenant_path(5)
    '00/00/05'
    """
    raw = "" if tenant is None else str(tenant).strip()
    if not raw:
        return DEFAULT_TENANT
    if not raw.isdigit():
        return raw
    if int(raw) == 0:
        return "0"

    digits = str(int(raw)).zfill(6)
    return f"{digits[:-4]}/{digits[-4:-2]}/{digits[-2:]}"
