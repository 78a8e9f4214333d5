"""InstanceCrypto — symmetric encryption of stored provider credentials."""

from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class InstanceCrypto:
    """Fernet encryption keyed per installation.

    Encrypted values are URL-safe base64 text, so they fit the string
    columns of ``files_thirdparty_account``.
    """

    def __init__(self, key: str | bytes) -> None:
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def encrypt(self, value: str | None) -> str | None:
        if not value:
            return value
        return self._fernet.encrypt(value.encode("utf-8")).decode("ascii")

    def decrypt(self, value: str) -> str:
        """Decrypt *value*, raising ``InvalidToken`` when it cannot be read."""
        return self._fernet.decrypt(value.encode("ascii")).decode("utf-8")

    def try_decrypt(self, value: str | None) -> tuple[bool, str]:
        """Return ``(True, plain)`` or ``(False, "")`` when *value* is unreadable."""
        if not value:
            return True, ""
        try:
            return True, self.decrypt(value)
        except (InvalidToken, UnicodeError, ValueError):
            logger.warning("Could not decrypt stored credential", exc_info=True)
            return False, ""
