"""
Encryption of provider secrets at rest.
"""

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from workspace_collab.settings import Settings


class SecretDecryptionError(Exception):
    """Raised when stored ciphertext cannot be decrypted with the current key."""
    pass


class SecretBox:
    """Fernet wrapper used for client secrets, webhook secrets and private keys."""

    def __init__(self, key: str | bytes):
        self._fernet = Fernet(key)

    @classmethod
    def from_settings(cls, config: Settings) -> "SecretBox":
        """Use the configured Fernet key, or derive one from ``secret_key``."""
        if config.external_auth_encryption_key:
            return cls(config.external_auth_encryption_key)
        digest = hashlib.sha256(config.secret_key.encode("utf-8")).digest()
        return cls(base64.urlsafe_b64encode(digest))

    def encrypt(self, value: str | None) -> bytes | None:
        if not value:
            return None
        return self._fernet.encrypt(value.encode("utf-8"))

    def decrypt(self, value: bytes | None) -> str | None:
        if value is None:
            return None
        try:
            return self._fernet.decrypt(value).decode("utf-8")
        except InvalidToken as e:
            raise SecretDecryptionError("Stored secret cannot be decrypted with the current key") from e
