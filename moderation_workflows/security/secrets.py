from __future__ import annotations

from cryptography.fernet import Fernet, InvalidToken

from ..errors import PermanentProviderError


class SecretBox:
    """Symmetric encryption for provider credentials stored in organization settings."""

    def __init__(self, key: str | bytes) -> None:
        self._fernet = Fernet(key.encode("ascii") if isinstance(key, str) else key)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, ValueError) as exc:
            # A credential that cannot be decrypted will not decrypt on retry either.
            raise PermanentProviderError(
                "Stored credential could not be decrypted", provider="secrets"
            ) from exc

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("ascii")
