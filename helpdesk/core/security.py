"""
Credential encryption for integration secrets at rest.

AES-256-GCM with a key derived from INTEGRATION_SECRET_KEY via
PBKDF2-HMAC-SHA512. Ciphertext tokens are ``iv:tag:ciphertext`` in hex.
"""
from functools import lru_cache
from typing import Optional
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..integrations.base import ConfigurationError, IntegrityError

IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
ITERATIONS = 100_000
KDF_SALT = b"integration-salt"

SECRET_ENV_VAR = "INTEGRATION_SECRET_KEY"


@lru_cache(maxsize=8)
def _derive_key(secret_key: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_LENGTH,
        salt=KDF_SALT,
        iterations=ITERATIONS,
    )
    return kdf.derive(secret_key.encode("utf-8"))


class CredentialCipher:
    """Symmetric authenticated encryption keyed by a process-wide secret."""

    def __init__(self, secret_key: Optional[str]):
        self._secret_key = secret_key

    def _key(self) -> bytes:
        if not self._secret_key:
            raise ConfigurationError(
                f"{SECRET_ENV_VAR} environment variable is not set. "
                "This is required for encrypting integration credentials.",
                instructions=[f"{SECRET_ENV_VAR}=<long-random-string>"]
            )
        return _derive_key(self._secret_key)

    def ensure_configured(self) -> None:
        """Fail fast before any work that would end in an encrypt call."""
        self._key()

    def encrypt(self, plaintext: str) -> str:
        """Encrypt ``plaintext`` into an ``iv:tag:ciphertext`` token."""
        aesgcm = AESGCM(self._key())
        iv = os.urandom(IV_LENGTH)
        sealed = aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, token: str) -> str:
        """Decrypt a token produced by :meth:`encrypt`.

        Raises:
            ConfigurationError: the secret is not configured
            IntegrityError: the token is malformed or fails authentication
        """
        key = self._key()

        parts = token.split(":") if isinstance(token, str) else []
        if len(parts) != 3:
            raise IntegrityError("Invalid encrypted data format")

        try:
            iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
        except ValueError as e:
            raise IntegrityError("Invalid encrypted data format") from e

        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            raise IntegrityError("Invalid encrypted data format")

        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise IntegrityError("Failed to decrypt data") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise IntegrityError("Failed to decrypt data") from e


def mask_secret(secret: Optional[str], visible: int = 4) -> Optional[str]:
    """Display form of a secret: ``****`` plus at most its last 4 characters."""
    if not secret:
        return None
    visible = min(visible, 4, len(secret) // 2)
    return "****" + (secret[-visible:] if visible else "")
