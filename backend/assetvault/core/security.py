"""Token encryption, upload URL signing and device token hashing."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time

from cryptography.fernet import Fernet, InvalidToken

from assetvault.core.config import settings
from assetvault.core.logging import get_logger

logger = get_logger(__name__)

_generated_encryption_key: bytes | None = None
_generated_signing_secret: bytes | None = None


class TokenDecryptionError(Exception):
    """Raised when a stored token cannot be decrypted with the current key."""

    pass


def _get_encryption_key() -> bytes:
    """Get or generate the Fernet key."""
    global _generated_encryption_key
    if settings.encryption_key:
        # Fernet expects the key as base64-encoded bytes (not decoded)
        return settings.encryption_key.encode()
    if _generated_encryption_key is None:
        _generated_encryption_key = Fernet.generate_key()
        logger.warning(
            "encryption_key_generated",
            message="Using auto-generated encryption key. Set ASSETVAULT_ENCRYPTION_KEY for persistence.",
        )
    return _generated_encryption_key


def encrypt_token(value: str) -> str:
    """Encrypt a provider token for storage."""
    return Fernet(_get_encryption_key()).encrypt(value.encode()).decode()


def decrypt_token(encrypted: str) -> str:
    """Decrypt a stored provider token.

    Raises:
        TokenDecryptionError: If the key changed or the value is corrupt.
    """
    try:
        return Fernet(_get_encryption_key()).decrypt(encrypted.encode()).decode()
    except InvalidToken as e:
        raise TokenDecryptionError("Stored token could not be decrypted") from e


def _get_signing_secret() -> bytes:
    global _generated_signing_secret
    if settings.signing_secret:
        return settings.signing_secret.encode()
    if _generated_signing_secret is None:
        _generated_signing_secret = secrets.token_bytes(32)
        logger.warning(
            "signing_secret_generated",
            message="Using auto-generated signing secret. Signed URLs will not survive restarts.",
        )
    return _generated_signing_secret


def sign_upload(key: str, expires: int) -> str:
    """Compute the signature for an upload of ``key`` valid until ``expires``."""
    message = f"PUT\n{key}\n{expires}".encode()
    return hmac.new(_get_signing_secret(), message, hashlib.sha256).hexdigest()


def verify_upload_signature(key: str, expires: int, signature: str, now: float | None = None) -> bool:
    """Check an upload signature and its expiry."""
    if (now if now is not None else time.time()) > expires:
        return False
    return hmac.compare_digest(sign_upload(key, expires), signature)


def generate_device_token() -> str:
    """Generate a new bearer token for a bridge device."""
    return f"avb_{secrets.token_urlsafe(32)}"


def hash_device_token(token: str) -> str:
    """Hash a bearer token for storage and lookup."""
    return hashlib.sha256(token.encode()).hexdigest()
