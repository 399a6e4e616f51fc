"""
At-rest encryption for the secure session store, session-token minting
for the offline user service, and password hashing (pbkdf2).
"""

from __future__ import annotations

import base64
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from jose import jwt
from passlib.context import CryptContext

from unitylink.core.config import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── Session tokens ──────────────────────────────────────────────────
def create_session_token(subject: str | Any, role: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=settings.SESSION_TOKEN_EXPIRE_DAYS)
    return jwt.encode(
        {"exp": expire, "sub": str(subject), "role": role},
        _SECRET,
        algorithm=_ALGORITHM,
    )


# ── At-rest encryption ──────────────────────────────────────────────
def derive_fernet_key(secret: str) -> bytes:
    """Stretch an arbitrary secret into a valid Fernet key."""
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())


class DecryptionError(ValueError):
    """Ciphertext could not be decrypted (wrong key or corrupted bytes)."""


class SecretBox:
    """Symmetric encryption of stored values using Fernet (AES-128-CBC + HMAC)."""

    def __init__(self, key: str | bytes | None = None):
        if not key:
            key = derive_fernet_key(_SECRET)
        if isinstance(key, str):
            key = key.strip().encode()
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as exc:
            raise ValueError(
                f"STORAGE_ENCRYPTION_KEY is invalid (not a valid Fernet key): {exc}"
            ) from exc

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except (InvalidToken, UnicodeError) as exc:
            raise DecryptionError("Stored value could not be decrypted") from exc
