from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from passlib.context import CryptContext

from sgm_api.core.settings import get_app_settings

AUTHORIZATION_HEADER = "Authorization"
BEARER_PREFIX = "Bearer "


@lru_cache(maxsize=1)
def _pwd_context() -> CryptContext:
    settings = get_app_settings()
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


# PUBLIC_INTERFACE
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password using bcrypt."""
    if not hashed_password:
        return False
    return _pwd_context().verify(plain_password, hashed_password)


# PUBLIC_INTERFACE
def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt (salted, one-way)."""
    return _pwd_context().hash(password)


@dataclass(frozen=True)
class SigningKey:
    """Symmetric token signing key. Immutable once built."""
    secret: bytes
    algorithm: str

    def __repr__(self) -> str:
        return f"SigningKey(algorithm={self.algorithm!r}, secret=<{len(self.secret)} bytes>)"


# PUBLIC_INTERFACE
def build_signing_key(base64_secret: Optional[str], algorithm: str = "HS512") -> SigningKey:
    """Decode a base64 secret into a SigningKey; raises RuntimeError when missing or malformed."""
    if not base64_secret:
        raise RuntimeError("JWT_BASE64_SECRET is not configured; tokens cannot be signed.")
    try:
        secret = base64.b64decode(base64_secret, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise RuntimeError("JWT_BASE64_SECRET is not valid base64.") from exc
    if not secret:
        raise RuntimeError("JWT_BASE64_SECRET decodes to an empty key.")
    return SigningKey(secret=secret, algorithm=algorithm)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_signing_key() -> SigningKey:
    """
    Return the process-wide signing key.

    The key is decoded from configuration on first use and then shared by every
    signing and verification call for the lifetime of the process.
    """
    settings = get_app_settings()
    return build_signing_key(settings.JWT_BASE64_SECRET, settings.JWT_ALGORITHM)


# PUBLIC_INTERFACE
def resolve_bearer(header_value: Optional[str]) -> Optional[str]:
    """Return the token from an 'Authorization: Bearer <token>' value, or None."""
    if not header_value or not header_value.strip():
        return None
    if not header_value.startswith(BEARER_PREFIX):
        return None
    token = header_value[len(BEARER_PREFIX):].strip()
    return token or None
