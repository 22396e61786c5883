"""Credential primitives: bcrypt password hashes, bearer JWTs, reset tokens."""

import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
import bcrypt

from cardquiz.config import settings

BCRYPT_MAX_BYTES = 72

# ── Passwords ─────────────────────────────────────────────────────────────────


def hash_password(plain: str) -> str:
    """Return the bcrypt hash of *plain*.

    Raises:
        ValueError: if the password exceeds bcrypt's 72-byte input limit
            (the identity provider rejects such passwords before this point).
    """
    raw = plain.encode("utf-8")
    if len(raw) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password is {len(raw)} bytes; bcrypt accepts at most {BCRYPT_MAX_BYTES}")
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


# ── Bearer tokens ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    jti: str


def issue_access_token(user_id: uuid.UUID, ttl: timedelta | None = None) -> str:
    """Sign a bearer token for *user_id*.

    Every token gets its own ``jti`` so a single sign-out can revoke it
    without touching the user's other devices.
    """
    expires = datetime.now(timezone.utc) + (
        ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    claims = {"sub": str(user_id), "exp": expires, "jti": uuid.uuid4().hex}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def read_access_token(token: str) -> TokenClaims | None:
    """Verify *token* and return its claims; ``None`` if it is bad or expired."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    try:
        return TokenClaims(user_id=uuid.UUID(payload["sub"]), jti=str(payload["jti"]))
    except (KeyError, TypeError, ValueError):
        return None


# ── Password reset ────────────────────────────────────────────────────────────


def new_reset_token() -> tuple[str, str]:
    """Return ``(raw_token, sha256_digest)``; only the digest is persisted."""
    raw = secrets.token_urlsafe(32)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
