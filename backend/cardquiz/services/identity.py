"""Identity provider: sign-up, sign-in, sign-out, password reset.

The provider is injected where it is needed (HTTP routes, the runner
registry) instead of living in ambient global state. Interested parties
observe auth-state changes through :class:`AuthEvents`::

    unsubscribe = auth_events.subscribe(on_auth_change)
    ...
    unsubscribe()
"""

import enum
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy.orm import Session

from cardquiz.config import settings
from cardquiz.core.security import (
    BCRYPT_MAX_BYTES,
    hash_password,
    hash_reset_token,
    issue_access_token,
    new_reset_token,
    read_access_token,
    verify_password,
)
from cardquiz.db.models import PasswordResetToken, RevokedToken, User

logger = logging.getLogger(__name__)


# ── Errors ────────────────────────────────────────────────────────────────────


class IdentityError(Exception):
    """Base class for errors surfaced inline on auth forms."""

    status_code = 400
    error_code = "identity_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidSignUp(IdentityError):
    error_code = "invalid_sign_up"


class EmailAlreadyRegistered(IdentityError):
    status_code = 409
    error_code = "email_taken"


class InvalidCredentials(IdentityError):
    status_code = 401
    error_code = "invalid_credentials"


class AccountDisabled(IdentityError):
    status_code = 403
    error_code = "account_disabled"


class InvalidResetToken(IdentityError):
    error_code = "invalid_reset_token"


# ── Auth state events ─────────────────────────────────────────────────────────


class AuthEventType(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


@dataclass(frozen=True)
class AuthEvent:
    type: AuthEventType
    user_id: uuid.UUID


AuthListener = Callable[[AuthEvent], None]


class AuthEvents:
    """Minimal observable for auth-state changes."""

    def __init__(self) -> None:
        self._listeners: list[AuthListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, event: AuthEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Auth listener failed for %s", event.type.value)


auth_events = AuthEvents()


# ── Provider ──────────────────────────────────────────────────────────────────


@dataclass
class AuthResult:
    user: User
    access_token: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class IdentityProvider:
    """Account operations backed by the relational store."""

    def __init__(self, db: Session, events: AuthEvents = auth_events) -> None:
        self.db = db
        self.events = events

    # ── sign-up / sign-in ─────────────────────────────────────────────────

    def sign_up(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone: str | None = None,
    ) -> AuthResult:
        """Create an account with its profile and sign it in."""
        self._check_password(password)
        if not first_name.strip() or not last_name.strip():
            raise InvalidSignUp("Please enter your first and last name.")

        email = email.strip().lower()
        if self.db.query(User).filter(User.email == email).first():
            raise EmailAlreadyRegistered("Email already registered")

        user = User(
            email=email,
            hashed_password=hash_password(password),
            full_name=f"{first_name.strip()} {last_name.strip()}",
            phone=phone or None,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("Registered user %s", user.id)

        self.events.emit(AuthEvent(AuthEventType.SIGNED_IN, user.id))
        return AuthResult(user=user, access_token=self._issue_token(user))

    def sign_in(self, email: str, password: str) -> AuthResult:
        if not email or not password:
            raise InvalidCredentials("Please enter both email and password.")
        user = self.db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not verify_password(password, user.hashed_password):
            raise InvalidCredentials("Invalid email or password")
        if not user.is_active:
            raise AccountDisabled("Account deactivated")

        self.events.emit(AuthEvent(AuthEventType.SIGNED_IN, user.id))
        return AuthResult(user=user, access_token=self._issue_token(user))

    def sign_out(self, token: str) -> None:
        """Revoke *token*. Unknown or already-revoked tokens are ignored."""
        claims = read_access_token(token)
        if claims is None or self.db.get(RevokedToken, claims.jti) is not None:
            return
        self.db.add(RevokedToken(jti=claims.jti, user_id=claims.user_id))
        self.db.commit()
        self.events.emit(AuthEvent(AuthEventType.SIGNED_OUT, claims.user_id))

    def current_user(self, token: str | None) -> User | None:
        """Resolve a bearer token to an active user, or ``None``."""
        if not token:
            return None
        claims = read_access_token(token)
        if claims is None or self.db.get(RevokedToken, claims.jti) is not None:
            return None
        user = self.db.query(User).filter(User.id == claims.user_id).first()
        if user is None or not user.is_active:
            return None
        return user

    def update_profile(
        self, user: User, full_name: str | None = None, phone: str | None = None
    ) -> User:
        if full_name is not None:
            if not full_name.strip():
                raise InvalidSignUp("Name cannot be empty.")
            user.full_name = full_name.strip()
        if phone is not None:
            user.phone = phone or None
        self.db.commit()
        self.db.refresh(user)
        self.events.emit(AuthEvent(AuthEventType.USER_UPDATED, user.id))
        return user

    # ── password reset ────────────────────────────────────────────────────

    def request_password_reset(self, email: str) -> str | None:
        """Issue a reset token for *email*.

        Returns the raw token (delivery by e-mail is handled elsewhere), or
        ``None`` when no account matches; callers must not reveal which.
        """
        user = self.db.query(User).filter(User.email == email.strip().lower()).first()
        if user is None or not user.is_active:
            logger.info("Password reset requested for unknown account")
            return None

        raw, digest = new_reset_token()
        self.db.add(
            PasswordResetToken(
                user_id=user.id,
                token_hash=digest,
                expires_at=_utcnow()
                + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
            )
        )
        self.db.commit()
        logger.info("Password reset token issued for user %s", user.id)
        return raw

    def confirm_password_reset(self, token: str, new_password: str) -> User:
        self._check_password(new_password)
        record = (
            self.db.query(PasswordResetToken)
            .filter(PasswordResetToken.token_hash == hash_reset_token(token))
            .first()
        )
        if record is None or record.used_at is not None:
            raise InvalidResetToken("Reset link is invalid or has already been used.")
        if _as_aware(record.expires_at) < _utcnow():
            raise InvalidResetToken("Reset link has expired.")

        record.used_at = _utcnow()
        record.user.hashed_password = hash_password(new_password)
        self.db.commit()
        self.events.emit(AuthEvent(AuthEventType.PASSWORD_RECOVERY, record.user_id))
        return record.user

    # ── internals ─────────────────────────────────────────────────────────

    @staticmethod
    def _check_password(password: str) -> None:
        if len(password) < settings.PASSWORD_MIN_LENGTH:
            raise InvalidSignUp(
                f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long."
            )
        if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise InvalidSignUp(f"Password must be at most {BCRYPT_MAX_BYTES} bytes long.")

    @staticmethod
    def _issue_token(user: User) -> str:
        return issue_access_token(user.id)
