"""FastAPI dependencies shared across routes."""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from cardquiz.db.models import User
from cardquiz.db.session import get_db
from cardquiz.services.identity import IdentityProvider, auth_events

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)


def get_identity(db: Session = Depends(get_db)) -> IdentityProvider:
    return IdentityProvider(db, auth_events)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    identity: IdentityProvider = Depends(get_identity),
) -> User:
    """Resolve the bearer token to the signed-in user, or 401."""
    user = identity.current_user(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_optional_user(
    token: str | None = Depends(optional_oauth2_scheme),
    identity: IdentityProvider = Depends(get_identity),
) -> User | None:
    """Signed-in user, or ``None`` for guest mode. A bad token is still a 401."""
    if token is None:
        return None
    user = identity.current_user(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
