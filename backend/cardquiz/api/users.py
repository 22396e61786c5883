"""User registration, login, logout, profile and password-reset routes."""

import logging

from fastapi import APIRouter, Depends, status

from cardquiz.api.deps import get_current_user, get_identity, oauth2_scheme
from cardquiz.db.models import User
from cardquiz.schemas.common import SuccessResponse
from cardquiz.schemas.user import (
    AuthResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    UserCreate,
    UserLogin,
    UserRead,
    UserUpdate,
)
from cardquiz.services.identity import IdentityProvider
from cardquiz.services.rate_limiter import require_auth_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: UserCreate,
    identity: IdentityProvider = Depends(get_identity),
    _rl=Depends(require_auth_rate_limit),
):
    """Create an account with its profile and return a token for it."""
    result = identity.sign_up(
        body.email,
        body.password,
        body.profile.first_name,
        body.profile.last_name,
        body.profile.phone,
    )
    return AuthResponse(access_token=result.access_token, user=UserRead.model_validate(result.user))


@router.post("/login", response_model=AuthResponse)
def login(
    body: UserLogin,
    identity: IdentityProvider = Depends(get_identity),
    _rl=Depends(require_auth_rate_limit),
):
    """Authenticate and return a JWT access token + user profile."""
    result = identity.sign_in(body.email, body.password)
    return AuthResponse(access_token=result.access_token, user=UserRead.model_validate(result.user))


@router.post("/logout", response_model=SuccessResponse)
def logout(
    token: str = Depends(oauth2_scheme),
    identity: IdentityProvider = Depends(get_identity),
):
    """Revoke the bearer token; open quiz attempts of the user are torn down."""
    identity.sign_out(token)
    return SuccessResponse(message="Signed out")


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's profile."""
    return current_user


@router.patch("/me", response_model=UserRead)
def update_profile(
    body: UserUpdate,
    current_user: User = Depends(get_current_user),
    identity: IdentityProvider = Depends(get_identity),
):
    return identity.update_profile(current_user, full_name=body.full_name, phone=body.phone)


@router.post(
    "/password-reset",
    response_model=SuccessResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def request_password_reset(
    body: PasswordResetRequest,
    identity: IdentityProvider = Depends(get_identity),
    _rl=Depends(require_auth_rate_limit),
):
    """Start a password reset. The response never reveals whether the account exists."""
    token = identity.request_password_reset(body.email)
    if token is not None:
        # mail delivery is not wired up; the token is only visible in debug logs
        logger.debug("Password reset token for %s: %s", body.email, token)
    return SuccessResponse(message="If that account exists, a reset link has been sent.")


@router.post("/password-reset/confirm", response_model=SuccessResponse)
def confirm_password_reset(
    body: PasswordResetConfirm,
    identity: IdentityProvider = Depends(get_identity),
    _rl=Depends(require_auth_rate_limit),
):
    identity.confirm_password_reset(body.token, body.new_password)
    return SuccessResponse(message="Password updated")
