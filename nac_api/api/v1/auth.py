"""
Authentication API endpoints.

This module provides endpoints for:
- User login (JWT access token + rotating refresh token cookie, device binding)
- Token refresh (with rotation)
- Logout (revoke refresh token)
- Own profile
- Admin-only user registration
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from nac_api.api.dependencies import Credentials, DeviceRegistryDep, Orchestrator, Tokens
from nac_api.config import Settings
from nac_api.core.auth import (
    AdminIdentity,
    CurrentIdentity,
    get_refresh_token_from_cookie,
    get_settings,
)
from nac_api.core.database import with_timeout
from nac_api.core.errors import NotFoundError
from nac_api.core.logging import get_logger
from nac_api.schemas.auth import (
    AccessTokenData,
    LoginData,
    LoginRequest,
    LoginResponse,
    RefreshResponse,
)
from nac_api.schemas.base import MessageResponse
from nac_api.schemas.user import (
    RegisterRequest,
    RegisterResponse,
    UserDetail,
    UserDetailResponse,
    UserProjection,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Authentication"])


def _set_refresh_cookie(response: Response, refresh_token: str, config: Settings) -> None:
    """
    Set the refresh token as a path-scoped HTTPOnly cookie.

    The access token is never put in a cookie; clients send it as a bearer header.
    """
    response.set_cookie(
        key=config.REFRESH_COOKIE_NAME,
        value=refresh_token,
        httponly=True,  # Prevent JavaScript access (XSS protection)
        secure=config.cookie_secure,  # HTTPS only in production
        samesite=config.REFRESH_COOKIE_SAMESITE,  # type: ignore[arg-type]
        path=config.REFRESH_COOKIE_PATH,
        max_age=config.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,  # seconds
    )


def _clear_refresh_cookie(response: Response, config: Settings) -> None:
    # Must match set_cookie params or browsers keep the old cookie
    response.delete_cookie(
        key=config.REFRESH_COOKIE_NAME,
        path=config.REFRESH_COOKIE_PATH,
        httponly=True,
        secure=config.cookie_secure,
        samesite=config.REFRESH_COOKIE_SAMESITE,  # type: ignore[arg-type]
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    response: Response,
    orchestrator: Orchestrator,
    config: Annotated[Settings, Depends(get_settings)],
) -> LoginResponse:
    """
    Authenticate a user, bind the presenting device, and open a session.

    The refresh token is set as an HTTPOnly cookie; the access token and a
    minimal user projection are returned in the body.

    Flow:
    1. Reject randomized MAC addresses
    2. Verify studentId/password (same 401 for unknown user and wrong password)
    3. Reject blocked accounts
    4. Bind or rebind the device when macAddress is given (cap enforced)
    5. Issue access + refresh tokens, store the refresh token hash
    """
    result = await orchestrator.login(credentials)

    _set_refresh_cookie(response, result.tokens.refresh_token, config)

    return LoginResponse(
        data=LoginData(
            access_token=result.tokens.access_token,
            user=UserProjection.from_user(result.user),
        )
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(
    response: Response,
    refresh_token: Annotated[str, Depends(get_refresh_token_from_cookie)],
    tokens: Tokens,
    config: Annotated[Settings, Depends(get_settings)],
) -> RefreshResponse:
    """
    Exchange the refresh token cookie for a new access token.

    Implements rotation-on-use: the presented refresh token is superseded by a
    new one (set as the new cookie) and can never be used again.
    """
    issued = await with_timeout(tokens.rotate_refresh_token(refresh_token), config)

    _set_refresh_cookie(response, issued.refresh_token, config)

    return RefreshResponse(data=AccessTokenData(access_token=issued.access_token))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    identity: CurrentIdentity,
    response: Response,
    tokens: Tokens,
    config: Annotated[Settings, Depends(get_settings)],
) -> MessageResponse:
    """
    Logout by revoking the caller's refresh token and clearing the cookie.

    Revocation is best-effort: the client always gets 200.
    """
    try:
        await with_timeout(tokens.revoke(identity.user_id), config)
    except Exception:
        logger.warning("logout_revocation_failed", target_user_id=identity.user_id, exc_info=True)

    _clear_refresh_cookie(response, config)

    return MessageResponse(message="Logged out successfully")


@router.get("/profile", response_model=UserDetailResponse)
async def get_profile(
    identity: CurrentIdentity,
    credentials: Credentials,
    devices: DeviceRegistryDep,
) -> UserDetailResponse:
    """Return the caller's own projection and device list."""
    user = await credentials.find_by_id(identity.user_id)
    if user is None:
        raise NotFoundError("User not found")

    owned = await devices.list_for_user(identity.user_id)
    return UserDetailResponse(
        message="Profile fetched",
        data=UserDetail.from_user_and_devices(user, owned),
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    admin: AdminIdentity,
    credentials: Credentials,
) -> RegisterResponse:
    """Create a user account. Admin only."""
    user = await credentials.create(
        student_id=payload.student_id,
        name=payload.name,
        password=payload.password,
        email=payload.email,
        role=payload.role,
    )
    logger.info("user_registered", created_user_id=user.user_id, actioned_by=admin.user_id)
    return RegisterResponse(data=UserProjection.from_user(user))
