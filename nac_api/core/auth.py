"""
Authentication dependencies for FastAPI route protection.

This module provides dependency functions for:
- Extracting and verifying bearer access tokens from requests
- Exposing the verified identity (user id, student id, role) to handlers
- Gating routes on an allow-list of roles
- Reading the refresh token from its HTTPOnly cookie
"""

from collections.abc import Callable, Coroutine
from typing import Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from nac_api.config import Settings, UserRole, settings
from nac_api.core.errors import ForbiddenError, UnauthenticatedError
from nac_api.core.logging import set_user_context
from nac_api.schemas.auth import AccessClaims
from nac_api.services.tokens import TokenService


def get_settings() -> Settings:
    """Settings dependency; tests override it to inject their own configuration."""
    return settings


def extract_bearer_token(authorization: str | None) -> str:
    """
    Pull the token out of an `Authorization: Bearer <token>` header value.

    Raises:
        UnauthenticatedError: header absent or not a bearer credential
    """
    if not authorization:
        raise UnauthenticatedError("Missing access token")
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise UnauthenticatedError("Missing access token")
    return token


async def get_current_identity(
    request: Request,
    config: Annotated[Settings, Depends(get_settings)],
    _credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(HTTPBearer(auto_error=False))
    ] = None,
) -> AccessClaims:
    """
    Verify the bearer access token and return the caller's identity.

    Note: The _credentials parameter is for OpenAPI documentation only.
    The header is parsed by extract_bearer_token so malformed values get the
    same 401 as missing ones.

    Raises:
        UnauthenticatedError: 401 if token is missing, malformed, invalid, or expired
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    claims = TokenService(config).verify_access_token(token)
    request.state.identity = claims
    set_user_context(claims.user_id)
    return claims


def require_roles(
    *roles: str,
) -> Callable[[AccessClaims], Coroutine[Any, Any, AccessClaims]]:
    """
    Create a FastAPI dependency that requires the caller's role to be in `roles`.

    Example:
        @router.delete("/devices/{device_id}")
        async def delete_device(identity: Annotated[AccessClaims, Depends(require_roles("admin"))]):
            ...

    Raises:
        ForbiddenError: 403 if the authenticated role is not allowed
    """
    allowed = frozenset(roles)

    async def role_checker(
        identity: Annotated[AccessClaims, Depends(get_current_identity)],
    ) -> AccessClaims:
        if identity.role not in allowed:
            raise ForbiddenError()
        return identity

    return role_checker


def get_refresh_token_from_cookie(
    request: Request,
    config: Annotated[Settings, Depends(get_settings)],
) -> str:
    """
    Extract refresh token from its HTTPOnly cookie (never from the body).

    Raises:
        UnauthenticatedError: 401 if the cookie is missing
    """
    refresh_token = request.cookies.get(config.REFRESH_COOKIE_NAME)
    if not refresh_token:
        raise UnauthenticatedError("No refresh token")
    return refresh_token


# Type aliases for dependency injection
CurrentIdentity = Annotated[AccessClaims, Depends(get_current_identity)]
AdminIdentity = Annotated[AccessClaims, Depends(require_roles(UserRole.ADMIN))]
