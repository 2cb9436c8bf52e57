"""
Token service: JWT access/refresh issuance, verification, rotation and revocation.

- Access tokens are stateless: signature + expiry only, never individually revocable.
- Refresh tokens are signed with a separate secret and are only honoured while
  their SHA-256 fingerprint equals users.refresh_token_hash. Every successful
  refresh replaces that fingerprint (rotation-on-use), so a refresh token works
  exactly once.
"""

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from nac_api.config import Settings, TokenType
from nac_api.core.errors import (
    InternalError,
    InvalidTokenError,
    RevokedTokenError,
    UserBlockedError,
)
from nac_api.core.logging import get_logger
from nac_api.core.security import hash_token
from nac_api.models.user import Users
from nac_api.schemas.auth import AccessClaims, IssuedTokens
from nac_api.services.credentials import CredentialStore

logger = get_logger(__name__)


class TokenService:
    """Issues and validates tokens; rotation and revocation go through the CredentialStore."""

    def __init__(self, settings: Settings, credentials: CredentialStore | None = None) -> None:
        self.settings = settings
        self.credentials = credentials

    def issue_access_token(self, user: Users) -> str:
        if user.user_id is None:
            raise ValueError("User ID cannot be None")
        now = datetime.now(UTC)
        payload = {
            "sub": str(user.user_id),
            "student_id": user.student_id,
            "role": user.role,
            "type": TokenType.ACCESS,
            "iat": now,
            "exp": now + timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        }
        return self._encode(payload, self.settings.ACCESS_TOKEN_SECRET)

    def issue_refresh_token(self, user: Users) -> str:
        if user.user_id is None:
            raise ValueError("User ID cannot be None")
        now = datetime.now(UTC)
        payload = {
            "sub": str(user.user_id),
            "type": TokenType.REFRESH,
            # Unique per issuance so two tokens minted in the same second differ
            "jti": secrets.token_urlsafe(16),
            "iat": now,
            "exp": now + timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS),
        }
        return self._encode(payload, self.settings.REFRESH_TOKEN_SECRET)

    def issue_pair(self, user: Users) -> IssuedTokens:
        return IssuedTokens(
            access_token=self.issue_access_token(user),
            refresh_token=self.issue_refresh_token(user),
        )

    def verify_access_token(self, token: str) -> AccessClaims:
        """
        Verify signature, expiry and token type of an access token.

        Raises:
            InvalidTokenError: for any malformed, forged, expired or wrong-type token
        """
        payload = self._decode(token, self.settings.ACCESS_TOKEN_SECRET, TokenType.ACCESS)
        try:
            return AccessClaims(
                user_id=int(payload["sub"]),
                student_id=payload["student_id"],
                role=payload["role"],
            )
        except (KeyError, ValueError, TypeError) as exc:
            raise InvalidTokenError() from exc

    def decode_refresh_token(self, token: str) -> int:
        """Verify a refresh token cryptographically and return its user id."""
        payload = self._decode(token, self.settings.REFRESH_TOKEN_SECRET, TokenType.REFRESH)
        try:
            return int(payload["sub"])
        except (KeyError, ValueError, TypeError) as exc:
            raise InvalidTokenError("Invalid refresh token") from exc

    async def start_session(self, user: Users) -> IssuedTokens:
        """Issue a fresh pair and make its refresh token the user's only valid one."""
        tokens = self.issue_pair(user)
        await self._store().set_refresh_hash(user.user_id, hash_token(tokens.refresh_token))  # type: ignore[arg-type]
        return tokens

    async def rotate_refresh_token(self, presented: str) -> IssuedTokens:
        """
        Exchange a refresh token for a new access/refresh pair.

        Raises:
            InvalidTokenError: bad signature, expired, or not a refresh token
            UserBlockedError: user no longer exists or is blocked
            RevokedTokenError: token was superseded, revoked, or lost a concurrent race
        """
        user_id = self.decode_refresh_token(presented)
        store = self._store()

        user = await store.find_by_id(user_id)
        if user is None or user.is_blocked:
            logger.info("refresh_rejected_user_unavailable", target_user_id=user_id)
            raise UserBlockedError()

        presented_hash = hash_token(presented)
        if user.refresh_token_hash is None or not secrets.compare_digest(
            user.refresh_token_hash, presented_hash
        ):
            logger.warning("refresh_token_reuse_rejected", target_user_id=user_id)
            raise RevokedTokenError()

        tokens = self.issue_pair(user)
        swapped = await store.swap_refresh_hash(
            user_id, presented_hash, hash_token(tokens.refresh_token)
        )
        if not swapped:
            logger.warning("refresh_token_race_lost", target_user_id=user_id)
            raise RevokedTokenError()

        logger.info("refresh_token_rotated", target_user_id=user_id)
        return tokens

    async def revoke(self, user_id: int) -> None:
        """Clear the stored refresh-token hash, invalidating every outstanding refresh token."""
        await self._store().clear_refresh_hash(user_id)
        logger.info("refresh_token_revoked", target_user_id=user_id)

    def _store(self) -> CredentialStore:
        if self.credentials is None:
            raise RuntimeError("TokenService was built without a CredentialStore")
        return self.credentials

    def _encode(self, payload: dict[str, Any], secret: str) -> str:
        try:
            return jwt.encode(payload, secret, algorithm=self.settings.ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as exc:
            raise InternalError("Token signing failed") from exc

    def _decode(self, token: str, secret: str, expected_type: str) -> dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.ALGORITHM],
                options={"verify_exp": True, "verify_signature": True, "require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidTokenError("Token has expired") from exc
        except jwt.PyJWTError as exc:
            raise InvalidTokenError() from exc

        if payload.get("type") != expected_type:
            raise InvalidTokenError()
        return payload
