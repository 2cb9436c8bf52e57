"""
Authentication schemas for request/response validation.

This module defines Pydantic models for authentication-related API operations:
- Login credentials (with optional device binding fields)
- Token responses
- Verified access token claims
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from nac_api.schemas.base import CamelModel
from nac_api.schemas.user import UserProjection


class LoginRequest(CamelModel):
    """
    Request schema for user login.

    The identifier is accepted as either "studentId" or "identifier".
    """

    student_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        validation_alias=AliasChoices("studentId", "identifier", "student_id"),
    )
    password: str = Field(..., min_length=1, max_length=255)
    mac_address: str | None = Field(default=None, max_length=32)
    ip_address: str | None = Field(default=None, max_length=45)
    is_randomized_mac: bool = Field(
        default=False,
        validation_alias=AliasChoices("isRandomizedMAC", "isRandomizedMac", "is_randomized_mac"),
    )

    @field_validator("student_id")
    @classmethod
    def strip_student_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("studentId and password are required")
        return v

    @field_validator("mac_address", "ip_address")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip() or None


class LoginData(CamelModel):
    access_token: str
    user: UserProjection


class LoginResponse(CamelModel):
    """Response schema for successful authentication."""

    success: bool = True
    message: str = "Login successful"
    data: LoginData


class AccessTokenData(CamelModel):
    access_token: str


class RefreshResponse(CamelModel):
    success: bool = True
    message: str = "Token refreshed"
    data: AccessTokenData


class AccessClaims(BaseModel):
    """Identity carried by a verified access token."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    student_id: str
    role: str


class IssuedTokens(BaseModel):
    """An access/refresh pair issued together."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
