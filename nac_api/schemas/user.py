"""
Pydantic schemas for user endpoints.

UserProjection is the only shape a user is ever rendered in outside the
database layer; it never carries password_hash or refresh_token_hash.
"""

from typing import Literal

from pydantic import EmailStr, Field, field_validator

from nac_api.core.security import validate_password_strength
from nac_api.models.user import Users
from nac_api.schemas.base import CamelModel, UTCDatetime
from nac_api.schemas.device import DeviceResponse


class UserProjection(CamelModel):
    """Minimal public view of a user."""

    id: int
    student_id: str
    name: str
    email: str | None = None
    role: str

    @classmethod
    def from_user(cls, user: Users) -> "UserProjection":
        return cls(
            id=user.user_id,
            student_id=user.student_id,
            name=user.name,
            email=user.email,
            role=user.role,
        )


class UserDetail(UserProjection):
    """User view for profile and admin lookups, with the ordered device list."""

    status: str
    created_at: UTCDatetime
    devices: list[DeviceResponse] = Field(default_factory=list)

    @classmethod
    def from_user_and_devices(cls, user: Users, devices: list) -> "UserDetail":
        return cls(
            **UserProjection.from_user(user).model_dump(),
            status=user.status,
            created_at=user.created_at,
            devices=[DeviceResponse.from_device(d) for d in devices],
        )


class UserDetailResponse(CamelModel):
    success: bool = True
    message: str
    data: UserDetail


class UserListResponse(CamelModel):
    success: bool = True
    message: str = "Users fetched successfully"
    data: list[UserDetail]


class RegisterRequest(CamelModel):
    """Request schema for admin-initiated user registration."""

    student_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr | None = None
    password: str = Field(..., min_length=1, max_length=255)
    role: str | None = None

    @field_validator("student_id", "name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field must not be blank")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Validate password strength."""
        is_valid, error_message = validate_password_strength(v)
        if not is_valid:
            raise ValueError(error_message)
        return v


class RegisterResponse(CamelModel):
    success: bool = True
    message: str = "User registered successfully"
    data: UserProjection


class StatusUpdateRequest(CamelModel):
    """Body for block/unblock endpoints (users and devices)."""

    status: Literal["active", "blocked"]


class UserStatusData(CamelModel):
    id: int
    student_id: str
    name: str
    status: str


class UserStatusResponse(CamelModel):
    success: bool = True
    message: str
    data: UserStatusData


class UserDeleteData(CamelModel):
    deleted_user_id: int
    deleted_devices_count: int


class UserDeleteResponse(CamelModel):
    success: bool = True
    message: str = "User and associated devices deleted successfully"
    data: UserDeleteData
