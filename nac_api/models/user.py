"""
SQLModel-based User models with inheritance for security

UserBase (shared public fields)
    └─> Users (database table, adds credentials and session state)

The owned-device list is not stored on the user row: it is the set of
Devices rows whose user_id points here, ordered by bound_at.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from nac_api.config import AccountStatus, UserRole
from nac_api.utils import utcnow


class UserBase(SQLModel):
    """
    Base model with shared public fields for Users.

    These fields are safe to expose via the API.
    """

    student_id: str = Field(max_length=64)
    name: str = Field(max_length=120)
    email: str | None = Field(default=None, max_length=254)
    role: str = Field(default=UserRole.STUDENT, max_length=16)


class Users(UserBase, table=True):
    """
    Database table for users.

    Internal/sensitive fields (never exposed via the API):
    - password_hash: bcrypt hash, set only through CredentialStore
    - refresh_token_hash: SHA-256 of the single currently valid refresh token,
      NULL when logged out
    """

    __tablename__ = "users"

    __table_args__ = (
        Index("idx_users_student_id", "student_id", unique=True),
        Index("idx_users_status", "status"),
    )

    user_id: int | None = Field(default=None, primary_key=True)

    status: str = Field(default=AccountStatus.ACTIVE, max_length=16)

    # Authentication (highly sensitive - never expose)
    password_hash: str = Field(max_length=255)
    refresh_token_hash: str | None = Field(default=None, max_length=64)

    # Naive UTC from utcnow(); the columns carry no time zone
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime, sa_column_kwargs={"onupdate": utcnow}
    )

    @property
    def is_blocked(self) -> bool:
        return self.status == AccountStatus.BLOCKED

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
