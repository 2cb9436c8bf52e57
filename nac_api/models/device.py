"""
SQLModel-based Device model.

A device is identified by its normalized MAC address and belongs to exactly
one user at a time (user_id). Reassignment is a single UPDATE of user_id, so
the old owner's list loses the device in the same write that adds it to the
new owner's list.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from nac_api.config import DeviceStatus
from nac_api.utils import utcnow


class DeviceBase(SQLModel):
    """Public device fields."""

    mac_address: str = Field(max_length=17)
    ip_address: str | None = Field(default=None, max_length=45)  # Supports IPv6
    status: str = Field(default=DeviceStatus.ACTIVE, max_length=16)


class Devices(DeviceBase, table=True):
    """
    Database table for registered devices.

    - mac_address is unique; a concurrent duplicate insert fails on the index
    - bound_at is when the device joined its current owner's list and defines
      list order
    """

    __tablename__ = "devices"

    __table_args__ = (
        Index("idx_devices_mac_address", "mac_address", unique=True),
        Index("idx_devices_user_id", "user_id"),
        Index("idx_devices_last_seen", "last_seen"),
    )

    device_id: int | None = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="users.user_id", ondelete="CASCADE")

    bound_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    last_seen: datetime | None = Field(default=None, sa_type=DateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime, sa_column_kwargs={"onupdate": utcnow}
    )

    @property
    def is_blocked(self) -> bool:
        return self.status == DeviceStatus.BLOCKED
