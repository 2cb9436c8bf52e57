"""
Pydantic schemas for device endpoints
"""

from pydantic import Field, field_validator

from nac_api.models.device import Devices
from nac_api.schemas.base import CamelModel, UTCDatetime, UTCDatetimeOptional


class DeviceResponse(CamelModel):
    """Device as listed under its owner."""

    id: int
    mac_address: str
    ip_address: str | None = None
    status: str
    user_id: int
    bound_at: UTCDatetime
    last_seen: UTCDatetimeOptional = None
    created_at: UTCDatetime

    @classmethod
    def from_device(cls, device: Devices) -> "DeviceResponse":
        return cls(
            id=device.device_id,
            mac_address=device.mac_address,
            ip_address=device.ip_address,
            status=device.status,
            user_id=device.user_id,
            bound_at=device.bound_at,
            last_seen=device.last_seen,
            created_at=device.created_at,
        )


class DeviceOwner(CamelModel):
    id: int
    student_id: str
    name: str
    email: str | None = None
    role: str
    status: str


class DeviceWithOwner(DeviceResponse):
    owner: DeviceOwner | None = None


class DeviceDetailResponse(CamelModel):
    success: bool = True
    message: str
    data: DeviceWithOwner


class DeviceListResponse(CamelModel):
    success: bool = True
    message: str = "Devices fetched"
    data: list[DeviceWithOwner]


class DeviceRegisterRequest(CamelModel):
    """Admin registration of a device for a student."""

    mac_address: str = Field(..., min_length=1, max_length=32)
    ip_address: str | None = Field(default=None, max_length=45)
    student_id: str = Field(..., min_length=1, max_length=64)

    @field_validator("student_id")
    @classmethod
    def strip_student_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("studentId must not be blank")
        return v


class DeviceRegisterResponse(CamelModel):
    success: bool = True
    message: str = "Device registered successfully"
    data: DeviceResponse


class DeviceStatusData(CamelModel):
    id: int
    mac_address: str
    status: str


class DeviceStatusResponse(CamelModel):
    success: bool = True
    message: str
    data: DeviceStatusData


class DeviceDeleteData(CamelModel):
    deleted_device_id: int
    mac_address: str


class DeviceDeleteResponse(CamelModel):
    success: bool = True
    message: str = "Device deleted successfully"
    data: DeviceDeleteData
