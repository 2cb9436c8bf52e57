"""
Admin API endpoints.

User and device inspection, block/unblock and deletion. Every route here
requires an access token with the admin role.
"""

from typing import Literal

from fastapi import APIRouter, Path, Query

from nac_api.api.dependencies import Credentials, DeviceRegistryDep
from nac_api.api.v1.devices import device_with_owner
from nac_api.config import AccountStatus, DeviceStatus
from nac_api.core.auth import AdminIdentity
from nac_api.core.logging import get_logger
from nac_api.schemas.device import (
    DeviceDeleteData,
    DeviceDeleteResponse,
    DeviceDetailResponse,
    DeviceListResponse,
    DeviceStatusData,
    DeviceStatusResponse,
)
from nac_api.schemas.user import (
    StatusUpdateRequest,
    UserDeleteData,
    UserDeleteResponse,
    UserDetail,
    UserDetailResponse,
    UserListResponse,
    UserStatusData,
    UserStatusResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ===== User Management =====


@router.get("/users", response_model=UserListResponse)
async def list_users(
    admin: AdminIdentity,
    credentials: Credentials,
    devices: DeviceRegistryDep,
    status: Literal["active", "blocked"] | None = Query(None, description="Account status"),
    role: Literal["admin", "student"] | None = Query(None, description="Filter by role"),
) -> UserListResponse:
    """List users, newest first, each with their devices in binding order."""
    users = await credentials.list_users(status=status, role=role)
    owned = await devices.list_for_users([u.user_id for u in users])  # type: ignore[misc]
    return UserListResponse(
        data=[
            UserDetail.from_user_and_devices(u, owned[u.user_id])  # type: ignore[index]
            for u in users
        ]
    )


@router.get("/users/{user_id}", response_model=UserDetailResponse)
async def get_user(
    admin: AdminIdentity,
    credentials: Credentials,
    devices: DeviceRegistryDep,
    user_id: int = Path(..., description="User ID"),
) -> UserDetailResponse:
    """Get a user with their devices in binding order."""
    user = await credentials.get_or_404(user_id)
    owned = await devices.list_for_user(user_id)
    return UserDetailResponse(
        message="User fetched",
        data=UserDetail.from_user_and_devices(user, owned),
    )


@router.put("/users/{user_id}/status", response_model=UserStatusResponse)
async def update_user_status(
    payload: StatusUpdateRequest,
    admin: AdminIdentity,
    credentials: Credentials,
    user_id: int = Path(..., description="User ID"),
) -> UserStatusResponse:
    """
    Block or unblock a user.

    Blocking revokes the user's refresh token; outstanding access tokens stay
    valid until they expire. Admins cannot block themselves.
    """
    user = await credentials.set_status(user_id, payload.status, acting_user_id=admin.user_id)
    verb = "blocked" if user.status == AccountStatus.BLOCKED else "unblocked"
    return UserStatusResponse(
        message=f"User {verb} successfully",
        data=UserStatusData(
            id=user.user_id,
            student_id=user.student_id,
            name=user.name,
            status=user.status,
        ),
    )


@router.delete("/users/{user_id}", response_model=UserDeleteResponse)
async def delete_user(
    admin: AdminIdentity,
    credentials: Credentials,
    user_id: int = Path(..., description="User ID"),
) -> UserDeleteResponse:
    """Delete a user and every device they own. Admins cannot delete themselves."""
    deleted_devices = await credentials.delete(user_id, acting_user_id=admin.user_id)
    return UserDeleteResponse(
        data=UserDeleteData(deleted_user_id=user_id, deleted_devices_count=deleted_devices)
    )


# ===== Device Management =====


@router.get("/devices", response_model=DeviceListResponse)
async def list_devices(
    admin: AdminIdentity,
    devices: DeviceRegistryDep,
    status: Literal["active", "blocked"] | None = Query(None, description="Device status"),
) -> DeviceListResponse:
    """List devices with their owners, most recently seen first."""
    rows = await devices.list_with_owners(status=status)
    return DeviceListResponse(
        message="Devices fetched successfully",
        data=[device_with_owner(device, owner) for device, owner in rows],
    )


@router.get("/devices/{device_id}", response_model=DeviceDetailResponse)
async def get_device(
    admin: AdminIdentity,
    credentials: Credentials,
    devices: DeviceRegistryDep,
    device_id: int = Path(..., description="Device ID"),
) -> DeviceDetailResponse:
    """Get a device with a summary of its owner."""
    device = await devices.get_or_404(device_id)
    owner = await credentials.find_by_id(device.user_id)
    return DeviceDetailResponse(message="Device fetched", data=device_with_owner(device, owner))


@router.put("/devices/{device_id}/status", response_model=DeviceStatusResponse)
async def update_device_status(
    payload: StatusUpdateRequest,
    admin: AdminIdentity,
    devices: DeviceRegistryDep,
    device_id: int = Path(..., description="Device ID"),
) -> DeviceStatusResponse:
    """Block or unblock a device. A blocked device fails every later login that presents it."""
    device = await devices.set_status(device_id, payload.status)
    verb = "blocked" if device.status == DeviceStatus.BLOCKED else "unblocked"
    logger.info("device_status_updated", device_id=device_id, actioned_by=admin.user_id)
    return DeviceStatusResponse(
        message=f"Device {verb} successfully",
        data=DeviceStatusData(
            id=device.device_id,
            mac_address=device.mac_address,
            status=device.status,
        ),
    )


@router.delete("/devices/{device_id}", response_model=DeviceDeleteResponse)
async def delete_device(
    admin: AdminIdentity,
    devices: DeviceRegistryDep,
    device_id: int = Path(..., description="Device ID"),
) -> DeviceDeleteResponse:
    """Delete a device; it disappears from its owner's device list."""
    device = await devices.delete(device_id)
    logger.info("device_deleted_by_admin", device_id=device_id, actioned_by=admin.user_id)
    return DeviceDeleteResponse(
        data=DeviceDeleteData(deleted_device_id=device_id, mac_address=device.mac_address)
    )
