"""
Device API endpoints (admin only).
"""

from fastapi import APIRouter, status

from nac_api.api.dependencies import DeviceRegistryDep
from nac_api.core.auth import AdminIdentity
from nac_api.core.logging import get_logger
from nac_api.models.device import Devices
from nac_api.models.user import Users
from nac_api.schemas.device import (
    DeviceListResponse,
    DeviceOwner,
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    DeviceResponse,
    DeviceWithOwner,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/devices", tags=["Devices"])


def device_with_owner(device: Devices, owner: Users | None) -> DeviceWithOwner:
    """Render a device together with a summary of its owner."""
    return DeviceWithOwner(
        **DeviceResponse.from_device(device).model_dump(),
        owner=DeviceOwner(
            id=owner.user_id,
            student_id=owner.student_id,
            name=owner.name,
            email=owner.email,
            role=owner.role,
            status=owner.status,
        )
        if owner is not None
        else None,
    )


@router.post(
    "/register", response_model=DeviceRegisterResponse, status_code=status.HTTP_201_CREATED
)
async def register_device(
    payload: DeviceRegisterRequest,
    admin: AdminIdentity,
    devices: DeviceRegistryDep,
) -> DeviceRegisterResponse:
    """
    Register a new device for a student.

    Fails with 409 if the MAC is already registered and 403 if the student is
    already at the device cap. Reassigning an existing MAC only happens at login.
    """
    device = await devices.register(payload.mac_address, payload.ip_address, payload.student_id)
    logger.info("device_registered_by_admin", device_id=device.device_id, actioned_by=admin.user_id)
    return DeviceRegisterResponse(data=DeviceResponse.from_device(device))


@router.get("", response_model=DeviceListResponse)
async def list_devices(
    admin: AdminIdentity,
    devices: DeviceRegistryDep,
) -> DeviceListResponse:
    """List every device with its owner, most recently seen first."""
    rows = await devices.list_with_owners()
    return DeviceListResponse(data=[device_with_owner(device, owner) for device, owner in rows])
