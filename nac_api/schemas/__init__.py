"""
Pydantic schemas for request/response validation
"""

from nac_api.schemas.auth import AccessClaims, IssuedTokens, LoginRequest, LoginResponse
from nac_api.schemas.base import CamelModel, MessageResponse
from nac_api.schemas.device import DeviceResponse, DeviceWithOwner
from nac_api.schemas.user import UserDetail, UserProjection

__all__ = [
    "AccessClaims",
    "CamelModel",
    "DeviceResponse",
    "DeviceWithOwner",
    "IssuedTokens",
    "LoginRequest",
    "LoginResponse",
    "MessageResponse",
    "UserDetail",
    "UserProjection",
]
