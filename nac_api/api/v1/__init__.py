"""
API v1 Router
"""

from fastapi import APIRouter

from nac_api.api.v1 import admin, auth, devices

router = APIRouter()

# Include all endpoint routers
router.include_router(auth.router)
router.include_router(devices.router)
router.include_router(admin.router)

__all__ = ["router"]
