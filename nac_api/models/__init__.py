"""
SQLModel table models.

Importing this package registers every table on SQLModel.metadata
(init_db() and the test fixtures rely on that).
"""

from nac_api.models.device import DeviceBase, Devices
from nac_api.models.user import UserBase, Users

__all__ = [
    "DeviceBase",
    "Devices",
    "UserBase",
    "Users",
]
