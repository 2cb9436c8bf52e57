"""
Service providers for route handlers.

Each request gets services bound to its own database session and to the
process-wide Settings (overridable in tests via get_settings).
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nac_api.config import Settings
from nac_api.core.auth import get_settings
from nac_api.core.database import get_db
from nac_api.services.credentials import CredentialStore
from nac_api.services.devices import DeviceRegistry
from nac_api.services.login import LoginOrchestrator
from nac_api.services.tokens import TokenService


def get_credential_store(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[Settings, Depends(get_settings)],
) -> CredentialStore:
    return CredentialStore(db, config)


def get_device_registry(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[Settings, Depends(get_settings)],
) -> DeviceRegistry:
    return DeviceRegistry(db, config)


def get_token_service(
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
    config: Annotated[Settings, Depends(get_settings)],
) -> TokenService:
    return TokenService(config, credentials)


def get_login_orchestrator(
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
    devices: Annotated[DeviceRegistry, Depends(get_device_registry)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    config: Annotated[Settings, Depends(get_settings)],
) -> LoginOrchestrator:
    return LoginOrchestrator(credentials, devices, tokens, config)


Credentials = Annotated[CredentialStore, Depends(get_credential_store)]
DeviceRegistryDep = Annotated[DeviceRegistry, Depends(get_device_registry)]
Tokens = Annotated[TokenService, Depends(get_token_service)]
Orchestrator = Annotated[LoginOrchestrator, Depends(get_login_orchestrator)]
