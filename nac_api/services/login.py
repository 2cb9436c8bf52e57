"""
Login orchestrator: the single entry point that turns credentials into a session.

Steps, each a possible terminal failure:
  1. identifier and password present            -> BadRequestError
  2. randomized MAC flag                          -> PolicyViolationError
  3. user lookup                                  -> InvalidCredentialsError
  4. password check                               -> InvalidCredentialsError
  5. account status                               -> AccountBlockedError
  6. device binding (when a MAC is supplied)      -> DeviceLimitExceeded/DeviceBlocked/PolicyViolation
  7. token issuance + refresh hash persisted
Tokens are only issued once every earlier step has passed.
"""

from typing import NamedTuple

from nac_api.config import Settings
from nac_api.core.database import with_timeout
from nac_api.core.errors import (
    AccountBlockedError,
    BadRequestError,
    InvalidCredentialsError,
    PolicyViolationError,
)
from nac_api.core.logging import get_logger
from nac_api.core.security import verify_password
from nac_api.models.device import Devices
from nac_api.models.user import Users
from nac_api.schemas.auth import IssuedTokens, LoginRequest
from nac_api.services.credentials import CredentialStore
from nac_api.services.devices import DeviceRegistry
from nac_api.services.tokens import TokenService

logger = get_logger(__name__)

# Verified against when the identifier is unknown, so both failure paths cost one bcrypt check
_DUMMY_PASSWORD_HASH = "$2b$12$C6UzMDM.H6dfI/f/IKcEeO5Tq0lmHyFVqqXfU1r5w5tSRjZ7Wq9m6"


class LoginResult(NamedTuple):
    """Outcome of a successful login."""

    user: Users
    tokens: IssuedTokens
    device: Devices | None = None


class LoginOrchestrator:
    def __init__(
        self,
        credentials: CredentialStore,
        devices: DeviceRegistry,
        tokens: TokenService,
        settings: Settings,
    ) -> None:
        self.credentials = credentials
        self.devices = devices
        self.tokens = tokens
        self.settings = settings

    async def login(self, request: LoginRequest) -> LoginResult:
        if not request.student_id.strip() or not request.password:
            raise BadRequestError("studentId and password are required")

        if request.is_randomized_mac:
            logger.info("login_rejected", reason="randomized_mac", student_id=request.student_id)
            raise PolicyViolationError()

        user = await with_timeout(
            self.credentials.find_by_identifier(request.student_id), self.settings
        )
        if user is None:
            verify_password(request.password, _DUMMY_PASSWORD_HASH)
            logger.info("login_rejected", reason="invalid_credentials")
            raise InvalidCredentialsError()

        if not verify_password(request.password, user.password_hash):
            logger.info("login_rejected", reason="invalid_credentials", target_user_id=user.user_id)
            raise InvalidCredentialsError()

        if user.is_blocked:
            logger.info("login_rejected", reason="account_blocked", target_user_id=user.user_id)
            raise AccountBlockedError()

        user_id = user.user_id
        device = None
        if request.mac_address:
            device = await with_timeout(
                self.devices.register_or_rebind(
                    request.mac_address,
                    request.ip_address,
                    user,
                    is_randomized_mac=request.is_randomized_mac,
                ),
                self.settings,
            )
            # Reload: binding commits (and may roll back a lost insert race)
            user = await with_timeout(self.credentials.find_by_id(user_id), self.settings)  # type: ignore[arg-type]
            if user is None:
                raise InvalidCredentialsError()
            if user.is_blocked:
                raise AccountBlockedError()

        tokens = await with_timeout(self.tokens.start_session(user), self.settings)

        logger.info(
            "login_succeeded",
            target_user_id=user_id,
            device_id=device.device_id if device else None,
        )
        return LoginResult(user=user, tokens=tokens, device=device)
