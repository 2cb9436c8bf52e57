"""
Application Configuration
Uses Pydantic Settings for environment-based configuration.

The Settings object is frozen: it is built once at process start and handed to
services by injection (TokenService, DeviceRegistry, LoginOrchestrator).
"""

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # Application
    PROJECT_NAME: str = "NAC Admin API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    DEBUG: bool = Field(default=False)
    API_PREFIX: str = "/api"

    # Security
    ACCESS_TOKEN_SECRET: str
    REFRESH_TOKEN_SECRET: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30, ge=1)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, ge=1)
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # Refresh token cookie
    REFRESH_COOKIE_NAME: str = "refresh_token"
    REFRESH_COOKIE_PATH: str = "/api/users"
    REFRESH_COOKIE_SAMESITE: str = Field(default="strict", pattern="^(lax|strict)$")

    # Device policy
    MAX_DEVICES_PER_USER: int = Field(default=5, ge=1)

    # Roles accepted at registration. Set to "admin" for the admin-only deployment.
    ALLOWED_ROLES: str | list[str] = Field(default=["admin", "student"])

    # CORS
    # Allow str because it can be a comma-separated string in .env
    CORS_ORIGINS: str | list[str] = Field(default=["http://localhost:5173"])

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False
    DB_AUTO_CREATE: bool = True
    DB_OPERATION_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("ALLOWED_ROLES", mode="before")
    @classmethod
    def parse_allowed_roles(cls, v: str | list[str]) -> list[str]:
        """Parse allowed roles from comma-separated string"""
        if isinstance(v, str):
            v = [role.strip() for role in v.split(",") if role.strip()]
        unknown = set(v) - set(UserRole.ALL)
        if unknown:
            raise ValueError(f"Unknown roles in ALLOWED_ROLES: {sorted(unknown)}")
        if UserRole.ADMIN not in v:
            raise ValueError("ALLOWED_ROLES must include admin")
        return v

    @model_validator(mode="after")
    def check_secrets_and_rounds(self) -> "Settings":
        if self.ACCESS_TOKEN_SECRET == self.REFRESH_TOKEN_SECRET:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ")
        if self.ENVIRONMENT == "production" and self.BCRYPT_ROUNDS < 12:
            raise ValueError("BCRYPT_ROUNDS must be at least 12 in production")
        return self

    @property
    def cookie_secure(self) -> bool:
        return self.ENVIRONMENT == "production"


class UserRole:
    """User role constants"""

    ADMIN = "admin"
    STUDENT = "student"

    ALL = (ADMIN, STUDENT)


class AccountStatus:
    """User account status constants"""

    ACTIVE = "active"
    BLOCKED = "blocked"

    ALL = (ACTIVE, BLOCKED)


class DeviceStatus:
    """Device status constants"""

    ACTIVE = "active"
    BLOCKED = "blocked"

    ALL = (ACTIVE, BLOCKED)


class TokenType:
    """JWT token type claim values"""

    ACCESS = "access"
    REFRESH = "refresh"


# Create global settings instance

load_dotenv()
settings = Settings()  # type: ignore[call-arg]
