"""
Configuration management for the Mini App Auth Backend.
Handles environment variables and application settings for init data validation
and user profile synchronization.
"""

from typing import Annotated, Any, List, Optional

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Mini App Auth Backend"
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # CORS
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    ALLOWED_HOSTS: Annotated[List[str], NoDecode] = [
        "localhost",
        "127.0.0.1",
    ]
    # Native clients and curl send no Origin header at all
    ALLOW_REQUESTS_WITHOUT_ORIGIN: bool = True

    # Telegram Mini App
    TELEGRAM_BOT_TOKEN: Optional[SecretStr] = None
    INIT_DATA_MAX_AGE_SECONDS: int = 24 * 60 * 60
    INIT_DATA_ENFORCE_MAX_AGE: bool = False

    # User store
    USER_STORE_BACKEND: str = "mongodb"
    USERS_COLLECTION: str = "users"

    # Database - MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "miniapp_auth"
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[str] = None

    # MongoDB Environment Variables (from .env)
    MONGO_URI: Optional[str] = None
    MONGO_DB_NAME: Optional[str] = None

    # Profile defaults
    DEFAULT_FIRST_NAME: str = "User"
    DEFAULT_LANGUAGE_CODE: str = "en"
    REFERRAL_CODE_MAX_ATTEMPTS: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"

    def get_effective_cors_origins(self) -> List[str]:
        """
        Get effective CORS origins based on environment.
        Local dev server origins are only whitelisted outside production.
        """
        origins = list(self.ALLOWED_ORIGINS)

        if self.ENVIRONMENT != "production":
            for port in (5173, 3000):
                for host in ("localhost", "127.0.0.1"):
                    origin = f"http://{host}:{port}"
                    if origin not in origins:
                        origins.append(origin)

        return origins

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("ALLOWED_HOSTS", mode="before")
    @classmethod
    def parse_allowed_hosts(cls, v):
        """Parse allowed hosts from string or list."""
        if isinstance(v, str):
            return [host.strip() for host in v.split(",") if host.strip()]
        return v

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_envs = ["development", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of {allowed_envs}")
        return v

    @field_validator("USER_STORE_BACKEND")
    @classmethod
    def validate_user_store_backend(cls, v):
        """Validate user store backend setting."""
        allowed_backends = ["mongodb", "memory"]
        v = v.strip().lower()
        if v not in allowed_backends:
            raise ValueError(f"User store backend must be one of {allowed_backends}")
        return v

    @field_validator("INIT_DATA_MAX_AGE_SECONDS", "REFERRAL_CODE_MAX_ATTEMPTS")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Value must be a positive integer")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    def model_post_init(self, __context: Any) -> None:  # type: ignore[override]
        """Treat a blank bot token the same as an unset one."""
        if (
            self.TELEGRAM_BOT_TOKEN is not None
            and not self.TELEGRAM_BOT_TOKEN.get_secret_value().strip()
        ):
            self.TELEGRAM_BOT_TOKEN = None


# Create global settings instance
settings = Settings()


def get_bot_token() -> Optional[str]:
    """
    Get the platform-issued bot token used to verify init data.

    Returns:
        Optional[str]: Bot token, or None when not configured
    """
    if settings.TELEGRAM_BOT_TOKEN is None:
        return None
    return settings.TELEGRAM_BOT_TOKEN.get_secret_value() or None


def get_mongodb_url() -> str:
    """
    Get MongoDB connection URL with authentication if credentials are provided.

    Returns:
        str: MongoDB connection URL
    """
    # Use MONGO_URI from environment if available
    if settings.MONGO_URI:
        return settings.MONGO_URI

    # Fallback to MONGODB_URL with authentication
    if settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD:
        base_url = settings.MONGODB_URL.replace("mongodb://", "")
        if "@" not in base_url:  # No existing auth in URL
            return f"mongodb://{settings.MONGODB_USERNAME}:{settings.MONGODB_PASSWORD}@{base_url}"

    return settings.MONGODB_URL


def get_mongodb_database_name() -> str:
    """
    Get MongoDB database name.

    Returns:
        str: MongoDB database name
    """
    if settings.MONGO_DB_NAME:
        return settings.MONGO_DB_NAME

    return settings.MONGODB_DATABASE


def is_production() -> bool:
    """Check if running in production environment."""
    return settings.ENVIRONMENT == "production"


def is_development() -> bool:
    """Check if running in development environment."""
    return settings.ENVIRONMENT == "development"
