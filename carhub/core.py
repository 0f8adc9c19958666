"""Application configuration and settings management.

This module defines the application settings loaded from environment
variables and provides helper functions for accessing cached settings
and email configuration.
"""

from functools import lru_cache
from typing import List

from fastapi_mail import ConnectionConfig
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Database connection string.
        SECRET_KEY: Secret key used for JWT signing.
        ALGORITHM: Algorithm used to encode JWT tokens.
        ACCESS_TOKEN_EXPIRE_MINUTES: Access token lifetime in minutes.
        VERIFICATION_TOKEN_EXPIRE_HOURS: Lifetime of email verification links.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        REDIS_URL: Redis connection URL for rate limiting and token revocation.
        AUTH_RATE_LIMIT_TIMES: Requests allowed per window on login/register.
        AUTH_RATE_LIMIT_SECONDS: Length of the rate limit window.
        CLOUDINARY_URL: Cloudinary connection URL for profile photo uploads.
        MEDIA_ROOT: Local directory for uploads when Cloudinary is not set.
        MEDIA_URL: Public URL prefix under which MEDIA_ROOT is served.
        SMTP_FROM_EMAIL: Sender email address for outgoing emails.
        SMTP_USER: SMTP username.
        SMTP_PASSWORD: SMTP password.
        SMTP_PORT: SMTP server port.
        SMTP_HOST: SMTP server host.
        MAIL_SUPPRESS_SEND: Build messages without delivering them.
        BASE_URL: Base URL of the application.
        LOG_LEVEL: Root logging level.
        LOG_FILE: Optional path of a rotating log file.
        ADMIN_EMAIL: Email of the administrator created by the seeder.
        ADMIN_PASSWORD: Password of the seeded administrator.
        ADMIN_NAME: Display name of the seeded administrator.
    """

    DATABASE_URL: str = "sqlite:///./carhub.db"
    SECRET_KEY: str = "dev-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = 24
    ALLOWED_ORIGINS: List[str] = ["*"]
    REDIS_URL: str = "redis://redis:6379"
    AUTH_RATE_LIMIT_TIMES: int = 10
    AUTH_RATE_LIMIT_SECONDS: int = 60
    CLOUDINARY_URL: str | None = None
    MEDIA_ROOT: str = "./storage"
    MEDIA_URL: str = "/storage"
    SMTP_FROM_EMAIL: str = "noreply@example.com"
    SMTP_USER: str = "user"
    SMTP_PASSWORD: str = "password"
    SMTP_PORT: int = 1025
    SMTP_HOST: str = "localhost"
    MAIL_SUPPRESS_SEND: bool = False
    BASE_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None
    ADMIN_EMAIL: str = "admin@carhub.com"
    ADMIN_PASSWORD: str = "admin12345"
    ADMIN_NAME: str = "Administrator"

    class Config:
        """Pydantic configuration for loading environment variables."""

        env_file = ".env"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()


def get_mail_config() -> ConnectionConfig:
    """Create and return email configuration for FastAPI-Mail.

    Returns:
        ConnectionConfig: Configured email connection settings.
    """

    settings = get_settings()
    return ConnectionConfig(
        MAIL_USERNAME=settings.SMTP_USER,
        MAIL_PASSWORD=settings.SMTP_PASSWORD,
        MAIL_FROM=settings.SMTP_FROM_EMAIL,
        MAIL_PORT=settings.SMTP_PORT,
        MAIL_SERVER=settings.SMTP_HOST,
        MAIL_STARTTLS=True,
        MAIL_SSL_TLS=False,
        USE_CREDENTIALS=True,
        SUPPRESS_SEND=int(settings.MAIL_SUPPRESS_SEND),
    )
