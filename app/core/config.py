"""
Application configuration.
Values come from environment variables, falling back to a local .env file
so development works without exporting anything.
"""
import logging
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic Settings: reads from os.environ / .env
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str
    CORS_ORIGINS: list[str] = ["*"]

    # Identity (JWT issued by the accounts service)
    JWT_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # SendGrid Email
    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = "noreply@slotbook.app"
    SENDGRID_FROM_NAME: str = "SlotBook"

    # Public booking links point here
    FRONTEND_URL: str = "http://localhost:5173"

    # Scheduling defaults
    DEFAULT_TIMEZONE: str = "America/Sao_Paulo"
    DEFAULT_SLOT_DURATION: int = 30
    # Give a provider with no rules the Mon-Fri defaults on slot listing and booking
    AUTO_PROVISION_DEFAULT_AVAILABILITY: bool = True

    class Config:
        env_file = ".env"


settings = Settings()

# Validate critical security settings
if not settings.JWT_SECRET_KEY:
    raise ValueError(
        "JWT_SECRET_KEY is not set. Export it as an environment variable or add it to .env. "
        "Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )
