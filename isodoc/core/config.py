from pydantic_settings import BaseSettings
from typing import List, Optional
from functools import lru_cache

class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "ISO Document Manager"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"
    FRONTEND_URL: str = "http://localhost:5173"
    PUBLIC_API_URL: str = "http://localhost:8000"
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    # Security
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    BCRYPT_ROUNDS: int = 12
    SESSION_TTL_MINUTES: int = 60
    REMEMBER_ME_TTL_DAYS: int = 7
    ENCRYPTION_KEY: Optional[str] = None
    LINK_SECRET_KEY: Optional[str] = None
    RATE_LIMIT_ENABLED: Optional[bool] = None

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./isodoc.db"

    # Default admin created on first startup
    DEFAULT_ADMIN_EMAIL: Optional[str] = None
    DEFAULT_ADMIN_PASSWORD: Optional[str] = None

    # Google Drive
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/api/v1/google/callback"
    GOOGLE_TOKEN_URI: str = "https://oauth2.googleapis.com/token"
    DRIVE_CALL_TIMEOUT_SECONDS: float = 60.0

    # Sync
    SYNC_INTERVAL_SECONDS: int = 900
    SYNC_ON_STARTUP: bool = True
    SCRATCH_DIR: Optional[str] = None

    # Files
    ENCRYPTED_CACHE_DIR: str = "encrypted_cache"
    BACKUP_DIR: str = "backups"
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024

    # Expiry notifications
    EXPIRY_CHECK_INTERVAL_SECONDS: int = 86400
    DEFAULT_WARNING_DAYS: int = 30

    # Email
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USE_TLS: bool = True
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    MAIL_FROM: str = "noreply@isodocs.local"
    CONTACT_EMAIL: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def rate_limit_enabled(self) -> bool:
        if self.RATE_LIMIT_ENABLED is None:
            return self.is_production
        return self.RATE_LIMIT_ENABLED

    class Config:
        env_file = ".env"
        case_sensitive = True

def validate_production_settings(settings: Settings) -> List[str]:
    """Return the configuration problems that must block a production start."""
    problems = []
    if not settings.is_production:
        return problems
    for name in ("SECRET_KEY", "ENCRYPTION_KEY", "LINK_SECRET_KEY"):
        value = getattr(settings, name)
        if not value:
            problems.append(f"{name} is not set")
        elif len(value) < 32:
            problems.append(f"{name} must be at least 32 characters")
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        problems.append("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET are required")
    return problems

@lru_cache()
def get_settings():
    return Settings()
