"""Application configuration"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Helpdesk API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Security
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 1440  # 24 hours

    # Database
    DATABASE_URL: str

    # URLs
    FRONTEND_URL: str = "http://localhost:3000"

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Tickets
    # WHY: Ticket numbers are derived from a monthly count, so two concurrent
    # creators can compute the same candidate. The unique constraint catches it
    # and the service recomputes up to this many times.
    TICKET_NUMBER_MAX_RETRIES: int = 5
    AUTO_CLOSE_ENABLED: bool = False
    AUTO_CLOSE_RESOLVED_AFTER_DAYS: int = 7
    AUTO_CLOSE_INTERVAL_SECONDS: int = 3600

    # File uploads
    UPLOAD_ROOT: str = "uploads"
    MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024
    ALLOWED_UPLOAD_EXTENSIONS: list[str] = [
        ".jpg", ".jpeg", ".png", ".gif", ".bmp",
        ".pdf", ".doc", ".docx", ".txt", ".rtf",
        ".xlsx", ".xls", ".csv",
        ".zip", ".rar", ".7z",
    ]

    # Collaborators (email, file store, connection probes)
    COLLABORATOR_TIMEOUT_SECONDS: float = 5.0

    # Email
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "helpdesk@example.com"
    EMAIL_FROM_NAME: str = "Helpdesk"

    # PMO integration (only probed by the settings connection test)
    PMO_BASE_URL: Optional[str] = None

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    @property
    def async_database_url(self) -> str:
        """Get async database URL"""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


settings = Settings()
