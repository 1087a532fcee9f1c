"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    APP_NAME: str = "Event Pulse"
    DATABASE_URL: str = "sqlite:///./eventpulse.db"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:8081"

    # Directory paging and notification fan-out
    USER_PAGE_SIZE: int = 100
    NOTIFICATION_BATCH_SIZE: int = 10
    NOTIFICATION_BATCH_DELAY_MS: int = 500
    VERIFICATION_SETTLE_SECONDS: float = 2.0

    # Creator reference diagnosis sample
    DIAGNOSIS_RECORD_CAP: int = 50
    DIAGNOSIS_USER_CAP: int = 100

    # Outbox worker
    OUTBOX_WORKER_ENABLED: bool = True
    OUTBOX_POLL_INTERVAL_SECONDS: float = 1.0
    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_STALE_AFTER_SECONDS: int = 300

    class Config:
        env_file = ".env"


settings = Settings()
