from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    PROJECT_NAME: str = "Rendezvous API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./rendezvous.db"
    # Upper bound on how long a store call may wait for a connection or lock
    STORE_TIMEOUT_SECONDS: float = 5.0
    # Compare-and-swap rounds for a read-modify-write before giving up
    MAX_WRITE_RETRIES: int = 3

    SECRET_KEY: str = "changeme"
    JWT_ALGORITHM: str = "HS256"
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Redis configuration
    REDIS_URL: str = "redis://localhost:6379/0"
    NOTIFICATIONS_CHANNEL: str = "notifications"
    SCHEDULES_CHANNEL: str = "schedules"

    # Celery configuration
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    JANITOR_INTERVAL_SECONDS: int = 300
    STATUS_SWEEP_INTERVAL_SECONDS: int = 60
    REMINDER_POLL_SECONDS: int = 60

    # Scheduling rules
    MIN_DURATION_MINUTES: int = 30
    DEFAULT_REMINDER_HOURS: int = 1

    # Rate limiting
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    RATE_LIMIT_DEFAULT: str = "1000/hour"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: List[str] | str) -> List[str]:
        """Allow both comma-separated strings and list inputs."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
