from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    PROJECT_NAME: str = "Room Reservation API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"
    # SQLite file in the project root unless a real database is configured
    DATABASE_URL: str = "sqlite:///../roombook.db"
    SECRET_KEY: str = "changeme"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    JWT_ALGORITHM: str = "HS256"
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Redis configuration
    REDIS_URL: str = "redis://localhost:6379/0"
    # Separate DB for cache; empty string keeps the cache in-process
    REDIS_CACHE_URL: str = "redis://localhost:6379/1"
    NOTIFICATIONS_CHANNEL: str = "roombook:notifications"
    ENABLE_REALTIME: bool = True

    # Celery configuration
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Lifecycle sweeps
    NO_SHOW_SWEEP_SECONDS: int = 300
    COMPLETION_SWEEP_SECONDS: int = 600
    SWEEP_LOCK_TIMEOUT_SECONDS: int = 240

    # Rate limiting for the door-side verification endpoint
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    VERIFY_RATE_LIMIT: str = "30/minute"

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
