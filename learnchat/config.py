"""LearnChat — Configuration via pydantic-settings."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Storage (SQLite file shared by the admin and user processes)
    DATABASE_URL: str = "sqlite:///./data/learnchat.db"
    MAX_PARTITION_BYTES: int = 5_000_000

    # Security
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12

    # Seed admin
    SEED_ADMIN_EMAIL: str = "admin@company.com"
    SEED_ADMIN_PASSWORD: str = "admin123"

    # Timezone
    TIMEZONE: str = "UTC"

    # Reconciliation
    ACTOR_ROLE: str = "admin"  # "admin" or "user"
    ADMIN_SYNC_INTERVAL_SECONDS: float = 3.0
    USER_SYNC_INTERVAL_SECONDS: float = 5.0

    # Bulk import
    BULK_IMPORT_ROW_DELAY_SECONDS: float = 0.1
    DEFAULT_PASSWORD_STRATEGY: str = "simple"  # "simple" or "secure"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
