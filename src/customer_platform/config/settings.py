from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator
from pathlib import Path
from typing import Literal
from functools import lru_cache

from ..validators.config_validators import to_uppercase, to_lowercase, blank_to_none


class Settings(BaseSettings):
    """
    Service settings loaded from the environment (and an optional .env file).

    Every field has a default so the service and the test-suite can start
    without a populated environment; production deployments override the
    database and logging values through env vars.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------
    ENV: Literal["development", "testing", "staging", "production"] = "development"
    SERVICE_NAME: str = "customer-service"

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------
    POSTGRES_DRIVER: str = "asyncpg"
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "customer_platform"

    TEST_POSTGRES_DB: str | None = None
    TESTING: bool = False

    # Full SQLAlchemy URL; wins over the POSTGRES_* pieces when set.
    DATABASE_URL_OVERRIDE: str | None = None

    SQLALCHEMY_ECHO: bool = False

    # ------------------------------------------------------------------
    # Repository defaults
    # ------------------------------------------------------------------
    DEFAULT_PAGE_LIMIT: int = 50

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"
    LOG_TO_STDOUT: bool = True
    LOG_DIR: Path = Path("/var/log/customer-platform")
    LOG_MAX_BYTES: int = 10_000_000  # 10 MB
    LOG_BACKUP_COUNT: int = 5
    ENABLE_SQL_LOGGING: bool = False
    # db.operation records (customer_platform.db) are DEBUG; True lets them through at any LOG_LEVEL
    LOG_DB_OPERATIONS: bool = False

    LOG_USE_QUEUE: bool = False
    LOG_QUEUE_MAX_SIZE: int = 0
    LOG_QUEUE_BLOCKING: bool = False

    @property
    def DATABASE_URL(self) -> str:
        """
        Return the database URL for the current environment.

        - DATABASE_URL_OVERRIDE, when set, is returned as-is (sqlite, another host, ...).
        - With TESTING=True and TEST_POSTGRES_DB set, the test database name is used.
        - Otherwise the regular POSTGRES_DB is used.
        """
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE

        database = self.POSTGRES_DB
        if self.TESTING and self.TEST_POSTGRES_DB:
            database = self.TEST_POSTGRES_DB

        return (
            f"postgresql+{self.POSTGRES_DRIVER}://"
            f"{self.POSTGRES_USERNAME}:{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/"
            f"{database}"
        )

    @property
    def is_development(self) -> bool:
        """Raw error messages and stack traces are only surfaced in development."""
        return self.ENV == "development"

    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: str | None) -> str | None:
        """
        Normalize LOG_LEVEL to uppercase before Literal validation runs,
        so `LOG_LEVEL=debug` in the environment is accepted.
        """
        return to_uppercase(v)

    @field_validator("LOG_FORMAT", "ENV", mode="before")
    def normalize_lowercase(cls, v: str | None) -> str | None:
        return to_lowercase(v)

    @field_validator("DATABASE_URL_OVERRIDE", "TEST_POSTGRES_DB", mode="before")
    def normalize_optional(cls, v: str | None) -> str | None:
        return blank_to_none(v)

    @field_validator("DEFAULT_PAGE_LIMIT")
    def check_page_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("DEFAULT_PAGE_LIMIT must be >= 1")
        return v

    model_config = ConfigDict(
        env_file=str(Path(__file__).parent.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
