"""
Core pytest configuration for the entire test suite.

This module provides only the essential database setup and core utilities
that are needed across ALL types of tests (repositories, queries, services, APIs, ...).

Domain-specific fixtures live in:
- tests/test_fixtures/repository_fixtures.py  (repositories, sinks, seed data)
- tests/test_fixtures/api_fixtures.py         (app factory + HTTP client)
"""

from __future__ import annotations

# -------------------------------
# Standard library imports
# -------------------------------
import os
import sys
import logging
from pathlib import Path
from urllib.parse import urlparse
from typing import AsyncGenerator

# -------------------------------
# Early logging tuning (IMPORTANT)
# -------------------------------
# Set the level for noisy third-party loggers at import time (before importing modules that
# might initialize them). Keep this block above the customer_platform.* imports.
NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "aiosqlite",
    "asyncio",
    "httpx",
    "urllib3",
)
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

# -------------------------------
# PATH PATCHING
# -------------------------------
# Ensure 'src' on sys.path so `import customer_platform...` works without an install
SRC = Path(__file__).resolve().parents[2]
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# -------------------------------
# Third-party / project imports
# -------------------------------
import pytest
from pytest import FixtureRequest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.pool import StaticPool

from customer_platform.database.base import Base
import customer_platform.models  # noqa: F401 - import to register models with Base.metadata
from customer_platform.config import get_settings
from customer_platform.core.logging.builder import setup_logging

# -------------------------------
# Load settings
# -------------------------------
settings = get_settings()
logger = logging.getLogger(__name__)


@pytest.fixture(scope="session", autouse=True)
def configure_logging(request: FixtureRequest):
    """
    Install application logging for the entire test session.

      - Calls `setup_logging(settings)` so tests run with the same formatters and
        filters as the service.
      - Re-attaches pytest's capture handler, which dictConfig removes, so that
        `caplog.records` keeps working.
    """
    setup_logging(settings)

    caplog_plugin = request.config.pluginmanager.getplugin("logging-plugin")
    handler = getattr(caplog_plugin, "caplog_handler", None)
    if handler is not None:
        logging.getLogger().addHandler(handler)

    yield


# ------------------------------------------------------------------------------------------------
# Determining and Logging the Test Database URL for Tests
# ------------------------------------------------------------------------------------------------


def safe_log_db_url(db_url: str) -> str:
    """
    Return the database URL without credentials (scheme, host, port and
    database name only), for logging.
    """
    parsed = urlparse(db_url)
    return f"{parsed.scheme}://{parsed.hostname}:{parsed.port or ''}/{parsed.path.lstrip('/')}"


def get_test_database_url() -> str:
    """
    Determine the test database URL.

    1. `TEST_DATABASE_URL` environment variable (CI/CD override)
    2. The app's DATABASE_URL when `TESTING=true` (uses TEST_POSTGRES_DB)
    3. In-memory SQLite, so the suite runs without a database server

    Returns:
        str: The database URL to use for testing
    """
    if test_url := os.getenv("TEST_DATABASE_URL"):
        return test_url

    if settings.TESTING and settings.TEST_POSTGRES_DB:
        return settings.DATABASE_URL

    return "sqlite+aiosqlite:///:memory:"


TEST_DATABASE_URL = get_test_database_url()
logger.info("Using test DB: %s", safe_log_db_url(TEST_DATABASE_URL))


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


# ------------------------------------------------------------------------------------------------
# DATABASE FIXTURES
# ------------------------------------------------------------------------------------------------


@pytest.fixture()
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    A fresh schema per test.

    SQLite runs in memory on a single shared connection (StaticPool), so every
    session of the test, including the ones the API opens, sees the same data.
    Foreign keys are switched on to match Postgres behavior.
    """
    if _is_sqlite(TEST_DATABASE_URL):
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    else:
        engine = create_async_engine(TEST_DATABASE_URL, pool_pre_ping=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture()
def session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """
    Session for repository and query tests.

    Repositories only flush, so everything a test writes stays inside the
    session's transaction and is rolled back here.
    """
    async with session_maker() as session:
        yield session
        await session.rollback()


# Repository / query test fixtures
from .test_fixtures.repository_fixtures import (  # noqa: E402
    recording_sink,
    registry,
    customer_repository,
    sample_customer_data,
    create_customer,
    created_customer,
    multiple_customers,
    seeded_directory,
)

# API test fixtures
from .test_fixtures.api_fixtures import (  # noqa: E402
    app,
    client,
    committed_directory,
)
