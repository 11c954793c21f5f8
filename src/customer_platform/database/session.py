from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
)
from sqlalchemy.orm import SessionTransactionOrigin

from customer_platform.config import get_settings


@lru_cache()
def get_engine() -> AsyncEngine:
    """
    Build the process-wide async engine from settings on first use.

    Lazy so that importing the package never requires the database driver
    (tests swap in their own engine).
    """
    settings = get_settings()
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.SQLALCHEMY_ECHO,
        future=True,
        pool_pre_ping=True,              # Enables connection health checks
    )


@lru_cache()
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency. Yields a session and ensures it's closed after the request.

    Usage:
        async def endpoint(session: AsyncSession = Depends(get_async_session)):
            await session.execute(...)
    """
    async with get_session_maker()() as session:
        yield session


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Run the block as one unit of work: commit on success, roll back on error.

    - no transaction open: `session.begin()`
    - transaction autobegun by an earlier query on this session: the block joins
      it and the whole transaction is committed (or rolled back) at the end
    - transaction begun explicitly by the caller: SAVEPOINT only, the caller
      commits
    """
    current = session.sync_session.get_transaction()

    if current is None:
        async with session.begin():
            yield session
    elif current.origin is SessionTransactionOrigin.AUTOBEGIN and not session.in_nested_transaction():
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise
        await session.commit()
    else:
        async with session.begin_nested():
            yield session
