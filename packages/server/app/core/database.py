"""
Database engine and sessions.

Request handlers get one session per request through ``get_session``; the
session commits after the handler returns and rolls back on any exception,
so a service that raises (an ``HTTPException`` included) leaves no partial
rows behind. Work outside a request, such as the invitation expiry task, uses
``get_session_context`` with the same semantics.

The schema itself is owned by Alembic (``packages/server/alembic``).
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Commit-or-rollback unit of work outside the request lifecycle."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with get_session_context() as session:
        yield session
