"""
Database engine and session management

Builds the SQLAlchemy async engine and session factory from a URL. The
schema itself is managed by the Alembic migrations under backend/alembic.
PostgreSQL (asyncpg) is used in production; SQLite (aiosqlite) is accepted
for local runs and tests. Both support INSERT ... ON CONFLICT, which the
entitlement store relies on.
"""

import logging

from sqlalchemy import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

logger = logging.getLogger(__name__)


def create_async_engine_and_session(
    url: str | URL,
    echo: bool = False,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Create the async engine and its session factory

    :param url: SQLAlchemy async database URL
    :param echo: log emitted SQL
    :return:
    """
    url = make_url(url)
    engine_kwargs = {'echo': echo, 'future': True}
    if url.get_backend_name() != 'sqlite':
        engine_kwargs.update(pool_pre_ping=True, pool_recycle=3600)

    try:
        engine = create_async_engine(url, **engine_kwargs)
    except Exception as e:
        logger.error(f'[DB] Database connection failed: {e}')
        raise

    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)
    return engine, session_factory

