"""
Database connection and session management for SQLAlchemy 2.0.
Configured for async operations (PostgreSQL via asyncpg, SQLite via aiosqlite).
"""
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from typing import Sequence
from urllib.parse import urlparse
import logging
import socket

from studio_cms.config import settings
from studio_cms.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

# Create declarative base for models
Base = declarative_base()

_engine_args = {
    "echo": False,  # Set to True for SQL query logging in development
}

# Pool settings only apply to PostgreSQL (not SQLite)
if settings.DATABASE_URL and settings.DATABASE_URL.startswith("postgresql"):
    _engine_args.update({
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "application_name": "studio-cms-api"
            }
        }
    })

engine = create_async_engine(
    settings.DATABASE_URL if settings.DATABASE_URL else "sqlite+aiosqlite:///:memory:",
    **_engine_args
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncSession:
    """
    FastAPI dependency for database sessions.
    Provides async database session with automatic commit/rollback.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {str(e)}")
            raise
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker:
    """
    FastAPI dependency returning the session factory.
    Used by writers that must not share the request's transaction
    (the activity logger writes in its own session after the response).
    """
    return AsyncSessionLocal


async def execute_batch(session: AsyncSession, statements: Sequence) -> list:
    """
    Execute statements as a single atomic unit and commit.

    Either every statement is applied or none is: on any failure the
    transaction is rolled back and TransientStoreError is raised.

    Args:
        session: Session whose transaction the batch runs in
        statements: SQLAlchemy executable statements, in order

    Returns:
        list: Rowcounts of the executed statements
    """
    rowcounts = []
    try:
        for statement in statements:
            result = await session.execute(statement)
            rowcounts.append(result.rowcount)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Batch execution failed after {len(rowcounts)} of {len(statements)} statements: {str(e)}")
        raise TransientStoreError(f"Transaction failed: {str(e)}")
    return rowcounts


def _validate_database_url(url: str) -> tuple[bool, str]:
    """
    Validate database URL and provide diagnostic information.
    Returns (is_valid, diagnostic_message)
    """
    if not url:
        return False, "DATABASE_URL is empty"

    try:
        parsed = urlparse(url)

        if url.startswith("sqlite"):
            return True, f"SQLite database: {parsed.path or ':memory:'}"

        if not url.startswith(("postgresql://", "postgresql+asyncpg://")):
            return False, f"Invalid database URL scheme. Expected postgresql+asyncpg:// or sqlite+aiosqlite://, got: {parsed.scheme}"

        hostname = parsed.hostname
        if not hostname:
            return False, "No hostname found in DATABASE_URL"

        try:
            socket.getaddrinfo(hostname, None)
            dns_status = "DNS resolution successful"
        except socket.gaierror as e:
            dns_status = f"DNS resolution failed: {str(e)}"

        return True, f"URL format valid. Hostname: {hostname}, Port: {parsed.port or 5432}, Database: {parsed.path or '/postgres'}. {dns_status}"

    except Exception as e:
        return False, f"Error parsing DATABASE_URL: {str(e)}"


async def init_db():
    """
    Initialize database connection.
    Used on startup to verify the connection and report diagnostics.
    """
    if not settings.DATABASE_URL:
        logger.warning("DATABASE_URL not set, skipping database initialization")
        return

    is_valid, diagnostic = _validate_database_url(settings.DATABASE_URL)
    if not is_valid:
        logger.error(f"Invalid DATABASE_URL: {diagnostic}")
        raise ValueError(f"Invalid DATABASE_URL: {diagnostic}")

    logger.info(f"Database URL validation: {diagnostic}")

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            logger.info("Database connection initialized successfully")
    except Exception as e:
        logger.error(
            f"Database connection failed ({type(e).__name__}): {str(e)}\n"
            f"Diagnostic: {diagnostic}"
        )
        raise


async def close_db():
    """Close database connections on shutdown."""
    await engine.dispose()
    logger.info("Database connections closed")
