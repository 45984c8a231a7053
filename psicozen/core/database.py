"""Database connection and session management.

Transaction Guarantees:
- Each request gets its own session
- The session is passed explicitly to every service that touches storage
- On any exception, the entire transaction is rolled back
- Sessions are properly closed after each request
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"

db_url_async = settings.database_url_async

engine_options: dict[str, Any] = {"echo": settings.database_echo}
if not db_url_async.startswith("sqlite"):
    engine_options.update(
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
        pool_recycle=300,
    )

engine = create_async_engine(db_url_async, **engine_options)

# Session factory - creates new sessions for each request
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a transactional database session.

    Transaction Behavior:
    - Session starts in a transaction automatically
    - On successful completion: COMMIT
    - On any exception: ROLLBACK
    - Session is always closed properly
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
            logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database error, transaction rolled back: {e}")
            raise
        except Exception as e:
            await session.rollback()
            logger.debug(f"Request failed, transaction rolled back: {e}")
            raise
        finally:
            await session.close()


def is_unique_violation(exc: IntegrityError) -> bool:
    """Tell whether an IntegrityError was raised by a unique constraint.

    PostgreSQL drivers expose the SQLSTATE code; SQLite only reports it in
    the message text.
    """
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(orig)


async def set_tenant_context(
    session: AsyncSession,
    organization_id: UUID,
    user_id: UUID | None = None,
) -> None:
    """Set RLS context variables for the current transaction.

    SET commands don't support bind parameters. Values are UUID instances,
    so formatting them directly is safe.
    """
    if session.get_bind().dialect.name != "postgresql":
        return

    await session.execute(
        text(f"SET LOCAL app.current_organization_id = '{UUID(str(organization_id))}'")
    )
    if user_id:
        await session.execute(
            text(f"SET LOCAL app.current_user_id = '{UUID(str(user_id))}'")
        )


async def init_db() -> None:
    """Initialize database (create tables if needed)."""
    from ..models import Base

    async with engine.begin() as conn:
        # In production, use migrations instead
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
