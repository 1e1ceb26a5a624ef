"""Database engine, session management and a raw-SQL query helper."""

import logging
from datetime import datetime, timezone
from typing import Any, AsyncGenerator

from sqlalchemy import JSON, DateTime, bindparam, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from omnimind.core.config import settings

logger = logging.getLogger(__name__)

# JSONB on PostgreSQL, plain JSON anywhere else.
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


_db_url = settings.database_url
if _db_url.startswith("postgresql://"):
    _db_url = _db_url.replace("postgresql://", "postgresql+asyncpg://", 1)

engine = create_async_engine(_db_url, echo=False, pool_pre_ping=True)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session


async def init_db() -> None:
    """Create any missing tables."""
    import omnimind.models  # noqa: F401  (registers every model on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def query(db: AsyncSession, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
    """Run a parameterized SQL statement and return the rows as dicts.

    Datetime parameters are bound as timezone-aware timestamps so the same
    statement works on PostgreSQL and SQLite.
    """
    params = params or {}
    stmt = text(sql)
    datetime_params = [
        bindparam(name, type_=DateTime(timezone=True))
        for name, value in params.items()
        if isinstance(value, datetime)
    ]
    if datetime_params:
        stmt = stmt.bindparams(*datetime_params)
    result = await db.execute(stmt, params)
    return [dict(row) for row in result.mappings().all()]


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a datetime to UTC; naive values (SQLite round-trips) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None
