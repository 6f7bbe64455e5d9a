from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from carpool.config import get_settings

settings = get_settings()

engine = create_async_engine(settings.database_url, pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    One atomic unit of work: commit when the block exits cleanly,
    roll back (and re-raise) on any exception, domain errors included.
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise


async def advisory_lock(db: AsyncSession, key: str) -> None:
    """
    Transaction-scoped advisory lock on Postgres. Other backends rely on
    their own write serialisation (SQLite takes a RESERVED lock at BEGIN IMMEDIATE).
    """
    if db.get_bind().dialect.name == "postgresql":
        await db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})
