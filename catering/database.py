"""Database engine, session factory and unit-of-work helpers"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from catering.config import settings

Base = declarative_base()

engine = create_async_engine(settings.database_url, echo=settings.database_echo)

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session"""
    async with SessionLocal() as session:
        yield session


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block as one all-or-nothing transaction.

    Commits when the block exits normally; on any exception the whole
    transaction is rolled back and the exception is re-raised, so partial
    writes are never visible to a later read.
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
