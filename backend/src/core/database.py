import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.schema import CreateSchema

from config import settings
from models import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns the connection pool for the lifetime of the process.

    Every operation that writes more than one table goes through
    ``transaction()``; single-table reads can use ``session()``.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_settings(cls) -> "Database":
        engine = create_async_engine(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
        return cls(engine)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                logger.warning("Transaction rolled back", exc_info=True)
                raise

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._sessionmaker() as session:
            yield session

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.execute(CreateSchema(settings.DB_SCHEMA, if_not_exists=True))
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> datetime:
        async with self.session() as session:
            return await session.scalar(select(func.now()))

    async def dispose(self) -> None:
        await self.engine.dispose()
