# autopostr/infrastructure/database.py
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from sqlalchemy.ext.asyncio.engine import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

logger = structlog.get_logger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./autopostr.db")


def build_engine(url: str) -> AsyncEngine:
    # sqlite connections must not be shared across event loops
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False, poolclass=NullPool)
    return create_async_engine(url, echo=False, pool_pre_ping=True)


engine: AsyncEngine = build_engine(DATABASE_URL)


async def init_db() -> None:
    # register every table on the metadata before create_all
    from autopostr.accounts import models as _accounts  # noqa: F401
    from autopostr.models import asset, connection, post, schedule  # noqa: F401

    async with engine.begin() as connection_:
        await connection_.run_sync(SQLModel.metadata.create_all)
    logger.info("db_tables_ready")


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session
