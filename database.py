from typing import Optional

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

import config


def normalize_database_url(url: str) -> str:
    # Hosted Postgres providers hand out sync URLs; the engine needs asyncpg
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def create_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    url = url or config.DATABASE_URL

    # Fail fast when the URL is missing
    if not url:
        raise ValueError("DATABASE_URL is not set. Please check your .env file.")

    return create_async_engine(
        normalize_database_url(url),
        echo=config.SQL_ECHO if echo is None else echo,
        future=True,
    )


def make_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine):
    # Importing the models registers their tables on SQLModel.metadata
    import models  # noqa: F401

    async with engine.begin() as conn:
        # This creates the tables if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db(engine: AsyncEngine):
    await engine.dispose()
