from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from eventshare.core.config import settings


def engine_options(database_url: str) -> dict:
    """Pool settings for server databases; SQLite keeps the driver defaults."""
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    **engine_options(settings.DATABASE_URL),
)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
