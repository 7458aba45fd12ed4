"""
Create the Postgres test database and its tables.

The default test run uses SQLite; run this once when pointing the suite at
Postgres with ``TEST_DATABASE_URL``.
"""
import asyncio
import asyncpg
import os
from sqlalchemy.ext.asyncio import create_async_engine
from eventshare.db.session import Base
import eventshare.db.models  # noqa: F401  registers every table on Base.metadata

DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "5432"))
DB_NAME = os.getenv("TEST_DB_NAME", "eventshare_test")


def database_url() -> str:
    return f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


async def ensure_database() -> bool:
    """Create ``DB_NAME`` from the maintenance database if it is missing."""
    try:
        conn = await asyncpg.connect(
            user=DB_USER,
            password=DB_PASSWORD,
            host=DB_HOST,
            port=DB_PORT,
            database="postgres",
        )
    except (OSError, asyncpg.PostgresError) as e:
        print(f"Could not connect to Postgres at {DB_HOST}:{DB_PORT}: {e}")
        return False

    try:
        exists = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", DB_NAME)
        if exists:
            print(f"Database '{DB_NAME}' already exists")
        else:
            await conn.execute(f'CREATE DATABASE "{DB_NAME}"')
            print(f"Database '{DB_NAME}' created")
    except asyncpg.PostgresError as e:
        print(f"Error creating database: {e}")
        return False
    finally:
        await conn.close()
    return True


async def create_tables() -> None:
    engine = create_async_engine(database_url(), echo=False)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()
    print(f"Created {len(Base.metadata.tables)} tables")


async def main():
    if not await ensure_database():
        return
    await create_tables()
    print()
    print("Test database ready. Run the suite against it with:")
    print(f"   TEST_DATABASE_URL={database_url()} pytest")


if __name__ == "__main__":
    asyncio.run(main())
