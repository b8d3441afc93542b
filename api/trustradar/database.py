from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from trustradar.config import settings

engine = create_async_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db():
    """FastAPI dependency: yields AsyncSession per request."""
    async with async_session_factory() as session:
        yield session


def dialect_insert(db: AsyncSession, model):
    """Return an INSERT construct that supports ON CONFLICT for the session's backend.

    PostgreSQL in production, SQLite (aiosqlite) in the test suite. Both
    dialects accept on_conflict_do_nothing / on_conflict_do_update with
    index_elements, so callers stay backend-agnostic.
    """
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)
