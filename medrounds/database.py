from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from medrounds.config import settings
from medrounds.models import Base


def build_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """
    Create an async engine. SQLite connections get foreign keys enforced
    (so deleting a round cascades to its patients), WAL journaling and a
    busy timeout so concurrent position writes wait instead of failing.
    """
    url = url or settings.database_url
    echo = settings.sql_echo if echo is None else echo

    if not url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)

    engine = create_async_engine(url, echo=echo, connect_args={"timeout": settings.db_timeout})

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, expire_on_commit=False)


# Create an async engine instance for SQLAlchemy
engine = build_engine()

# Create an async session factory
AsyncSessionLocal = build_session_factory(engine)


async def init_db(bind: Optional[AsyncEngine] = None):
    """
    Initialize the database by creating all tables defined in the models (if they don't exist).
    Should be called at application startup.
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
