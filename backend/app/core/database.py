import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, enabling foreign keys and a busy timeout on SQLite.

    SQLite ignores ON DELETE SET NULL / CASCADE unless foreign keys are switched
    on per connection, and history rows rely on both.
    """
    connect_args = {}
    if _is_sqlite(url):
        connect_args["timeout"] = settings.db_busy_timeout_seconds

    new_engine = create_async_engine(url, echo=echo, connect_args=connect_args)

    if _is_sqlite(url):

        @event.listens_for(new_engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = create_engine_for(settings.database_url, echo=settings.debug)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    # Import models to register them with SQLAlchemy
    from backend.app.models import (  # noqa: F401
        brand_shortcut,
        print_record,
        spool,
        user,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized (%s)", engine.url.render_as_string(hide_password=True))
