"""
db/session.py — Local Database Connection & Session Management
================================================================
Async SQLAlchemy engine for the holder's on-device store.
Called by main.py on startup via init_db().

The SQL-backed secure store and reveal ledger receive the session factory
built here; nothing else touches the engine.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
import logging

logger = logging.getLogger("verifyens.db")


class Base(DeclarativeBase):
    """Base class all database models inherit from."""
    pass


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    # sqlite has no server; plain sqlite:// URLs are upgraded to the async driver
    if database_url.startswith("sqlite://"):
        database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return create_async_engine(database_url, echo=echo)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine):
    """Create all tables on startup if they don't exist."""
    from db.models import SecureItem, RevealLogRecord  # noqa — import triggers table registration
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created / verified.")
