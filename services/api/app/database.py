"""
Async SQLAlchemy engine + session factories for the social graph store.

Two ways in:
  get_db               — one session per request for the profile, follow,
                         post and interaction endpoints; committed on success
  get_session_factory  — the suggestion scorer opens its own short-lived
                         sessions, one per scored candidate, so candidates can
                         be read concurrently

Production runs against TiDB (MySQL wire protocol, aiomysql driver); the
URL comes from settings.db_url, so tests point it at SQLite via aiosqlite.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.db_url,
    pool_pre_ping=True,
    pool_size=20,
    max_overflow=10,
    echo=False,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create all tables if they don't exist (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency for code that opens its own short-lived sessions."""
    return AsyncSessionLocal
