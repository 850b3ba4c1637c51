"""
Database session management with SQLAlchemy async
"""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
from models.base import Base
import logging

logger = logging.getLogger(__name__)


class Database:
    """
    Explicitly constructed storage handle.

    Owns one async engine and its session factory. Callers open it before use
    and close it on shutdown; tests point it at a throwaway SQLite file.
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = url or settings.DATABASE_URL
        self.echo = settings.ENVIRONMENT == "development" if echo is None else echo
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker] = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self) -> "Database":
        """Create engine and session factory (idempotent)."""
        if self.engine is None:
            self.engine = create_async_engine(self.url, echo=self.echo, future=True)
            self.session_maker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False
            )
            logger.info("Database engine created")
        return self

    async def close(self):
        """Dispose of the engine and its pooled connections."""
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database engine disposed")
        self.engine = None
        self.session_maker = None

    async def create_all(self):
        """Create all tables registered on the declarative base."""
        self.open()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self):
        self.open()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    def session(self) -> AsyncSession:
        """Return a new session; use it as an async context manager."""
        if self.session_maker is None:
            raise RuntimeError("Database is not open")
        return self.session_maker()

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session (FastAPI dependency style)"""
        async with self.session() as session:
            yield session
