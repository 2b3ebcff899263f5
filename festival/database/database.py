from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from festival.config import Config, ZoneConfig
from festival.database.models import Base
from festival.utils.logger import setup_logger

def async_database_url(database_url: str) -> str:
    """Map a plain SQLite URL onto the aiosqlite driver"""
    if database_url.startswith('sqlite:///'):
        return database_url.replace('sqlite:///', 'sqlite+aiosqlite:///', 1)
    return database_url

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

class Database:
    """Engine and session factory for one zone's store."""

    def __init__(self, database_url: Optional[str] = None, zone: Optional[ZoneConfig] = None):
        self.zone = zone or Config.get_zone()
        self.logger = setup_logger(__name__, self.zone)
        self.database_url = async_database_url(database_url or Config.get_database_url(self.zone))
        self.engine = None
        self.async_session = None

    @property
    def session_factory(self) -> async_sessionmaker:
        """Session factory handed to the service layer"""
        if self.async_session is None:
            raise RuntimeError("Database has not been initialized")
        return self.async_session

    async def initialize(self):
        """Create the engine, the session factory and any missing tables"""
        self.logger.info(f"Initializing {self.zone.display_name} results database...")

        self.engine = create_async_engine(self.database_url, echo=Config.DEBUG)
        if self.engine.dialect.name == 'sqlite':
            event.listen(self.engine.sync_engine, 'connect', _enable_sqlite_foreign_keys)

        # expire_on_commit=False: services hand committed rows back to callers
        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info(f"Database ready ({self.engine.url.render_as_string(hide_password=True)})")

    @asynccontextmanager
    async def get_session(self):
        """A read scope: nothing done in it is committed"""
        async with self.session_factory() as session:
            try:
                yield session
            finally:
                await session.rollback()

    @asynccontextmanager
    async def transaction(self):
        """
        A session whose work commits together when the block exits, or rolls
        back together when an exception leaves it.

        Usage:
            async with db.transaction() as session:
                session.add(college)
                session.add(event_type)
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self):
        """Dispose of the engine's connection pool"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session = None
            self.logger.info("Database connection closed")
