"""
Base service class for the festival results engine.

Every service method that touches the store runs inside ``get_session``:
one session, one transaction, committed when the block exits cleanly and
rolled back when anything propagates out of it.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

class BaseService:
    """Base class for services sharing one async session factory."""

    def __init__(self, session_factory):
        """
        Args:
            session_factory: ``Database.session_factory`` (an async_sessionmaker)
        """
        self.session_factory = session_factory

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Transactional scope: commit on success, rollback on any exception."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.debug(f"{type(self).__name__}: rolled back after {type(e).__name__}")
            raise
        finally:
            await session.close()

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        max_retries: int = 3,
        **kwargs
    ) -> Any:
        """
        Await ``func(*args, **kwargs)``, retrying transient store failures.

        Only ``OperationalError`` (locked database, dropped connection) is
        retried; every other exception propagates on the first attempt.
        """
        for attempt in range(max_retries):
            try:
                return await func(*args, **kwargs)
            except OperationalError as e:
                if attempt == max_retries - 1:
                    raise
                logger.warning(f"Retry attempt {attempt + 1} for {func.__name__}: {e}")
                await asyncio.sleep(0.1 * (2 ** attempt))  # Exponential backoff
