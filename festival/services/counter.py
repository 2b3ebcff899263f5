"""
Monotonic named counters.

Used for result serial numbers, the "last count" recorded in every
leaderboard snapshot, and participant codes.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from festival.database.models import Counter

logger = logging.getLogger(__name__)


class CounterService:
    """Counter operations that run inside a caller-supplied session."""

    async def next_value(self, session: AsyncSession, name: str) -> int:
        """Increment the named counter and return its new value, creating it at 1."""
        result = await session.execute(
            update(Counter)
            .where(Counter.name == name)
            .values(seq=Counter.seq + 1)
            .returning(Counter.seq)
            .execution_options(synchronize_session=False)
        )
        value = result.scalar_one_or_none()
        if value is not None:
            return value

        session.add(Counter(name=name, seq=1))
        await session.flush()
        logger.info(f"Created counter '{name}'")
        return 1

    async def current_value(self, session: AsyncSession, name: str) -> int:
        result = await session.execute(select(Counter.seq).where(Counter.name == name))
        return result.scalar_one_or_none() or 0
