"""
Score ledger.

Applies or reverts the score delta implied by one winning registration.
The ledger works entirely inside the session it is given: it never begins,
commits or rolls back a transaction, so a failure leaves the caller free to
abort everything applied so far.

Deltas are applied with ``UPDATE ... SET score = score + delta`` so two
transactions crediting the same participant never overwrite each other.
"""

import logging
from typing import Union

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from festival.data_models.results import normalize_position
from festival.database.models import EventRegistration, EventType, User
from festival.utils.exceptions import InvalidPositionError, NotFoundError

logger = logging.getLogger(__name__)

APPLY = 1
REVERT = -1


class ScoreLedger:
    """Score delta bookkeeping for registrations and their participants."""

    @staticmethod
    def position_score(event_type: EventType, position: Union[str, int]) -> float:
        """
        Points the event type awards for a position.

        A position is valid when its label is a key of the scoring table with
        a numeric value; a configured 0 is a legitimate score.
        """
        label = normalize_position(position)
        scores = event_type.scores or {}
        value = scores.get(label)
        if value is None or isinstance(value, bool):
            raise InvalidPositionError(label, event_type.name)
        return value

    async def apply_score(
        self,
        session: AsyncSession,
        registration: EventRegistration,
        position: Union[str, int],
        event_type: EventType,
        sign: int = APPLY
    ) -> float:
        """
        Add (sign=+1) or remove (sign=-1) a position's points.

        The registration always receives the delta. For individual event
        types every participant's running total receives it as well; group
        event types never credit individual participants.

        Returns:
            The signed delta that was applied.
        """
        if sign not in (APPLY, REVERT):
            raise ValueError(f"sign must be +1 or -1, got {sign}")

        delta = sign * self.position_score(event_type, position)
        await self._increment_registration(session, registration, delta)
        if not event_type.is_group:
            await self._increment_participants(session, registration.user_ids, delta)

        logger.debug(
            f"{'Applied' if sign == APPLY else 'Reverted'} {abs(delta)} points "
            f"for registration {registration.id} ({position})"
        )
        return delta

    async def _increment_registration(self, session: AsyncSession, registration: EventRegistration, delta: float):
        result = await session.execute(
            update(EventRegistration)
            .where(EventRegistration.id == registration.id)
            .values(score=func.coalesce(EventRegistration.score, 0) + delta)
            .returning(EventRegistration.score)
            .execution_options(synchronize_session=False)
        )
        score = result.scalar_one_or_none()
        if score is None:
            raise NotFoundError("Event registration", registration.id)
        # Keep the loaded row in step without marking it dirty
        set_committed_value(registration, 'score', score)

    async def _increment_participants(self, session: AsyncSession, user_ids, delta: float):
        if not user_ids:
            return
        result = await session.execute(
            update(User)
            .where(User.id.in_(user_ids))
            .values(total_score=func.coalesce(User.total_score, 0) + delta)
            .returning(User.id, User.total_score)
            .execution_options(synchronize_session=False)
        )
        totals = dict(result.all())

        for user_id in user_ids:
            if user_id not in totals:
                raise NotFoundError("User", user_id)
            user = await session.get(User, user_id)
            set_committed_value(user, 'total_score', totals[user_id])
