"""
Result transaction manager.

Creates, updates and deletes results. Each operation runs the score ledger
for every affected registration inside a single session, so registration
scores, participant totals and the result row are committed together or not
at all. The leaderboard is refreshed only after the commit and outside the
mutating transaction; a failed refresh leaves the committed result in place
and the previous snapshot readable.
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from festival.config import Config
from festival.constants import CounterNames
from festival.data_models.leaderboard import LeaderboardSnapshot
from festival.data_models.results import WinningEntry, parse_winning_entries
from festival.database.models import (
    Event, EventRegistration, EventType, Result, WinningRegistration
)
from festival.services.base import BaseService
from festival.services.counter import CounterService
from festival.services.score_ledger import APPLY, REVERT, ScoreLedger
from festival.utils.exceptions import (
    AggregationError, ConflictError, FestivalError, NotFoundError,
    TransactionError, ValidationError
)

logger = logging.getLogger(__name__)


class ResultService(BaseService):
    """Atomic result mutations with score reconciliation."""

    def __init__(
        self,
        session_factory,
        leaderboard_service=None,
        ledger: Optional[ScoreLedger] = None,
        counter_service: Optional[CounterService] = None,
        refresh_in_background: Optional[bool] = None
    ):
        super().__init__(session_factory)
        self.leaderboard_service = leaderboard_service
        self.ledger = ledger or ScoreLedger()
        self.counter_service = counter_service or CounterService()
        if refresh_in_background is None:
            refresh_in_background = Config.LEADERBOARD_REFRESH_IN_BACKGROUND
        self.refresh_in_background = refresh_in_background
        self.last_refresh_error: Optional[Exception] = None
        # Pending leaderboard refreshes
        self._background_tasks: set = set()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_result(self, event_id: int, winning_registrations, acting_user_id: Optional[int] = None) -> Result:
        """
        Record the result of an event and credit every winning registration.

        Args:
            event_id: Event the result belongs to
            winning_registrations: Ordered (registration, position) entries,
                as WinningEntry objects or mappings
            acting_user_id: Admin recording the result

        Returns:
            Result: The committed result with its winning registrations

        Raises:
            NotFoundError: Event, event type or a registration is missing
            ConflictError: The event already has a result
            InvalidPositionError: A position is not in the scoring table
            TransactionError: The commit failed
        """
        entries = parse_winning_entries(winning_registrations)

        try:
            async with self.get_session() as session:
                event = await self._load_event(session, event_id)

                await self._ensure_no_result(session, event)

                event_type = await self._load_event_type(session, event)
                credited = await self._apply_entries(session, event, event_type, entries, APPLY)

                result = Result(
                    event=event,
                    serial_number=await self.counter_service.next_value(session, CounterNames.RESULT),
                    created_by=acting_user_id,
                    updated_by=acting_user_id,
                    winning_registrations=self._build_winners(credited)
                )
                session.add(result)
                await session.flush()
        except IntegrityError as e:
            logger.error(f"Transaction aborted for event {event_id}: {e}")
            if 'event_id' in str(e.orig):
                raise ConflictError("Result already exists for this event") from e
            raise TransactionError("create result", str(e.orig)) from e
        except FestivalError as e:
            logger.error(f"Transaction aborted for event {event_id}: {e}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Transaction aborted for event {event_id}: {e}")
            raise TransactionError("create result", str(e)) from e

        logger.info(f"Result {result.id} created for event {event_id} with {len(entries)} winners")
        await self._after_commit("create", result.id)
        return result

    async def update_result(self, result_id: int, new_winning_registrations, acting_user_id: Optional[int] = None) -> Result:
        """
        Replace a result's winning registrations.

        Scores for the stored list are reverted and scores for the new list
        applied in the same transaction, so the final state equals deleting
        the result and recording it again.
        """
        entries = parse_winning_entries(new_winning_registrations)

        try:
            async with self.get_session() as session:
                result = await self._load_result(session, result_id)
                event = await self._load_event(session, result.event_id)
                event_type = await self._load_event_type(session, event)

                previous = [WinningEntry(w.registration_id, w.position) for w in result.winning_registrations]
                await self._apply_entries(session, event, event_type, previous, REVERT)
                credited = await self._apply_entries(session, event, event_type, entries, APPLY)

                result.winning_registrations.clear()
                await session.flush()
                result.winning_registrations.extend(self._build_winners(credited))
                result.updated_by = acting_user_id
                await session.flush()
        except FestivalError as e:
            logger.error(f"Transaction aborted for result {result_id}: {e}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Transaction aborted for result {result_id}: {e}")
            raise TransactionError("update result", str(e)) from e

        logger.info(f"Result {result_id} updated with {len(entries)} winners")
        await self._after_commit("update", result_id)
        return result

    async def delete_result(self, result_id: int) -> bool:
        """Delete a result after reverting every score it assigned."""
        try:
            async with self.get_session() as session:
                result = await self._load_result(session, result_id)
                event = await self._load_event(session, result.event_id)
                event_type = await self._load_event_type(session, event)

                previous = [WinningEntry(w.registration_id, w.position) for w in result.winning_registrations]
                await self._apply_entries(session, event, event_type, previous, REVERT)

                await session.delete(result)
                await session.flush()
        except FestivalError as e:
            logger.error(f"Transaction aborted for result {result_id}: {e}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Transaction aborted for result {result_id}: {e}")
            raise TransactionError("delete result", str(e)) from e

        logger.info(f"Result {result_id} deleted")
        await self._after_commit("delete", result_id)
        return True

    # ------------------------------------------------------------------
    # Loading helpers
    # ------------------------------------------------------------------

    async def _load_result(self, session: AsyncSession, result_id: int) -> Result:
        if not result_id:
            raise ValidationError("Result ID is required")
        result = await session.get(Result, result_id)
        if result is None:
            raise NotFoundError("Result", result_id)
        return result

    async def _ensure_no_result(self, session: AsyncSession, event: Event):
        existing = await session.execute(select(Result.id).where(Result.event_id == event.id))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Result already exists for this event")

    async def _load_event(self, session: AsyncSession, event_id: int) -> Event:
        event = await session.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event", event_id)
        return event

    async def _load_event_type(self, session: AsyncSession, event: Event) -> EventType:
        event_type = await session.get(EventType, event.event_type_id)
        if event_type is None:
            raise NotFoundError("Event type", event.event_type_id)
        return event_type

    async def _apply_entries(
        self,
        session: AsyncSession,
        event: Event,
        event_type: EventType,
        entries: Sequence[WinningEntry],
        sign: int
    ) -> List[Tuple[WinningEntry, EventRegistration]]:
        credited = []
        for entry in entries:
            registration = await session.get(EventRegistration, entry.registration_id)
            if registration is None:
                raise NotFoundError("Event registration", entry.registration_id)
            if sign == APPLY and registration.event_id != event.id:
                raise ValidationError(
                    f"Event registration {registration.id} does not belong to event {event.id}"
                )
            await self.ledger.apply_score(session, registration, entry.position, event_type, sign)
            credited.append((entry, registration))
        return credited

    @staticmethod
    def _build_winners(credited) -> List[WinningRegistration]:
        return [
            WinningRegistration(
                registration=registration,
                position=entry.position,
                ordinal=ordinal
            )
            for ordinal, (entry, registration) in enumerate(credited)
        ]

    # ------------------------------------------------------------------
    # Leaderboard refresh
    # ------------------------------------------------------------------

    async def _after_commit(self, operation: str, result_id: int):
        if self.leaderboard_service is None:
            return
        if self.refresh_in_background:
            task = asyncio.create_task(self.refresh_leaderboard(f"{operation} result {result_id}"))
            self._background_tasks.add(task)
            # Drop finished tasks from the set
            task.add_done_callback(self._background_tasks.discard)
        else:
            await self.refresh_leaderboard(f"{operation} result {result_id}")

    async def refresh_leaderboard(self, reason: str = "manual refresh") -> Optional[LeaderboardSnapshot]:
        """
        Recompute the leaderboard now.

        Failures are logged and kept on ``last_refresh_error``; the previous
        snapshot stays the latest one until a refresh succeeds.
        """
        try:
            snapshot = await self.leaderboard_service.recompute_leaderboard()
        except AggregationError as e:
            self.last_refresh_error = e
            logger.error(f"Leaderboard refresh after {reason} failed: {e}")
            return None
        except Exception as e:
            self.last_refresh_error = AggregationError(f"{type(e).__name__}: {e}")
            self.last_refresh_error.__cause__ = e
            logger.exception(f"Leaderboard refresh after {reason} failed unexpectedly")
            return None
        self.last_refresh_error = None
        return snapshot

    async def wait_for_refresh(self):
        """Wait until every scheduled leaderboard refresh has finished."""
        while True:
            pending = [task for task in self._background_tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def cleanup(self):
        """Cancel pending leaderboard refreshes for graceful shutdown."""
        if self._background_tasks:
            logger.info(f"Waiting for {len(self._background_tasks)} leaderboard refreshes to complete...")
            for task in self._background_tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
            self._background_tasks.clear()
            logger.info("All leaderboard refreshes cleaned up.")
