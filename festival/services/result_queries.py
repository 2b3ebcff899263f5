"""
Read-side result projections.

Pure queries: nothing here mutates the store or writes a leaderboard
snapshot. The college and gender projections reuse the leaderboard passes
so they always agree with a freshly recomputed snapshot.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import select

from festival.data_models.leaderboard import CollegeStanding, GenderTopScorers
from festival.data_models.results import EventResultView, ParticipantView, WinningRegistrationView
from festival.database.models import College, Event, EventType, Result
from festival.services.base import BaseService
from festival.utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class ResultQueryService(BaseService):
    """Result lookups for display and export."""

    def __init__(self, session_factory, leaderboard_service):
        super().__init__(session_factory)
        self.leaderboard_service = leaderboard_service

    async def fetch_all_results(self) -> List[Result]:
        """Every result with event, event type, registrations and participants loaded."""
        async with self.get_session() as session:
            result = await session.execute(
                select(Result).order_by(Result.serial_number, Result.id)
            )
            return list(result.scalars().all())

    async def get_result_by_event(self, event_id: int) -> EventResultView:
        """A single event's result with each winner's participants and college."""
        async with self.get_session() as session:
            query = await session.execute(select(Result).where(Result.event_id == event_id))
            result = query.scalar_one_or_none()
            if result is None:
                raise NotFoundError("Result for event", event_id)
            return self._to_event_view(result)

    async def get_results_grouped_by_college(self) -> List[CollegeStanding]:
        """College totals with their contributing placements, highest first."""
        async with self.get_session() as session:
            return await self.leaderboard_service.compute_college_standings(session)

    async def get_results_by_college(self, college_id: int) -> CollegeStanding:
        """The college-totals entry for one college."""
        async with self.get_session() as session:
            college = await session.get(College, college_id)
            if college is None:
                raise NotFoundError("College", college_id)
            standings = await self.leaderboard_service.compute_college_standings(session, college_id=college_id)
            if standings:
                return standings[0]
            return CollegeStanding(college_id=college.id, college=college.name, total_score=0, events=[])

    async def get_detailed_gender_top_scorers(self) -> List[GenderTopScorers]:
        """Per-gender top scorers with event breakdown, computed on demand."""
        async with self.get_session() as session:
            return await self.leaderboard_service.compute_gender_top_scorers(session)

    async def get_individual_results(self) -> List[Dict[str, Any]]:
        """Results of individual (non-group) events with their winners."""
        async with self.get_session() as session:
            query = await session.execute(
                select(Result)
                .join(Event, Result.event_id == Event.id)
                .join(EventType, Event.event_type_id == EventType.id)
                .where(EventType.is_group == False)
                .order_by(Result.serial_number, Result.id)
            )
            results = query.scalars().all()

            listing = []
            for result in results:
                view = self._to_event_view(result)
                listing.append({
                    'name': view.name,
                    'event_type': result.event.event_type.name,
                    'result_category': view.result_category,
                    'is_group': view.is_group,
                    'winning_registrations': [
                        {
                            'position': winner.position,
                            'score': winner.score,
                            'participants': [participant.name for participant in winner.participants],
                        }
                        for winner in view.winning_registrations
                    ],
                })
            return listing

    @staticmethod
    def _to_event_view(result: Result) -> EventResultView:
        event = result.event
        winners = []
        for winner in result.winning_registrations:
            registration = winner.registration
            participants = [
                ParticipantView(
                    user_id=participant.user.id,
                    user_code=participant.user.user_code,
                    name=participant.user.name,
                    gender=participant.user.gender,
                    image=participant.user.image,
                    college_id=participant.user.college_id,
                    college_name=participant.user.college.name if participant.user.college else None,
                )
                for participant in registration.participants
            ]
            winners.append(WinningRegistrationView(
                registration_id=registration.id,
                position=winner.position,
                score=registration.score,
                group_name=registration.group_name,
                college_name=participants[0].college_name if participants else None,
                participants=participants,
            ))

        return EventResultView(
            result_id=result.id,
            event_id=event.id,
            serial_number=result.serial_number,
            name=event.name,
            result_category=event.result_category,
            is_group=event.event_type.is_group,
            is_onstage=event.event_type.is_onstage,
            updated_at=result.updated_at,
            winning_registrations=winners,
        )
