"""
Shared ranking queries for the leaderboard and the result projections.

Every query walks the same join path:
Result -> Event -> EventType -> WinningRegistration -> EventRegistration
-> RegistrationParticipant -> User -> College
"""

from typing import Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.sql import Select

from festival.database.models import (
    Result, Event, EventType, WinningRegistration, EventRegistration,
    RegistrationParticipant, User, College
)


class RankingUtility:
    """Query builders for the three leaderboard passes."""

    @staticmethod
    def _placement_joins(query: Select) -> Select:
        return (
            query
            .select_from(Result)
            .join(Event, Result.event_id == Event.id)
            .join(EventType, Event.event_type_id == EventType.id)
            .join(WinningRegistration, WinningRegistration.result_id == Result.id)
            .join(EventRegistration, WinningRegistration.registration_id == EventRegistration.id)
            .join(RegistrationParticipant, RegistrationParticipant.registration_id == EventRegistration.id)
            .join(User, RegistrationParticipant.user_id == User.id)
        )

    @staticmethod
    def create_college_placements_cte(college_id: Optional[int] = None):
        """
        One row per (winning registration, college).

        A registration whose participants share a college contributes its
        score to that college exactly once.
        """
        query = RankingUtility._placement_joins(
            select(
                WinningRegistration.id.label('winning_id'),
                WinningRegistration.ordinal.label('ordinal'),
                WinningRegistration.position.label('position'),
                Result.id.label('result_id'),
                Event.name.label('event_name'),
                EventRegistration.score.label('score'),
                College.id.label('college_id'),
                College.name.label('college_name'),
            )
        ).join(College, User.college_id == College.id).distinct()

        if college_id is not None:
            query = query.where(College.id == college_id)

        return query.cte('college_placements')

    @staticmethod
    def college_totals_query(placements) -> Select:
        total = func.sum(placements.c.score).label('total_score')
        return (
            select(placements.c.college_id, placements.c.college_name, total)
            .group_by(placements.c.college_id, placements.c.college_name)
            .order_by(total.desc(), placements.c.college_name)
        )

    @staticmethod
    def college_events_query(placements) -> Select:
        return (
            select(
                placements.c.college_id,
                placements.c.event_name,
                placements.c.position,
                placements.c.score,
            )
            .order_by(placements.c.college_id, placements.c.result_id, placements.c.ordinal)
        )

    @staticmethod
    def create_individual_ranking_query(
        group_column,
        limit: int,
        filters: Sequence = (),
    ) -> Select:
        """
        Rank individual participants by summed registration score within each
        value of ``group_column`` and keep the first ``limit`` per group.

        Group event types are always excluded: a group win is never
        attributed to a single participant.
        """
        total = func.sum(EventRegistration.score)
        ranked = (
            RankingUtility._placement_joins(
                select(
                    group_column.label('group_key'),
                    User.id.label('user_id'),
                    User.name.label('name'),
                    User.image.label('image'),
                    College.name.label('college'),
                    total.label('total_score'),
                    func.row_number().over(
                        partition_by=group_column,
                        order_by=(total.desc(), User.name, User.id)
                    ).label('rank'),
                )
            )
            .join(College, User.college_id == College.id, isouter=True)
            .where(EventType.is_group == False, *filters)
            .group_by(group_column, User.id, User.name, User.image, College.name)
        ).subquery('individual_ranking')

        return (
            select(ranked)
            .where(ranked.c.rank <= limit)
            .order_by(ranked.c.group_key, ranked.c.rank)
        )

    @staticmethod
    def individual_events_query(group_column, user_ids: Sequence[int], filters: Sequence = ()) -> Select:
        """Contributing event placements for already-ranked participants."""
        return (
            RankingUtility._placement_joins(
                select(
                    group_column.label('group_key'),
                    User.id.label('user_id'),
                    Event.name.label('event_name'),
                    WinningRegistration.position.label('position'),
                    EventRegistration.score.label('score'),
                )
            )
            .where(EventType.is_group == False, User.id.in_(list(user_ids)), *filters)
            .order_by(User.id, Result.id, WinningRegistration.ordinal)
        )

    @staticmethod
    def result_count_query() -> Select:
        return select(func.count(Result.id))
