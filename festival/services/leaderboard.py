"""
Leaderboard service.

Recomputes college rankings, per-category top scorers and per-gender top
scorers from the full result set and appends a new snapshot row. Snapshots
are never updated; readers take the most recently created one.
"""

import logging
from collections import OrderedDict, defaultdict
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from festival.config import Config
from festival.constants import CategoryConstants, CounterNames, ParticipantConstants
from festival.data_models.leaderboard import (
    CategoryTopScorers, CollegeStanding, ContributingEvent, GenderTopScorers,
    LeaderboardSnapshot, TopScorer, to_json
)
from festival.database.models import Event, EventType, Leaderboard, User
from festival.services.base import BaseService
from festival.services.counter import CounterService
from festival.utils.exceptions import AggregationError, NotFoundError
from festival.utils.ranking import RankingUtility

logger = logging.getLogger(__name__)


class LeaderboardService(BaseService):
    """Service for leaderboard recomputation and snapshot reads."""

    def __init__(
        self,
        session_factory,
        counter_service: Optional[CounterService] = None,
        top_scorer_limit: Optional[int] = None,
        categories=None
    ):
        super().__init__(session_factory)
        self.counter_service = counter_service or CounterService()
        self.top_scorer_limit = top_scorer_limit or Config.TOP_SCORER_LIMIT
        self.categories = tuple(categories or CategoryConstants.LEADERBOARD_CATEGORIES)

    # ------------------------------------------------------------------
    # Aggregation passes
    # ------------------------------------------------------------------

    async def compute_college_standings(
        self, session: AsyncSession, college_id: Optional[int] = None
    ) -> List[CollegeStanding]:
        """Pass 1: total registration score per college, highest first."""
        placements = RankingUtility.create_college_placements_cte(college_id)

        totals = (await session.execute(RankingUtility.college_totals_query(placements))).all()
        event_rows = (await session.execute(RankingUtility.college_events_query(placements))).all()

        events_by_college: Dict[int, List[ContributingEvent]] = defaultdict(list)
        for row in event_rows:
            events_by_college[row.college_id].append(
                ContributingEvent(event=row.event_name, position=row.position, score=row.score)
            )

        return [
            CollegeStanding(
                college_id=row.college_id,
                college=row.college_name,
                total_score=row.total_score or 0,
                events=events_by_college.get(row.college_id, [])
            )
            for row in totals
        ]

    async def compute_category_top_scorers(self, session: AsyncSession) -> List[CategoryTopScorers]:
        """Pass 2: top individual scorers within each leaderboard category."""
        query = RankingUtility.create_individual_ranking_query(
            Event.result_category,
            self.top_scorer_limit,
            filters=(Event.result_category.in_(self.categories),)
        )
        grouped = await self._collect_ranked(session, query)
        return [CategoryTopScorers(category, scorers) for category, scorers in grouped.items()]

    async def compute_gender_top_scorers(self, session: AsyncSession) -> List[GenderTopScorers]:
        """Pass 3: top individual on-stage scorers per gender, with their placements."""
        filters = (
            EventType.is_onstage == True,
            User.gender.in_(ParticipantConstants.GENDERS),
        )
        query = RankingUtility.create_individual_ranking_query(
            User.gender, self.top_scorer_limit, filters=filters
        )
        grouped = await self._collect_ranked(session, query, events_group_column=User.gender, event_filters=filters)
        return [GenderTopScorers(gender, scorers) for gender, scorers in grouped.items()]

    async def _collect_ranked(self, session: AsyncSession, query, events_group_column=None, event_filters=()):
        rows = (await session.execute(query)).all()

        events_by_user = None
        if events_group_column is not None and rows:
            events_by_user = defaultdict(list)
            events_query = RankingUtility.individual_events_query(
                events_group_column, [row.user_id for row in rows], filters=event_filters
            )
            for event_row in (await session.execute(events_query)).all():
                events_by_user[(event_row.group_key, event_row.user_id)].append(
                    ContributingEvent(event=event_row.event_name, position=event_row.position)
                )

        grouped: Dict[str, List[TopScorer]] = OrderedDict()
        for row in rows:
            grouped.setdefault(row.group_key, []).append(
                TopScorer(
                    user_id=row.user_id,
                    name=row.name,
                    image=row.image,
                    college=row.college,
                    score=row.total_score or 0,
                    events=events_by_user.get((row.group_key, row.user_id), []) if events_by_user is not None else None
                )
            )
        return grouped

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def recompute_leaderboard(self) -> LeaderboardSnapshot:
        """
        Run all three passes and append a new leaderboard snapshot.

        The snapshot row is only built once every pass has succeeded, so a
        failed recomputation never leaves a partial snapshot behind.

        Raises:
            AggregationError: If any pass or the final insert fails
        """
        try:
            snapshot = await self.execute_with_retry(self._recompute_once)
        except SQLAlchemyError as e:
            logger.error(f"Leaderboard aggregation failed: {e}")
            raise AggregationError(str(e)) from e
        except Exception as e:
            logger.exception(f"Leaderboard aggregation failed: {type(e).__name__}: {e}")
            raise AggregationError(f"{type(e).__name__}: {e}") from e

        logger.info(
            f"Leaderboard snapshot {snapshot.id} created from {snapshot.total_result_count} results "
            f"({len(snapshot.college_results)} colleges)"
        )
        return snapshot

    async def _recompute_once(self) -> LeaderboardSnapshot:
        async with self.get_session() as session:
            total_result_count = (await session.execute(RankingUtility.result_count_query())).scalar_one()
            last_count = await self.counter_service.current_value(session, CounterNames.RESULT)

            college_results = await self.compute_college_standings(session)
            category_top_scorers = await self.compute_category_top_scorers(session)
            gender_top_scorers = await self.compute_gender_top_scorers(session)

            leaderboard = Leaderboard(
                total_result_count=total_result_count,
                last_count=last_count,
                college_results=to_json(college_results),
                category_top_scorers=to_json(category_top_scorers),
                gender_top_scorers=to_json(gender_top_scorers),
            )
            session.add(leaderboard)
            await session.flush()
            return LeaderboardSnapshot.from_model(leaderboard)

    async def get_latest_leaderboard(self) -> LeaderboardSnapshot:
        """Return the most recently created snapshot."""
        async with self.get_session() as session:
            result = await session.execute(
                select(Leaderboard)
                .order_by(Leaderboard.created_at.desc(), Leaderboard.id.desc())
                .limit(1)
            )
            leaderboard = result.scalar_one_or_none()
            if leaderboard is None:
                raise NotFoundError("Leaderboard data")
            return LeaderboardSnapshot.from_model(leaderboard)

    async def list_snapshots(self, limit: int = 10) -> List[LeaderboardSnapshot]:
        """Snapshot history, newest first."""
        if not isinstance(limit, int) or limit < 1:
            raise ValueError("limit must be a positive integer")
        async with self.get_session() as session:
            result = await session.execute(
                select(Leaderboard)
                .order_by(Leaderboard.created_at.desc(), Leaderboard.id.desc())
                .limit(limit)
            )
            return [LeaderboardSnapshot.from_model(row) for row in result.scalars()]
