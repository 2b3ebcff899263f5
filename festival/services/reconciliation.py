"""
Score reconciliation.

Registration scores and participant totals are maintained incrementally by
the score ledger. This service recomputes both from the stored results,
reports every stored value that has drifted and can rewrite them.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List

from sqlalchemy import select

from festival.database.models import EventRegistration, Result, User
from festival.services.base import BaseService
from festival.services.score_ledger import ScoreLedger
from festival.utils.exceptions import InvalidPositionError

logger = logging.getLogger(__name__)

REGISTRATION = "registration"
USER = "user"


@dataclass
class ScoreDrift:
    kind: str
    id: int
    stored: float
    expected: float

    def __str__(self):
        return f"{self.kind} {self.id}: stored {self.stored}, expected {self.expected}"


@dataclass
class ReconciliationReport:
    registrations_checked: int = 0
    users_checked: int = 0
    drifts: List[ScoreDrift] = field(default_factory=list)
    # (result id, registration id, position) placements whose position is no
    # longer in the event type's scoring table; they count as 0
    unscorable: List[tuple] = field(default_factory=list)
    fixed: bool = False

    @property
    def is_consistent(self) -> bool:
        return not self.drifts


class ScoreReconciliationService(BaseService):
    """Recompute derived scores from results and repair drift."""

    def __init__(self, session_factory, ledger: ScoreLedger = None):
        super().__init__(session_factory)
        self.ledger = ledger or ScoreLedger()

    async def reconcile(self, fix: bool = False) -> ReconciliationReport:
        """
        Compare stored scores with the scores implied by the results.

        Args:
            fix: Rewrite drifted values in the same transaction

        Returns:
            ReconciliationReport listing every drift found
        """
        report = ReconciliationReport()

        async with self.get_session() as session:
            results = (await session.execute(select(Result))).scalars().all()
            expected_registration, expected_user = self._expected_scores(results, report)

            registrations = (await session.execute(
                select(EventRegistration).order_by(EventRegistration.id)
            )).scalars().all()
            users = (await session.execute(select(User).order_by(User.id))).scalars().all()

            report.registrations_checked = len(registrations)
            report.users_checked = len(users)

            for registration in registrations:
                expected = expected_registration.get(registration.id, 0)
                if not _same_score(registration.score, expected):
                    report.drifts.append(ScoreDrift(REGISTRATION, registration.id, registration.score, expected))
                    if fix:
                        registration.score = expected

            for user in users:
                expected = expected_user.get(user.id, 0)
                if not _same_score(user.total_score, expected):
                    report.drifts.append(ScoreDrift(USER, user.id, user.total_score, expected))
                    if fix:
                        user.total_score = expected

            if fix and report.drifts:
                await session.flush()
                report.fixed = True

        for drift in report.drifts:
            logger.warning(f"Score drift on {drift}")
        logger.info(
            f"Reconciled {report.registrations_checked} registrations and {report.users_checked} users: "
            f"{len(report.drifts)} drifts{' fixed' if report.fixed else ''}"
        )
        return report

    def _expected_scores(self, results, report: ReconciliationReport):
        expected_registration: Dict[int, float] = defaultdict(float)
        expected_user: Dict[int, float] = defaultdict(float)

        for result in results:
            event_type = result.event.event_type
            for winner in result.winning_registrations:
                try:
                    points = self.ledger.position_score(event_type, winner.position)
                except InvalidPositionError:
                    report.unscorable.append((result.id, winner.registration_id, winner.position))
                    continue

                expected_registration[winner.registration_id] += points
                if not event_type.is_group:
                    for user_id in winner.registration.user_ids:
                        expected_user[user_id] += points

        return expected_registration, expected_user


def _same_score(stored, expected) -> bool:
    return math.isclose(stored or 0, expected, abs_tol=1e-9)
