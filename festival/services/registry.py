"""
Registry service.

Colleges, event types, events, participants and event registrations: the
records the result engine scores. Organizations register their own
students; the admin account manages events and event types.
"""

import logging
from numbers import Number
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from festival.config import Config, ZoneConfig
from festival.constants import CategoryConstants, CounterNames, ParticipantConstants, PositionConstants
from festival.database.models import (
    College, Event, EventRegistration, EventType, RegistrationParticipant, User, WinningRegistration
)
from festival.services.base import BaseService
from festival.services.counter import CounterService
from festival.utils.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PARTICIPANT_FIELDS = (
    'name', 'gender', 'phone_number', 'cap_id', 'course',
    'semester', 'year_of_study', 'image'
)
REQUIRED_PARTICIPANT_FIELDS = ('name', 'gender', 'phone_number', 'cap_id')


class RegistryService(BaseService):
    """Service for the records results are recorded against."""

    def __init__(self, session_factory, zone: Optional[ZoneConfig] = None, counter_service: Optional[CounterService] = None):
        super().__init__(session_factory)
        self.zone = zone or Config.get_zone()
        self.counter_service = counter_service or CounterService()

    # Colleges

    async def create_college(self, name: str, short_name: Optional[str] = None) -> College:
        name = (name or '').strip()
        if not name:
            raise ValidationError("College name is required")
        async with self.get_session() as session:
            existing = await session.execute(select(College.id).where(College.name == name))
            if existing.scalar_one_or_none() is not None:
                raise ConflictError(f"College '{name}' already exists")
            college = College(name=name, short_name=short_name)
            session.add(college)
            await session.flush()
        logger.info(f"Registered college {college.id} ({name})")
        return college

    # Event types and events

    async def create_event_type(
        self,
        name: str,
        scores: Dict[str, Any],
        is_group: bool = False,
        is_onstage: bool = False
    ) -> EventType:
        """Create an event type with a position -> points scoring table."""
        scoring_table = self._validate_scores(scores)
        async with self.get_session() as session:
            existing = await session.execute(select(EventType.id).where(EventType.name == name))
            if existing.scalar_one_or_none() is not None:
                raise ConflictError(f"Event type '{name}' already exists")
            event_type = EventType(
                name=name,
                scores=scoring_table,
                is_group=bool(is_group),
                is_onstage=bool(is_onstage)
            )
            session.add(event_type)
            await session.flush()
        return event_type

    @staticmethod
    def _validate_scores(scores: Dict[str, Any]) -> Dict[str, float]:
        if not isinstance(scores, dict) or not scores:
            raise ValidationError("Event type scores must be a non-empty mapping")
        table = {}
        for position, points in scores.items():
            label = str(position).strip().lower()
            if label not in PositionConstants.POSITIONS:
                raise ValidationError(f"Unknown position '{position}' in scoring table")
            if isinstance(points, bool) or not isinstance(points, Number) or points < 0:
                raise ValidationError(f"Points for '{position}' must be a non-negative number")
            table[label] = points
        return table

    async def create_event(self, name: str, event_type_id: int, result_category: Optional[str] = None) -> Event:
        if result_category is not None and result_category not in CategoryConstants.RESULT_CATEGORIES:
            raise ValidationError(f"Unknown result category '{result_category}'")
        async with self.get_session() as session:
            if await session.get(EventType, event_type_id) is None:
                raise NotFoundError("Event type", event_type_id)
            event = Event(name=name, event_type_id=event_type_id, result_category=result_category)
            session.add(event)
            await session.flush()
        return event

    def list_result_categories(self) -> List[str]:
        return list(CategoryConstants.RESULT_CATEGORIES)

    # Participants

    async def register_participant(self, college_id: int, **fields) -> User:
        """
        Register a student for a college.

        The participant code is the zone prefix followed by the next value of
        the participant counter, e.g. KLM0007.
        """
        data = self._clean_participant_fields(fields)
        missing = [field for field in REQUIRED_PARTICIPANT_FIELDS if not data.get(field)]
        if missing:
            raise ValidationError(f"Missing participant fields: {', '.join(missing)}")

        try:
            async with self.get_session() as session:
                if await session.get(College, college_id) is None:
                    raise NotFoundError("College", college_id)
                await self._check_unique_participant(session, data)

                seq = await self.counter_service.next_value(session, CounterNames.USER_CODE)
                user = User(
                    user_code=f"{self.zone.id_prefix}{seq:0{ParticipantConstants.USER_CODE_DIGITS}d}",
                    college_id=college_id,
                    total_score=0,
                    **data
                )
                session.add(user)
                await session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Participant already exists: {e.orig}") from e

        logger.info(f"Registered participant {user.user_code} for college {college_id}")
        return user

    async def update_participant(self, user_id: int, **fields) -> User:
        """Update participant details; scores and codes are not editable here."""
        for protected in ('total_score', 'user_code', 'id'):
            if protected in fields:
                raise ValidationError(f"Field '{protected}' cannot be updated")
        data = self._clean_participant_fields(fields)

        try:
            async with self.get_session() as session:
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User", user_id)
                await self._check_unique_participant(session, data, exclude_id=user.id)
                for key, value in data.items():
                    setattr(user, key, value)
                await session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Participant already exists: {e.orig}") from e
        return user

    @staticmethod
    def _clean_participant_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - set(PARTICIPANT_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown participant fields: {', '.join(sorted(unknown))}")
        data = {key: value for key, value in fields.items() if key in PARTICIPANT_FIELDS}
        if 'gender' in data:
            data['gender'] = str(data['gender']).lower()
            if data['gender'] not in ParticipantConstants.GENDERS:
                raise ValidationError(f"Invalid gender '{fields['gender']}'")
        return data

    async def _check_unique_participant(self, session, data: Dict[str, Any], exclude_id: Optional[int] = None):
        conditions = []
        if data.get('phone_number'):
            conditions.append(User.phone_number == data['phone_number'])
        if data.get('cap_id'):
            conditions.append(User.cap_id == data['cap_id'])
        if not conditions:
            return

        query = select(User).where(or_(*conditions))
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        existing = (await session.execute(query)).scalars().first()
        if existing is None:
            return
        if existing.phone_number == data.get('phone_number'):
            raise ConflictError("User with this phone number already exists")
        raise ConflictError("User with this capId already exists")

    # Event registrations

    async def create_event_registration(
        self,
        event_id: int,
        college_id: int,
        user_ids: Sequence[int],
        group_name: Optional[str] = None
    ) -> EventRegistration:
        """Enter one or more of a college's participants into an event."""
        user_ids = list(user_ids or [])
        if not user_ids:
            raise ValidationError("An event registration needs at least one participant")
        if len(set(user_ids)) != len(user_ids):
            raise ValidationError("A participant can only be listed once per registration")

        async with self.get_session() as session:
            event = await session.get(Event, event_id)
            if event is None:
                raise NotFoundError("Event", event_id)
            if await session.get(College, college_id) is None:
                raise NotFoundError("College", college_id)
            if not event.event_type.is_group and len(user_ids) != 1:
                raise ValidationError(f"Event '{event.name}' is an individual event and takes one participant")

            participants = []
            for user_id in user_ids:
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User", user_id)
                if user.college_id != college_id:
                    raise ValidationError(f"User {user_id} does not belong to college {college_id}")
                participants.append(RegistrationParticipant(user_id=user.id, user=user))

            registration = EventRegistration(
                event_id=event.id,
                college_id=college_id,
                group_name=group_name,
                score=0,
                participants=participants
            )
            session.add(registration)
            await session.flush()
        return registration

    async def delete_event_registration(self, registration_id: int) -> bool:
        async with self.get_session() as session:
            registration = await session.get(EventRegistration, registration_id)
            if registration is None:
                raise NotFoundError("Event registration", registration_id)
            placed = await session.execute(
                select(WinningRegistration.id).where(WinningRegistration.registration_id == registration_id)
            )
            if placed.first() is not None:
                raise ConflictError("Event registration is referenced by a result")
            await session.delete(registration)
        return True
