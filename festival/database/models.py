from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Float, JSON,
    ForeignKey, UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime, timezone

Base = declarative_base()

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class College(Base):
    """An organization account that registers its own students."""
    __tablename__ = 'colleges'

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False, unique=True)
    short_name = Column(String(50), nullable=True)

    # Metadata
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    users = relationship("User", back_populates="college")

    def __repr__(self):
        return f"<College(id={self.id}, name='{self.name}')>"

class EventType(Base):
    __tablename__ = 'event_types'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    is_group = Column(Boolean, default=False, nullable=False)
    is_onstage = Column(Boolean, default=False, nullable=False)

    # Position label -> points, e.g. {"first": 10, "second": 5}
    scores = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow)

    events = relationship("Event", back_populates="event_type")

    def __repr__(self):
        return f"<EventType(name='{self.name}', group={self.is_group}, onstage={self.is_onstage})>"

class Event(Base):
    __tablename__ = 'events'

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    result_category = Column(String(50), nullable=True, index=True)
    event_type_id = Column(Integer, ForeignKey('event_types.id'), nullable=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=utcnow)

    event_type = relationship("EventType", back_populates="events", lazy="selectin")
    registrations = relationship("EventRegistration", back_populates="event")

    __table_args__ = (UniqueConstraint('event_type_id', 'name'),)

    def __repr__(self):
        return f"<Event(id={self.id}, name='{self.name}', category='{self.result_category}')>"

class User(Base):
    """A participant belonging to one college."""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    user_code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    gender = Column(String(10), nullable=False)
    phone_number = Column(String(20), unique=True, nullable=False)
    cap_id = Column(String(50), unique=True, nullable=False)
    course = Column(String(100), nullable=True)
    semester = Column(Integer, nullable=True)
    year_of_study = Column(Integer, nullable=True)
    image = Column(String(500), nullable=True)
    college_id = Column(Integer, ForeignKey('colleges.id'), nullable=False, index=True)

    # Running sum of individual (non-group) event points
    total_score = Column(Float, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    college = relationship("College", back_populates="users", lazy="selectin")

    __table_args__ = (
        CheckConstraint("gender IN ('male', 'female')", name="check_user_gender"),
    )

    def __repr__(self):
        return f"<User(code='{self.user_code}', name='{self.name}', total_score={self.total_score})>"

class EventRegistration(Base):
    """One entry into an event, owned by the college that created it."""
    __tablename__ = 'event_registrations'

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey('events.id'), nullable=False, index=True)
    college_id = Column(Integer, ForeignKey('colleges.id'), nullable=True)
    group_name = Column(String(200), nullable=True)

    # Points assigned by the result that places this entry, 0 otherwise
    score = Column(Float, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="registrations")
    participants = relationship(
        "RegistrationParticipant",
        back_populates="registration",
        cascade="all, delete-orphan",
        order_by="RegistrationParticipant.id",
        lazy="selectin"
    )

    @property
    def user_ids(self):
        return [participant.user_id for participant in self.participants]

    def __repr__(self):
        return f"<EventRegistration(id={self.id}, event_id={self.event_id}, score={self.score})>"

class RegistrationParticipant(Base):
    __tablename__ = 'registration_participants'

    id = Column(Integer, primary_key=True)
    registration_id = Column(Integer, ForeignKey('event_registrations.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    registration = relationship("EventRegistration", back_populates="participants")
    user = relationship("User", lazy="selectin")

    __table_args__ = (UniqueConstraint('registration_id', 'user_id'),)

class Result(Base):
    """The outcome of exactly one event."""
    __tablename__ = 'results'

    id = Column(Integer, primary_key=True)
    # Unique: a concurrent second create for the same event fails at commit
    event_id = Column(Integer, ForeignKey('events.id'), nullable=False, unique=True)
    serial_number = Column(Integer, nullable=True)

    created_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    event = relationship("Event", lazy="selectin")
    winning_registrations = relationship(
        "WinningRegistration",
        back_populates="result",
        cascade="all, delete-orphan",
        order_by="WinningRegistration.ordinal",
        lazy="selectin"
    )

    def __repr__(self):
        return f"<Result(id={self.id}, event_id={self.event_id}, winners={len(self.winning_registrations)})>"

class WinningRegistration(Base):
    """A registration paired with the position it achieved in a result."""
    __tablename__ = 'winning_registrations'

    id = Column(Integer, primary_key=True)
    result_id = Column(Integer, ForeignKey('results.id', ondelete='CASCADE'), nullable=False)
    registration_id = Column(Integer, ForeignKey('event_registrations.id'), nullable=False, index=True)
    position = Column(String(20), nullable=False)

    # Caller-supplied order, stored verbatim
    ordinal = Column(Integer, nullable=False, default=0)

    result = relationship("Result", back_populates="winning_registrations")
    registration = relationship("EventRegistration", lazy="selectin")

    __table_args__ = (Index('ix_winning_registrations_result_ordinal', 'result_id', 'ordinal'),)

    def __repr__(self):
        return f"<WinningRegistration(registration_id={self.registration_id}, position='{self.position}')>"

class Leaderboard(Base):
    """Append-only ranking snapshot; readers take the newest row."""
    __tablename__ = 'leaderboards'

    id = Column(Integer, primary_key=True)
    total_result_count = Column(Integer, nullable=False, default=0)
    last_count = Column(Integer, nullable=False, default=0)
    college_results = Column(JSON, nullable=False, default=list)
    category_top_scorers = Column(JSON, nullable=False, default=list)
    gender_top_scorers = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=utcnow, index=True)

    def __repr__(self):
        return f"<Leaderboard(id={self.id}, results={self.total_result_count}, created_at={self.created_at})>"

class Counter(Base):
    __tablename__ = 'counters'

    name = Column(String(50), primary_key=True)
    seq = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Counter(name='{self.name}', seq={self.seq})>"
