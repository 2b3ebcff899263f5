"""
Result data models.

Immutable input and output objects for the result transaction manager and
the read-side projections.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from festival.constants import PositionConstants
from festival.utils.exceptions import InvalidPositionError, ValidationError


def normalize_position(position: Union[str, int]) -> str:
    """Return the position label for a label or a 1-based rank."""
    if isinstance(position, bool):
        raise ValidationError(f"Invalid position: {position}")
    if isinstance(position, int):
        if 1 <= position <= len(PositionConstants.POSITIONS):
            return PositionConstants.label_for(position)
        # A well-formed rank that no scoring table can hold
        raise InvalidPositionError(position)
    if isinstance(position, str) and position.strip():
        label = position.strip().lower()
        if label.isdigit():
            return normalize_position(int(label))
        return label
    raise ValidationError(f"Invalid position: {position!r}")


@dataclass(frozen=True)
class WinningEntry:
    """One (registration, position) pair supplied by the caller."""
    registration_id: int
    position: str

    @classmethod
    def from_value(cls, value: Union["WinningEntry", Mapping[str, Any]]) -> "WinningEntry":
        """Accept an entry object or a mapping with registration/position keys."""
        if isinstance(value, cls):
            return cls(value.registration_id, normalize_position(value.position))
        if isinstance(value, Mapping):
            registration_id = value.get('registration_id', value.get('eventRegistration'))
            if registration_id is None:
                raise ValidationError("Winning registration is missing its registration id")
            return cls(int(registration_id), normalize_position(value.get('position')))
        raise ValidationError(f"Unsupported winning registration: {value!r}")


def parse_winning_entries(values) -> List[WinningEntry]:
    """Normalize a caller-supplied winning list, keeping its order."""
    if not values:
        raise ValidationError("At least one winning registration is required")
    entries = [WinningEntry.from_value(value) for value in values]
    seen = set()
    for entry in entries:
        if entry.registration_id in seen:
            raise ValidationError(
                f"Event registration {entry.registration_id} is listed more than once"
            )
        seen.add(entry.registration_id)
    return entries


@dataclass(frozen=True)
class ParticipantView:
    user_id: int
    user_code: str
    name: str
    gender: str
    image: Optional[str]
    college_id: int
    college_name: Optional[str]


@dataclass(frozen=True)
class WinningRegistrationView:
    registration_id: int
    position: str
    score: float
    group_name: Optional[str]
    college_name: Optional[str]
    participants: List[ParticipantView] = field(default_factory=list)


@dataclass(frozen=True)
class EventResultView:
    """A single event's result joined out to participants and colleges."""
    result_id: int
    event_id: int
    serial_number: Optional[int]
    name: str
    result_category: Optional[str]
    is_group: bool
    is_onstage: bool
    updated_at: Any
    winning_registrations: List[WinningRegistrationView] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
