"""
Leaderboard data models.

Immutable data transfer objects for the three aggregation passes and for
stored leaderboard snapshots.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ContributingEvent:
    """An event placement that contributed to a total."""
    event: str
    position: str
    score: Optional[float] = None


@dataclass(frozen=True)
class CollegeStanding:
    """Single row of the per-college ranking."""
    college_id: int
    college: str
    total_score: float
    events: List[ContributingEvent] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CollegeStanding":
        return cls(
            college_id=data['college_id'],
            college=data['college'],
            total_score=data['total_score'],
            events=[ContributingEvent(**event) for event in data.get('events', [])]
        )


@dataclass(frozen=True)
class TopScorer:
    """An individual participant's summed score within a group (category or gender)."""
    user_id: int
    name: str
    image: Optional[str]
    college: Optional[str]
    score: float
    events: Optional[List[ContributingEvent]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TopScorer":
        events = data.get('events')
        return cls(
            user_id=data['user_id'],
            name=data['name'],
            image=data.get('image'),
            college=data.get('college'),
            score=data['score'],
            events=[ContributingEvent(**event) for event in events] if events is not None else None
        )


@dataclass(frozen=True)
class CategoryTopScorers:
    category: str
    top_scorers: List[TopScorer]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryTopScorers":
        return cls(data['category'], [TopScorer.from_dict(s) for s in data['top_scorers']])


@dataclass(frozen=True)
class GenderTopScorers:
    gender: str
    top_scorers: List[TopScorer]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenderTopScorers":
        return cls(data['gender'], [TopScorer.from_dict(s) for s in data['top_scorers']])


@dataclass(frozen=True)
class LeaderboardSnapshot:
    """A stored leaderboard row, decoded."""
    id: int
    total_result_count: int
    last_count: int
    created_at: datetime
    college_results: List[CollegeStanding]
    category_top_scorers: List[CategoryTopScorers]
    gender_top_scorers: List[GenderTopScorers]

    @classmethod
    def from_model(cls, leaderboard) -> "LeaderboardSnapshot":
        return cls(
            id=leaderboard.id,
            total_result_count=leaderboard.total_result_count,
            last_count=leaderboard.last_count,
            created_at=leaderboard.created_at,
            college_results=[CollegeStanding.from_dict(row) for row in leaderboard.college_results],
            category_top_scorers=[CategoryTopScorers.from_dict(row) for row in leaderboard.category_top_scorers],
            gender_top_scorers=[GenderTopScorers.from_dict(row) for row in leaderboard.gender_top_scorers],
        )


def to_json(items) -> List[Dict[str, Any]]:
    """Serialize a list of leaderboard dataclasses for a JSON column."""
    return [asdict(item) for item in items]
