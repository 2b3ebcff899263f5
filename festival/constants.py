"""
Festival-wide constants.

Position labels, result categories and other fixed values shared by the
score ledger, the leaderboard aggregation and the registry.
"""

class PositionConstants:
    """Finishing positions a result can award."""

    # Ordered best to worst; index + 1 is the numeric rank
    POSITIONS = ("first", "second", "third")

    @classmethod
    def label_for(cls, rank: int) -> str:
        return cls.POSITIONS[rank - 1]


class CategoryConstants:
    """Result categories (departments) events are grouped under."""

    RESULT_CATEGORIES = (
        "saahithyolsavam",  # literary
        "chithrolsavam",    # art
        "sangeetholsavam",  # music
        "nrithyolsavam",    # dance
        "drishyanatakolsavam",  # drama
        "general",
    )

    # Categories that get a per-category top scorer list on the leaderboard
    LEADERBOARD_CATEGORIES = ("saahithyolsavam", "chithrolsavam")


class ParticipantConstants:
    """Participant attribute values."""

    GENDERS = ("male", "female")

    # Width of the numeric part of a participant code, e.g. KLM0001
    USER_CODE_DIGITS = 4


class CounterNames:
    """Names of the monotonic counters."""

    RESULT = "result"
    USER_CODE = "user_code"
