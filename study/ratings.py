"""Rating and activity-type enumerations for the study engine."""

from enum import Enum, IntEnum


class Rating(IntEnum):
    """Self-reported recall quality shown as rating buttons after a phrase."""
    AGAIN = 1
    LAPSE = 2  # Remembered only after seeing the answer; no button emits it
    HARD = 3
    GOOD = 4
    EASY = 5


# Ratings below this are failed recalls
PASSING_QUALITY = 3


class ActivityType(str, Enum):
    """Kinds of learning activity recorded in the activity log."""
    PREDICTION = "prediction"
    CHAT = "chat"
    REVIEW = "review"
    CORRECTION = "correction"
