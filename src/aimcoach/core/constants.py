"""
AimCoach - Constants

Enumerations and thresholds shared by context detection, intent
classification and the task pipelines.
"""

from enum import StrEnum


class UserContext(StrEnum):
    """
    Discrete engagement state of a player.

    Exactly one value holds at any evaluation instant. It is a pure function
    of the activity history plus whether an active playlist exists.
    """

    NEW_USER = "new_user"  # No recorded activity at all
    RETURNING_USER = "returning_user"  # Back after a long break
    ACTIVE_USER = "active_user"  # Default, nothing special going on
    PLAYLIST_RECOMMENDED = "playlist_recommended"  # No active playlist yet
    ANALYSIS_RECOMMENDED = "analysis_recommended"  # Lots of fresh scores today


class TaskType(StrEnum):
    """Structured coaching tasks a turn can be delegated to."""

    DAILY_REPORT = "daily_report"
    SCORE_ANALYSIS = "score_analysis"
    PLAYLIST_BUILDING = "playlist_building"
    PROGRESS_REVIEW = "progress_review"


class Intent(StrEnum):
    """What the player wants from a single utterance."""

    TASK_EXECUTION = "task_execution"
    INFORMATION_REQUEST = "information_request"
    GENERAL_CONVERSATION = "general_conversation"


class TaskStatus(StrEnum):
    """Outcome of a pipeline run."""

    SUCCESS = "success"
    FAILURE = "failure"


class TrendDirection(StrEnum):
    """Direction of a performance trend."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class Role(StrEnum):
    """Speaker of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"


class ActivitySourceName(StrEnum):
    """Aim trainers whose runs are tracked."""

    KOVAAKS = "kovaaks"
    AIMLAB = "aimlab"


class Difficulty(StrEnum):
    """Difficulty tag of a playlist scenario."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Performance(StrEnum):
    """Daily report performance rating."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_IMPROVEMENT = "needs_improvement"
    NONE = "none"  # No sessions in the window


# ============================================================================
# Context detection thresholds
# ============================================================================

# days_inactive reported when the player has never trained
NO_ACTIVITY_DAYS = 999

# Records in the last 24h at which an analysis is suggested
ANALYSIS_MIN_NEW_SCORES = 6

# days_inactive must be strictly below this for analysis_recommended
ANALYSIS_MAX_DAYS_INACTIVE = 1

# days_inactive at which a player counts as returning
RETURNING_MIN_DAYS_INACTIVE = 7

# ============================================================================
# Intent / delegation thresholds
# ============================================================================

STRONG_TASK_CONFIDENCE = 0.9
INFORMATION_CONFIDENCE = 0.8
GREETING_CONFIDENCE = 0.95
WEAK_TASK_CONFIDENCE = 0.6
DEFAULT_CONFIDENCE = 0.5
EMPTY_MESSAGE_CONFIDENCE = 0.2

# Pattern confidence below which the model may refine the classification
MODEL_REFINEMENT_THRESHOLD = 0.8

# Minimum confidence for delegating a turn to a task pipeline
DELEGATION_MIN_CONFIDENCE = 0.7

# ============================================================================
# Pipeline windows
# ============================================================================

SCORE_ANALYSIS_LIMIT = 20
PLAYLIST_HISTORY_LIMIT = 30

# Practice time is estimated, runs carry no reliable duration
MINUTES_PER_SESSION = 10

# Relative change between halves that counts as a trend (5%)
TREND_THRESHOLD = 0.05

# Average accuracy bounds used by the coaching status trend
ACCURACY_IMPROVING_ABOVE = 0.8
ACCURACY_DECLINING_BELOW = 0.6
