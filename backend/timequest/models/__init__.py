from .gamification import ChallengeType, UserAchievement, UserChallenge
from .project import Project, Task
from .time_entry import TimeEntry
from .timer import ACTIVE_STATUSES, Timer, TimerStatus
from .user import User
from .xp import XPAction, XPHistory

__all__ = [
    "ACTIVE_STATUSES",
    "ChallengeType",
    "Project",
    "Task",
    "TimeEntry",
    "Timer",
    "TimerStatus",
    "User",
    "UserAchievement",
    "UserChallenge",
    "XPAction",
    "XPHistory",
]
