from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel

from ..models.gamification import ChallengeType
from ..models.xp import XPAction


class XPHistoryOut(BaseModel):
    id: str
    action: XPAction
    xp_earned: int
    description: Optional[str] = None
    timer_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserStats(BaseModel):
    level: int
    xp: int
    xp_to_next: int
    streak: int
    total_hours: int
    completed_timers: int
    today_hours: int
    today_timers: int
    focus_minutes: int


LeaderboardKind = Literal["xp", "hours", "tasks", "streak"]


class LeaderboardEntry(BaseModel):
    rank: int
    id: str
    name: str
    level: int
    xp: int
    total_hours: int
    completed_tasks: int
    streak: int


class Leaderboard(BaseModel):
    kind: LeaderboardKind
    leaderboard: List[LeaderboardEntry]


class AchievementOut(BaseModel):
    id: str
    title: str
    description: str
    requirement: int
    xp_reward: int
    category: str
    rarity: str
    current: int
    unlocked: bool


class AchievementReport(BaseModel):
    achievements: List[AchievementOut]
    new_unlocked: List[AchievementOut]
    xp_gained: int


class ChallengeOut(BaseModel):
    id: str
    challenge_id: str
    title: str
    description: str
    target: int
    current: int
    xp_reward: int
    type: ChallengeType
    completed: bool
    date: date

    model_config = {"from_attributes": True}


class ChallengeList(BaseModel):
    challenges: List[ChallengeOut]
    xp_gained: int = 0


class ChallengeUpdate(BaseModel):
    completed: bool
