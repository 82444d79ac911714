from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import unit_of_work
from ..models import User, UserAchievement, XPAction
from ..schemas.gamification import AchievementOut, AchievementReport
from ..utils.redis import invalidate_leaderboards
from .stats import ActivitySnapshot, load_activity
from .xp import award_xp

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AchievementTemplate:
    id: str
    title: str
    description: str
    requirement: int
    xp_reward: int
    category: str
    rarity: str

    def progress(self, activity: ActivitySnapshot) -> int:
        if self.category == "time":
            return activity.total_hours
        if self.category == "tasks":
            return activity.completed_timers
        return activity.streak


ACHIEVEMENTS: tuple[AchievementTemplate, ...] = (
    AchievementTemplate("first_hour", "Getting Started", "Track your first hour", 1, 50, "time", "common"),
    AchievementTemplate("ten_hours", "Time Keeper", "Track 10 hours total", 10, 100, "time", "common"),
    AchievementTemplate("hundred_hours", "Time Master", "Track 100 hours total", 100, 500, "time", "rare"),
    AchievementTemplate("first_task", "Task Rookie", "Complete your first task", 1, 25, "tasks", "common"),
    AchievementTemplate("ten_tasks", "Task Warrior", "Complete 10 tasks", 10, 150, "tasks", "common"),
    AchievementTemplate("week_streak", "Consistent", "Maintain a 7-day streak", 7, 200, "streak", "rare"),
)


class AchievementService:
    def __init__(self, session: AsyncSession, redis: Optional[Redis] = None) -> None:
        self.session = session
        self.redis = redis

    async def evaluate(self, user: User, now: datetime) -> AchievementReport:
        activity = await load_activity(self.session, user.id, now)
        unlocked_ids = set(
            (
                await self.session.execute(
                    select(UserAchievement.achievement_id).where(
                        UserAchievement.user_id == user.id
                    )
                )
            ).scalars()
        )

        report: list[AchievementOut] = []
        fresh: list[AchievementOut] = []
        for template in ACHIEVEMENTS:
            current = template.progress(activity)
            already = template.id in unlocked_ids
            earned = not already and current >= template.requirement
            item = AchievementOut(
                id=template.id,
                title=template.title,
                description=template.description,
                requirement=template.requirement,
                xp_reward=template.xp_reward,
                category=template.category,
                rarity=template.rarity,
                current=min(current, template.requirement),
                unlocked=already or earned,
            )
            report.append(item)
            if earned:
                fresh.append(item)

        if fresh:
            async with unit_of_work(self.session, "unlock_achievements"):
                for item in fresh:
                    self.session.add(
                        UserAchievement(
                            user_id=user.id,
                            achievement_id=item.id,
                            title=item.title,
                            description=item.description,
                            xp_reward=item.xp_reward,
                            category=item.category,
                            rarity=item.rarity,
                            unlocked_at=now,
                        )
                    )
                    await award_xp(
                        self.session,
                        user.id,
                        XPAction.STREAK_BONUS if item.category == "streak" else XPAction.LEVEL_UP,
                        item.xp_reward,
                        description=f"Achievement unlocked: {item.title}",
                    )
            logger.info(
                "User %s unlocked %s", user.id, ", ".join(item.id for item in fresh)
            )
            await invalidate_leaderboards(self.redis)

        return AchievementReport(
            achievements=report,
            new_unlocked=fresh,
            xp_gained=sum(item.xp_reward for item in fresh),
        )
