from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from redis.asyncio import Redis
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError
from ..db import unit_of_work
from ..models import TimeEntry, Timer, TimerStatus, User
from ..schemas.gamification import LeaderboardEntry, LeaderboardKind, UserStats
from ..utils.redis import cache_leaderboard, get_cached_leaderboard
from .timers import MS_PER_MINUTE
from .xp import level_for_xp, xp_to_next_level

logger = logging.getLogger(__name__)


def compute_streak(days: Iterable[date], today: date) -> int:
    """Consecutive days with logged time, counting back from ``today``.

    A day without entries today means no running streak.
    """
    logged = set(days)
    streak = 0
    cursor = today
    while cursor in logged:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


@dataclass(slots=True)
class ActivitySnapshot:
    total_minutes: int
    completed_timers: int
    today_minutes: int
    today_timers: int
    focus_minutes: int
    streak: int

    @property
    def total_hours(self) -> int:
        return self.total_minutes // 60

    @property
    def today_hours(self) -> int:
        return self.today_minutes // 60


async def load_activity(session: AsyncSession, user_id: str, now: datetime) -> ActivitySnapshot:
    today = now.date()

    entries = await session.execute(
        select(TimeEntry.minutes, TimeEntry.date).where(TimeEntry.user_id == user_id)
    )
    total_minutes = today_minutes = 0
    days: set[date] = set()
    for minutes, entry_date in entries:
        total_minutes += minutes
        days.add(entry_date.date())
        if entry_date.date() == today:
            today_minutes += minutes

    timers = await session.execute(
        select(Timer.completed_at, Timer.elapsed_ms).where(
            Timer.user_id == user_id, Timer.status == TimerStatus.COMPLETED
        )
    )
    completed = today_timers = longest_today_ms = 0
    for completed_at, elapsed_ms in timers:
        completed += 1
        if completed_at is not None and completed_at.date() == today:
            today_timers += 1
            longest_today_ms = max(longest_today_ms, elapsed_ms)

    return ActivitySnapshot(
        total_minutes=total_minutes,
        completed_timers=completed,
        today_minutes=today_minutes,
        today_timers=today_timers,
        focus_minutes=longest_today_ms // MS_PER_MINUTE,
        streak=compute_streak(days, today),
    )


class StatsService:
    def __init__(
        self,
        session: AsyncSession,
        redis: Optional[Redis] = None,
        *,
        cache_seconds: int = 60,
    ) -> None:
        self.session = session
        self.redis = redis
        self.cache_seconds = cache_seconds

    async def user_stats(self, user_id: str, now: datetime) -> UserStats:
        result = await self.session.execute(
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found")

        activity = await load_activity(self.session, user_id, now)
        level = level_for_xp(user.xp)
        if user.level != level:
            async with unit_of_work(self.session, "sync_level"):
                await self.session.execute(
                    update(User)
                    .where(User.id == user_id)
                    .values(level=level)
                    .execution_options(synchronize_session=False)
                )
            logger.info("User %s reached level %s", user_id, level)

        return UserStats(
            level=level,
            xp=user.xp,
            xp_to_next=xp_to_next_level(user.xp),
            streak=activity.streak,
            total_hours=activity.total_hours,
            completed_timers=activity.completed_timers,
            today_hours=activity.today_hours,
            today_timers=activity.today_timers,
            focus_minutes=activity.focus_minutes,
        )

    async def leaderboard(
        self, kind: LeaderboardKind, limit: int, now: datetime
    ) -> list[LeaderboardEntry]:
        if self.redis is not None:
            cached = await get_cached_leaderboard(self.redis, kind, limit)
            if cached is not None:
                return [LeaderboardEntry(**item) for item in cached]

        entries = await self._rank(kind, limit, now.date())
        if self.redis is not None:
            await cache_leaderboard(
                self.redis,
                kind,
                limit,
                [entry.model_dump() for entry in entries],
                self.cache_seconds,
            )
        return entries

    async def _rank(
        self, kind: LeaderboardKind, limit: int, today: date
    ) -> list[LeaderboardEntry]:
        users = (
            await self.session.execute(select(User.id, User.name, User.email, User.xp))
        ).all()

        minutes: dict[str, int] = defaultdict(int)
        days: dict[str, set[date]] = defaultdict(set)
        entries = await self.session.execute(
            select(TimeEntry.user_id, TimeEntry.minutes, TimeEntry.date)
        )
        for user_id, entry_minutes, entry_date in entries:
            minutes[user_id] += entry_minutes
            days[user_id].add(entry_date.date())

        completed = dict(
            (
                await self.session.execute(
                    select(Timer.user_id, func.count(Timer.id))
                    .where(Timer.status == TimerStatus.COMPLETED)
                    .group_by(Timer.user_id)
                )
            ).all()
        )

        rows = []
        for user_id, name, email, xp in users:
            rows.append(
                {
                    "id": user_id,
                    "name": name or email.split("@")[0],
                    "level": level_for_xp(xp),
                    "xp": xp,
                    "total_hours": minutes[user_id] // 60,
                    "completed_tasks": completed.get(user_id, 0),
                    "streak": compute_streak(days[user_id], today),
                }
            )

        sort_field = {
            "xp": "xp",
            "hours": "total_hours",
            "tasks": "completed_tasks",
            "streak": "streak",
        }[kind]
        rows.sort(key=lambda row: (-row[sort_field], -row["xp"], row["name"]))
        return [
            LeaderboardEntry(rank=position, **row)
            for position, row in enumerate(rows[:limit], start=1)
        ]
