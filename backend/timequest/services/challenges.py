from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from redis.asyncio import Redis
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import InvalidStateError, NotFoundError
from ..db import unit_of_work
from ..models import ChallengeType, User, UserChallenge, XPAction
from ..utils.redis import invalidate_leaderboards
from .stats import ActivitySnapshot, load_activity
from .xp import award_xp

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChallengeTemplate:
    id: str
    title: str
    description: str
    target: int
    xp_reward: int
    type: ChallengeType


DAILY_CHALLENGES: tuple[ChallengeTemplate, ...] = (
    ChallengeTemplate("daily_time", "Time Goal", "Track 2 hours today", 2, 100, ChallengeType.TIME),
    ChallengeTemplate("daily_tasks", "Task Master", "Complete 3 tasks today", 3, 75, ChallengeType.TASKS),
    ChallengeTemplate(
        "focus_session", "Deep Focus", "Have a 25-minute focused session", 25, 50, ChallengeType.FOCUS
    ),
)


def challenge_progress(challenge_type: ChallengeType, activity: ActivitySnapshot) -> int:
    if challenge_type == ChallengeType.TIME:
        return activity.today_hours
    if challenge_type == ChallengeType.TASKS:
        return activity.today_timers
    if challenge_type == ChallengeType.FOCUS:
        return activity.focus_minutes
    return activity.streak


class ChallengeService:
    def __init__(self, session: AsyncSession, redis: Optional[Redis] = None) -> None:
        self.session = session
        self.redis = redis

    async def today_challenges(self, user: User, now: datetime) -> Sequence[UserChallenge]:
        today = now.date()
        result = await self.session.execute(
            select(UserChallenge)
            .where(UserChallenge.user_id == user.id, UserChallenge.date == today)
            .order_by(UserChallenge.challenge_id)
        )
        challenges = result.scalars().all()
        if challenges:
            return challenges

        created = [
            UserChallenge(
                user_id=user.id,
                challenge_id=template.id,
                title=template.title,
                description=template.description,
                target=template.target,
                current=0,
                xp_reward=template.xp_reward,
                type=template.type,
                completed=False,
                date=today,
            )
            for template in DAILY_CHALLENGES
        ]
        async with unit_of_work(self.session, "create_daily_challenges"):
            self.session.add_all(created)
        logger.info("Created %s daily challenges for user %s", len(created), user.id)
        return sorted(created, key=lambda challenge: challenge.challenge_id)

    async def refresh_progress(
        self, user: User, now: datetime
    ) -> tuple[Sequence[UserChallenge], int]:
        challenges = await self.today_challenges(user, now)
        activity = await load_activity(self.session, user.id, now)

        xp_gained = 0
        async with unit_of_work(self.session, "refresh_challenges"):
            for challenge in challenges:
                value = challenge_progress(challenge.type, activity)
                current = min(value, challenge.target)
                if (
                    value >= challenge.target
                    and not challenge.completed
                    and await self._claim(challenge, current)
                ):
                    xp_gained += await self._reward(user, challenge)
                else:
                    await self.session.execute(
                        update(UserChallenge)
                        .where(UserChallenge.id == challenge.id)
                        .values(current=current)
                        .execution_options(synchronize_session=False)
                    )

        for challenge in challenges:
            await self.session.refresh(challenge)
        if xp_gained:
            await invalidate_leaderboards(self.redis)
        return challenges, xp_gained

    async def set_completed(
        self, user: User, challenge_id: str, completed: bool, now: datetime
    ) -> tuple[UserChallenge, int]:
        result = await self.session.execute(
            select(UserChallenge).where(
                UserChallenge.user_id == user.id,
                UserChallenge.challenge_id == challenge_id,
                UserChallenge.date == now.date(),
            )
        )
        challenge = result.scalar_one_or_none()
        if challenge is None:
            raise NotFoundError("Challenge not found")

        if challenge.completed and not completed:
            raise InvalidStateError("Completed challenges cannot be reopened")

        xp_gained = 0
        if completed:
            async with unit_of_work(self.session, "set_challenge_completed"):
                if await self._claim(challenge, challenge.current):
                    xp_gained = await self._reward(user, challenge)
            await self.session.refresh(challenge)
        if xp_gained:
            await invalidate_leaderboards(self.redis)
        return challenge, xp_gained

    async def _claim(self, challenge: UserChallenge, current: int) -> bool:
        # only the request that flips completed from false gets the reward
        result = await self.session.execute(
            update(UserChallenge)
            .where(UserChallenge.id == challenge.id, UserChallenge.completed.is_(False))
            .values(completed=True, current=current)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.debug("Challenge %s already completed", challenge.id)
            return False
        return True

    async def _reward(self, user: User, challenge: UserChallenge) -> int:
        await award_xp(
            self.session,
            user.id,
            XPAction.DAILY_GOAL,
            challenge.xp_reward,
            description=f"Daily challenge: {challenge.title}",
        )
        return challenge.xp_reward
