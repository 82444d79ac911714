from typing import List

from fastapi import APIRouter, Depends, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..db import get_session
from ..models import User
from ..schemas.gamification import (
    AchievementReport,
    ChallengeList,
    ChallengeOut,
    ChallengeUpdate,
    Leaderboard,
    LeaderboardKind,
    UserStats,
    XPHistoryOut,
)
from ..services.achievements import AchievementService
from ..services.challenges import ChallengeService
from ..services.stats import StatsService
from ..services.timers import Clock
from ..services.xp import list_xp_history

from .deps import get_clock, get_current_user, get_redis_connection

router = APIRouter()


@router.get("/xp-history", response_model=List[XPHistoryOut], tags=["xp"])
async def read_xp_history(
    limit: int = Query(default=50, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> List[XPHistoryOut]:
    history = await list_xp_history(session, current_user, limit)
    return [XPHistoryOut.model_validate(item) for item in history]


@router.get("/users/me/stats", response_model=UserStats, tags=["stats"])
async def read_my_stats(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
) -> UserStats:
    return await StatsService(session).user_stats(current_user.id, clock())


@router.get("/leaderboard", response_model=Leaderboard, tags=["stats"])
async def read_leaderboard(
    kind: LeaderboardKind = Query(default="xp", alias="type"),
    limit: int = Query(default=10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis_connection),
    clock: Clock = Depends(get_clock),
    app_settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
) -> Leaderboard:
    service = StatsService(
        session, redis, cache_seconds=app_settings.leaderboard_cache_seconds
    )
    entries = await service.leaderboard(kind, limit, clock())
    return Leaderboard(kind=kind, leaderboard=entries)


@router.get("/achievements", response_model=AchievementReport, tags=["achievements"])
async def read_achievements(
    session: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis_connection),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
) -> AchievementReport:
    return await AchievementService(session, redis).evaluate(current_user, clock())


@router.get("/challenges", response_model=ChallengeList, tags=["challenges"])
async def read_challenges(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
) -> ChallengeList:
    challenges = await ChallengeService(session).today_challenges(current_user, clock())
    return ChallengeList(
        challenges=[ChallengeOut.model_validate(challenge) for challenge in challenges]
    )


@router.post("/challenges/refresh", response_model=ChallengeList, tags=["challenges"])
async def refresh_challenges(
    session: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis_connection),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
) -> ChallengeList:
    challenges, xp_gained = await ChallengeService(session, redis).refresh_progress(
        current_user, clock()
    )
    return ChallengeList(
        challenges=[ChallengeOut.model_validate(challenge) for challenge in challenges],
        xp_gained=xp_gained,
    )


@router.put("/challenges/{challenge_id}", response_model=ChallengeList, tags=["challenges"])
async def update_challenge(
    challenge_id: str,
    payload: ChallengeUpdate,
    session: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis_connection),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
) -> ChallengeList:
    challenge, xp_gained = await ChallengeService(session, redis).set_completed(
        current_user, challenge_id, payload.completed, clock()
    )
    return ChallengeList(
        challenges=[ChallengeOut.model_validate(challenge)], xp_gained=xp_gained
    )
