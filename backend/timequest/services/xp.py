from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import User, XPAction, XPHistory

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 100

XP_REWARDS: dict[XPAction, int] = {
    XPAction.TIMER_STARTED: 5,
    XPAction.TIMER_COMPLETED: 15,
}


def level_for_xp(xp: int) -> int:
    return max(xp, 0) // XP_PER_LEVEL + 1


def xp_to_next_level(xp: int) -> int:
    return XP_PER_LEVEL - (max(xp, 0) % XP_PER_LEVEL)


async def award_xp(
    session: AsyncSession,
    user_id: str,
    action: XPAction,
    amount: Optional[int] = None,
    *,
    description: Optional[str] = None,
    timer_id: Optional[str] = None,
) -> XPHistory:
    """Add ``amount`` XP to the user and append a history row.

    Runs inside the caller's transaction and never commits. The counter is
    bumped with ``xp = xp + :amount`` in SQL so concurrent awards for the
    same user cannot overwrite each other.
    """
    xp_amount = XP_REWARDS.get(action, 0) if amount is None else amount

    await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(xp=User.xp + xp_amount)
        .execution_options(synchronize_session=False)
    )
    entry = XPHistory(
        user_id=user_id,
        action=action,
        xp_earned=xp_amount,
        description=description,
        timer_id=timer_id,
    )
    session.add(entry)
    logger.debug("Awarding %s XP to user %s for %s", xp_amount, user_id, action.value)
    return entry


async def list_xp_history(
    session: AsyncSession, user: User, limit: int = 50
) -> Sequence[XPHistory]:
    result = await session.execute(
        select(XPHistory)
        .where(XPHistory.user_id == user.id)
        .order_by(XPHistory.created_at.desc())
        .limit(limit)
    )
    return result.scalars().all()
