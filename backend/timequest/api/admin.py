from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Timer, TimerStatus
from ..schemas.timer import TimerSummary

from .deps import get_current_admin

router = APIRouter(dependencies=[Depends(get_current_admin)])


@router.get("/timers/summary", response_model=TimerSummary)
async def timers_summary(
    session: AsyncSession = Depends(get_session),
) -> TimerSummary:
    status_counts = {timer_status: 0 for timer_status in TimerStatus}

    result = await session.execute(
        select(Timer.status, func.count(Timer.id)).group_by(Timer.status)
    )
    for timer_status, count in result:
        status_counts[timer_status] = count

    # users with a timer still open
    active_users = await session.scalar(
        select(func.count(func.distinct(Timer.user_id))).where(
            Timer.status.in_((TimerStatus.RUNNING, TimerStatus.PAUSED))
        )
    )

    return TimerSummary(
        total=sum(status_counts.values()),
        running=status_counts[TimerStatus.RUNNING],
        paused=status_counts[TimerStatus.PAUSED],
        completed=status_counts[TimerStatus.COMPLETED],
        canceled=status_counts[TimerStatus.CANCELED],
        active_users=active_users or 0,
    )
