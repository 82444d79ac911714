from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, NoReturn, Optional, Sequence

from redis.asyncio import Redis
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ForbiddenError, InvalidInputError, InvalidStateError, NotFoundError
from ..core.logging import sanitize_for_log
from ..db import unit_of_work
from ..models import ACTIVE_STATUSES, TimeEntry, Timer, TimerStatus, User, XPAction
from ..schemas.timer import TimerComplete, TimerCreate, TimerOut, TimerUpdate
from ..utils.redis import invalidate_leaderboards
from .projects import resolve_project_and_task
from .xp import XP_REWARDS, award_xp

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

MS_PER_MINUTE = 60_000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ms_between(start: Optional[datetime], end: datetime) -> int:
    if start is None:
        return 0
    delta = int((end - start).total_seconds() * 1000)
    return delta if delta > 0 else 0


def current_elapsed_ms(timer: Timer, now: datetime) -> int:
    """Active duration of ``timer`` as seen at ``now``.

    Persisted ``elapsed_ms`` covers every closed running interval; the open
    interval only counts while the timer is running. Never writes.
    """
    if timer.status == TimerStatus.RUNNING:
        return timer.elapsed_ms + _ms_between(timer.started_at, now)
    return timer.elapsed_ms


def minutes_for(elapsed_ms: int) -> int:
    return -(-elapsed_ms // MS_PER_MINUTE)


class TimerService:
    def __init__(
        self,
        session: AsyncSession,
        redis: Optional[Redis] = None,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        self.session = session
        self.redis = redis
        self.clock = clock or utc_now

    async def create_timer(self, user: User, payload: TimerCreate) -> tuple[Timer, int]:
        project_id, task_id = await resolve_project_and_task(
            self.session, user, payload.project_id, payload.task_id
        )

        now = self.clock()
        timer = Timer(
            user_id=user.id,
            project_id=project_id,
            task_id=task_id,
            note=payload.note,
            billable=payload.billable,
            status=TimerStatus.RUNNING,
            started_at=now,
            elapsed_ms=0,
            total_paused_ms=0,
            version=1,
        )
        xp_gained = XP_REWARDS[XPAction.TIMER_STARTED]
        async with unit_of_work(self.session, "create_timer"):
            self.session.add(timer)
            await self.session.flush()
            await award_xp(
                self.session,
                user.id,
                XPAction.TIMER_STARTED,
                xp_gained,
                description="Started timer",
                timer_id=timer.id,
            )

        logger.info("Timer %s started for user %s", timer.id, user.id)
        await invalidate_leaderboards(self.redis)
        return timer, xp_gained

    async def pause_timer(self, user: User, timer_id: str) -> Timer:
        timer = await self._load_owned_timer(timer_id, user)
        if timer.status != TimerStatus.RUNNING:
            self._reject(timer, "pause", "Timer is not running")

        now = self.clock()
        async with unit_of_work(self.session, "pause_timer"):
            await self._transition(
                timer,
                (TimerStatus.RUNNING,),
                now,
                status=TimerStatus.PAUSED,
                elapsed_ms=current_elapsed_ms(timer, now),
                paused_at=now,
            )

        await self.session.refresh(timer)
        logger.info("Timer %s paused at %sms", timer.id, timer.elapsed_ms)
        return timer

    async def resume_timer(self, user: User, timer_id: str) -> Timer:
        timer = await self._load_owned_timer(timer_id, user)
        if timer.status != TimerStatus.PAUSED:
            self._reject(timer, "resume", "Timer is not paused")

        now = self.clock()
        async with unit_of_work(self.session, "resume_timer"):
            await self._transition(
                timer,
                (TimerStatus.PAUSED,),
                now,
                status=TimerStatus.RUNNING,
                started_at=now,
                paused_at=None,
                total_paused_ms=timer.total_paused_ms + _ms_between(timer.paused_at, now),
            )

        await self.session.refresh(timer)
        logger.info("Timer %s resumed", timer.id)
        return timer

    async def complete_timer(
        self,
        user: User,
        timer_id: str,
        payload: Optional[TimerComplete] = None,
    ) -> tuple[Timer, TimeEntry, int]:
        payload = payload or TimerComplete()
        timer = await self._load_owned_timer(timer_id, user)
        if timer.status.is_terminal:
            self._reject(timer, "complete", f"Timer is already {timer.status.value.lower()}")

        now = self.clock()
        final_elapsed = current_elapsed_ms(timer, now)
        description = payload.description or timer.note
        total_paused = timer.total_paused_ms
        if timer.status == TimerStatus.PAUSED:
            total_paused += _ms_between(timer.paused_at, now)

        entry = TimeEntry(
            user_id=timer.user_id,
            project_id=timer.project_id,
            task_id=timer.task_id,
            date=payload.date or now,
            minutes=minutes_for(final_elapsed),
            description=description,
            billable=timer.billable,
            source_timer_id=timer.id,
        )
        xp_gained = XP_REWARDS[XPAction.TIMER_COMPLETED]

        async with unit_of_work(self.session, "complete_timer"):
            await self._transition(
                timer,
                ACTIVE_STATUSES,
                now,
                status=TimerStatus.COMPLETED,
                elapsed_ms=final_elapsed,
                total_paused_ms=total_paused,
                paused_at=None,
                completed_at=now,
            )
            self.session.add(entry)
            await award_xp(
                self.session,
                user.id,
                XPAction.TIMER_COMPLETED,
                xp_gained,
                description=f"Completed timer: {description or 'Untitled'}"[:255],
                timer_id=timer_id,
            )

        await self.session.refresh(timer)
        logger.info(
            "Timer %s completed (%s): %sms logged as %s minutes",
            timer.id,
            sanitize_for_log(description, 80),
            timer.elapsed_ms,
            entry.minutes,
        )
        await invalidate_leaderboards(self.redis)
        return timer, entry, xp_gained

    async def cancel_timer(self, user: User, timer_id: str) -> Timer:
        timer = await self._load_owned_timer(timer_id, user)
        if timer.status.is_terminal:
            self._reject(timer, "cancel", f"Timer is already {timer.status.value.lower()}")

        now = self.clock()
        total_paused = timer.total_paused_ms
        if timer.status == TimerStatus.PAUSED:
            total_paused += _ms_between(timer.paused_at, now)

        async with unit_of_work(self.session, "cancel_timer"):
            await self._transition(
                timer,
                ACTIVE_STATUSES,
                now,
                status=TimerStatus.CANCELED,
                elapsed_ms=current_elapsed_ms(timer, now),
                total_paused_ms=total_paused,
                paused_at=None,
                completed_at=now,
            )

        await self.session.refresh(timer)
        logger.info("Timer %s canceled", timer.id)
        return timer

    async def update_timer(self, user: User, timer_id: str, payload: TimerUpdate) -> Timer:
        timer = await self._load_owned_timer(timer_id, user)
        if timer.status.is_terminal:
            self._reject(timer, "update", "Finished timers cannot be edited")

        changes = payload.model_dump(exclude_unset=True)
        if "project_id" in changes or "task_id" in changes:
            project_id, task_id = await resolve_project_and_task(
                self.session,
                user,
                changes.get("project_id", timer.project_id),
                changes.get("task_id", timer.task_id),
            )
            changes["project_id"] = project_id
            changes["task_id"] = task_id
        if changes.get("billable") is None:
            changes.pop("billable", None)
        if not changes:
            return timer

        async with unit_of_work(self.session, "update_timer"):
            await self._transition(timer, ACTIVE_STATUSES, self.clock(), **changes)

        await self.session.refresh(timer)
        return timer

    async def delete_timer(self, user: User, timer_id: str) -> None:
        timer = await self._load_owned_timer(timer_id, user)
        async with unit_of_work(self.session, "delete_timer"):
            await self.session.execute(
                delete(Timer)
                .where(Timer.id == timer.id, Timer.user_id == user.id)
                .execution_options(synchronize_session=False)
            )
        self.session.expunge(timer)
        logger.info("Timer %s deleted by user %s", timer_id, user.id)
        await invalidate_leaderboards(self.redis)

    async def bulk_delete_timers(self, user: User, timer_ids: Iterable[str]) -> int:
        ids = list(timer_ids)
        if not ids:
            raise InvalidInputError("No timer IDs provided")

        async with unit_of_work(self.session, "bulk_delete_timers"):
            result = await self.session.execute(
                delete(Timer)
                .where(Timer.id.in_(ids), Timer.user_id == user.id)
                .execution_options(synchronize_session=False)
            )
        logger.info("User %s deleted %s timers", user.id, result.rowcount)
        await invalidate_leaderboards(self.redis)
        return result.rowcount

    async def get_timer(self, user: User, timer_id: str) -> Timer:
        return await self._load_owned_timer(timer_id, user)

    async def get_active_timer(self, user: User) -> Optional[Timer]:
        result = await self.session.execute(
            select(Timer)
            .where(Timer.user_id == user.id, Timer.status.in_(ACTIVE_STATUSES))
            .order_by(Timer.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_timers(
        self,
        user: User,
        *,
        status: Optional[TimerStatus] = None,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[Timer], int]:
        conditions = [Timer.user_id == user.id]
        if status is not None:
            conditions.append(Timer.status == status)
        if project_id:
            conditions.append(Timer.project_id == project_id)
        if task_id:
            conditions.append(Timer.task_id == task_id)

        result = await self.session.execute(
            select(Timer)
            .where(*conditions)
            .order_by(Timer.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        total = await self.session.scalar(select(func.count(Timer.id)).where(*conditions))
        return result.scalars().all(), total or 0

    def serialize(self, timer: Timer, now: Optional[datetime] = None) -> TimerOut:
        return TimerOut(
            id=timer.id,
            status=timer.status,
            project_id=timer.project_id,
            task_id=timer.task_id,
            note=timer.note,
            billable=timer.billable,
            started_at=timer.started_at,
            paused_at=timer.paused_at,
            completed_at=timer.completed_at,
            elapsed_ms=timer.elapsed_ms,
            total_paused_ms=timer.total_paused_ms,
            current_elapsed_ms=current_elapsed_ms(timer, now or self.clock()),
            created_at=timer.created_at,
        )

    async def _load_owned_timer(self, timer_id: str, user: User) -> Timer:
        timer = await self.session.get(Timer, timer_id)
        if timer is None:
            raise NotFoundError(f"Timer {timer_id} not found")
        if timer.user_id != user.id:
            logger.warning("User %s denied access to timer %s", user.id, timer_id)
            raise ForbiddenError("Timer belongs to another user")
        return timer

    async def _transition(
        self,
        timer: Timer,
        expected: Sequence[TimerStatus],
        now: datetime,
        **values,
    ) -> None:
        # compare-and-swap on status and version: a concurrent writer that got
        # there first leaves zero matching rows
        result = await self.session.execute(
            update(Timer)
            .where(
                Timer.id == timer.id,
                Timer.user_id == timer.user_id,
                Timer.status.in_(expected),
                Timer.version == timer.version,
            )
            .values(version=Timer.version + 1, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("Timer %s changed concurrently; transition rejected", timer.id)
            raise InvalidStateError("Timer was modified by another request")

    @staticmethod
    def _reject(timer: Timer, operation: str, message: str) -> NoReturn:
        logger.warning(
            "Rejected %s on timer %s in state %s", operation, timer.id, timer.status.value
        )
        raise InvalidStateError(message)
