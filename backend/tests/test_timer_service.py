from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timequest.core.errors import InvalidInputError, InvalidStateError, NotFoundError
from timequest.models import TimeEntry, Timer, TimerStatus, User, XPAction, XPHistory
from timequest.schemas.project import ProjectCreate, TaskCreate
from timequest.schemas.timer import TimerCreate, TimerUpdate
from timequest.services.projects import ProjectService
from timequest.services.timers import TimerService

from .conftest import FakeClock


@pytest.mark.anyio
async def test_elapsed_is_sum_of_running_intervals(
    session_factory: async_sessionmaker[AsyncSession], make_user, clock: FakeClock
) -> None:
    user = await make_user("intervals@example.com")
    async with session_factory() as session:
        service = TimerService(session, clock=clock)
        timer, _ = await service.create_timer(user, TimerCreate())

        # three running intervals of 20s, 40s and 15s with pauses in between
        for running, paused in ((20, 100), (40, 7)):
            clock.advance(seconds=running)
            await service.pause_timer(user, timer.id)
            clock.advance(seconds=paused)
            await service.resume_timer(user, timer.id)
        clock.advance(seconds=15)

        assert service.serialize(timer).current_elapsed_ms == 75_000
        completed, entry, xp_gained = await service.complete_timer(user, timer.id)

    assert completed.status == TimerStatus.COMPLETED
    assert completed.elapsed_ms == 75_000
    assert completed.total_paused_ms == 107_000
    assert completed.version == 6
    assert entry.minutes == 2
    assert xp_gained == 15


@pytest.mark.anyio
async def test_concurrent_completion_has_single_winner(
    session_factory: async_sessionmaker[AsyncSession], make_user, clock: FakeClock
) -> None:
    user = await make_user("race@example.com")
    async with session_factory() as session:
        timer, _ = await TimerService(session, clock=clock).create_timer(
            user, TimerCreate(note="Race")
        )
    clock.advance(minutes=3)

    async with session_factory() as first, session_factory() as second:
        # both requests observe the timer while it is still RUNNING
        assert (await first.get(Timer, timer.id)).status == TimerStatus.RUNNING
        assert (await second.get(Timer, timer.id)).status == TimerStatus.RUNNING

        winner = TimerService(first, clock=clock)
        loser = TimerService(second, clock=clock)
        _, entry, _ = await winner.complete_timer(user, timer.id)
        with pytest.raises(InvalidStateError):
            await loser.complete_timer(user, timer.id)

    async with session_factory() as session:
        entries = await session.scalar(
            select(func.count(TimeEntry.id)).where(TimeEntry.source_timer_id == timer.id)
        )
        completions = await session.scalar(
            select(func.count(XPHistory.id)).where(
                XPHistory.timer_id == timer.id,
                XPHistory.action == XPAction.TIMER_COMPLETED,
            )
        )
        stored_user = await session.get(User, user.id)
        stored_timer = await session.get(Timer, timer.id)

    assert entries == 1
    assert completions == 1
    assert stored_user.xp == 20
    assert stored_timer.status == TimerStatus.COMPLETED
    assert entry.minutes == 3


@pytest.mark.anyio
async def test_cancel_racing_complete_leaves_one_outcome(
    session_factory: async_sessionmaker[AsyncSession], make_user, clock: FakeClock
) -> None:
    user = await make_user("cancelrace@example.com")
    async with session_factory() as session:
        timer, _ = await TimerService(session, clock=clock).create_timer(user, TimerCreate())
    clock.advance(minutes=1)

    async with session_factory() as first, session_factory() as second:
        await first.get(Timer, timer.id)
        await second.get(Timer, timer.id)
        await TimerService(first, clock=clock).cancel_timer(user, timer.id)
        with pytest.raises(InvalidStateError):
            await TimerService(second, clock=clock).complete_timer(user, timer.id)

    async with session_factory() as session:
        stored = await session.get(Timer, timer.id)
        entries = await session.scalar(select(func.count(TimeEntry.id)))
    assert stored.status == TimerStatus.CANCELED
    assert entries == 0


@pytest.mark.anyio
async def test_project_and_task_association_rules(
    session_factory: async_sessionmaker[AsyncSession], make_user, clock: FakeClock
) -> None:
    owner = await make_user("assoc@example.com")
    stranger = await make_user("stranger@example.com")
    async with session_factory() as session:
        projects = ProjectService(session)
        alpha = await projects.create_project(owner, ProjectCreate(name="Alpha"))
        beta = await projects.create_project(owner, ProjectCreate(name="Beta"))
        task = await projects.create_task(owner, TaskCreate(project_id=alpha.id, title="Wireframes"))

        service = TimerService(session, clock=clock)
        with pytest.raises(InvalidInputError):
            await service.create_timer(owner, TimerCreate(project_id=beta.id, task_id=task.id))
        with pytest.raises(NotFoundError):
            await service.create_timer(owner, TimerCreate(project_id="missing"))
        with pytest.raises(NotFoundError):
            await service.create_timer(stranger, TimerCreate(project_id=alpha.id))

        timer, _ = await service.create_timer(owner, TimerCreate(task_id=task.id))
        assert timer.project_id == alpha.id

        moved = await service.update_timer(owner, timer.id, TimerUpdate(project_id=beta.id, task_id=None))
        assert moved.project_id == beta.id
        assert moved.task_id is None
