from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from redis.asyncio import Redis
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.errors import InvalidInputError
from ..db import unit_of_work
from ..models import TimeEntry, User
from ..schemas.time_entry import (
    ProjectSummary,
    TaskSummary,
    TimeEntryCreate,
    TimeEntryList,
    TimeEntryOut,
    TimeEntrySummary,
)
from ..utils.redis import invalidate_leaderboards
from .projects import resolve_project_and_task

logger = logging.getLogger(__name__)

UNASSIGNED = "unassigned"


class TimeEntryService:
    def __init__(self, session: AsyncSession, redis: Optional[Redis] = None) -> None:
        self.session = session
        self.redis = redis

    async def list_time_entries(
        self,
        user: User,
        *,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        billable: Optional[bool] = None,
    ) -> TimeEntryList:
        statement = (
            select(TimeEntry)
            .options(selectinload(TimeEntry.project), selectinload(TimeEntry.task))
            .where(TimeEntry.user_id == user.id)
        )
        if date_from is not None:
            statement = statement.where(TimeEntry.date >= date_from)
        if date_to is not None:
            statement = statement.where(TimeEntry.date <= date_to)
        if project_id:
            statement = statement.where(TimeEntry.project_id == project_id)
        if task_id:
            statement = statement.where(TimeEntry.task_id == task_id)
        if billable is not None:
            statement = statement.where(TimeEntry.billable == billable)

        result = await self.session.execute(
            statement.order_by(TimeEntry.date.desc(), TimeEntry.created_at.desc())
        )
        entries = result.scalars().all()
        return TimeEntryList(
            time_entries=[TimeEntryOut.model_validate(entry) for entry in entries],
            summary=summarize(entries),
        )

    async def create_time_entry(self, user: User, payload: TimeEntryCreate) -> TimeEntry:
        entry = await self._build_entry(user, payload)
        async with unit_of_work(self.session, "create_time_entry"):
            self.session.add(entry)
        logger.info("User %s logged %s minutes", user.id, entry.minutes)
        await invalidate_leaderboards(self.redis)
        return entry

    async def bulk_create_time_entries(
        self, user: User, payloads: Iterable[TimeEntryCreate]
    ) -> int:
        entries = [await self._build_entry(user, payload) for payload in payloads]
        if not entries:
            raise InvalidInputError("No entries provided")

        async with unit_of_work(self.session, "bulk_create_time_entries"):
            self.session.add_all(entries)
        logger.info("User %s bulk-logged %s entries", user.id, len(entries))
        await invalidate_leaderboards(self.redis)
        return len(entries)

    async def bulk_delete_time_entries(self, user: User, entry_ids: Iterable[str]) -> int:
        ids = list(entry_ids)
        if not ids:
            raise InvalidInputError("No time entry IDs provided")

        async with unit_of_work(self.session, "bulk_delete_time_entries"):
            result = await self.session.execute(
                delete(TimeEntry)
                .where(TimeEntry.id.in_(ids), TimeEntry.user_id == user.id)
                .execution_options(synchronize_session=False)
            )
        await invalidate_leaderboards(self.redis)
        return result.rowcount

    async def _build_entry(self, user: User, payload: TimeEntryCreate) -> TimeEntry:
        project_id, task_id = await resolve_project_and_task(
            self.session, user, payload.project_id, payload.task_id
        )
        return TimeEntry(
            user_id=user.id,
            project_id=project_id,
            task_id=task_id,
            date=payload.date,
            minutes=payload.minutes,
            description=payload.description,
            billable=payload.billable,
        )


def summarize(entries: Iterable[TimeEntry]) -> TimeEntrySummary:
    projects: dict[str, ProjectSummary] = {}
    tasks: dict[str, TaskSummary] = {}
    total = billable_total = count = 0

    for entry in entries:
        billable_minutes = entry.minutes if entry.billable else 0
        total += entry.minutes
        billable_total += billable_minutes
        count += 1

        project_key = entry.project_id or UNASSIGNED
        project = projects.setdefault(
            project_key,
            ProjectSummary(
                project_id=project_key,
                project_name=entry.project.name if entry.project else "Unassigned",
            ),
        )
        project.total_minutes += entry.minutes
        project.billable_minutes += billable_minutes
        project.entry_count += 1

        task_key = entry.task_id or UNASSIGNED
        task = tasks.setdefault(
            task_key,
            TaskSummary(
                task_id=task_key,
                task_title=entry.task.title if entry.task else "Unassigned",
            ),
        )
        task.total_minutes += entry.minutes
        task.billable_minutes += billable_minutes
        task.entry_count += 1

    return TimeEntrySummary(
        total_minutes=total,
        billable_minutes=billable_total,
        total_entries=count,
        project_summary=list(projects.values()),
        task_summary=list(tasks.values()),
    )
