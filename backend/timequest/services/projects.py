from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import InvalidInputError, NotFoundError
from ..db import unit_of_work
from ..models import Project, Task, Timer, User
from ..schemas.project import ProjectCreate, ProjectOut, TaskCreate

logger = logging.getLogger(__name__)


async def resolve_project_and_task(
    session: AsyncSession,
    user: User,
    project_id: Optional[str],
    task_id: Optional[str],
) -> tuple[Optional[str], Optional[str]]:
    """Validate a project/task association for ``user``.

    Returns the ids to store. When only a task is given its project is
    filled in, so a stored task always belongs to the stored project.
    """
    if project_id is not None:
        project = await session.get(Project, project_id)
        if project is None or project.owner_id != user.id:
            raise NotFoundError("Project not found")

    if task_id is None:
        return project_id, None

    task = await session.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task not found")

    if project_id is not None:
        if task.project_id != project_id:
            raise InvalidInputError("Task does not belong to the specified project")
        return project_id, task_id

    owning_project = await session.get(Project, task.project_id)
    if owning_project is None or (
        owning_project.owner_id != user.id and task.assignee_id != user.id
    ):
        raise NotFoundError("Task not found")
    return task.project_id, task_id


class ProjectService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_project(self, user: User, payload: ProjectCreate) -> ProjectOut:
        project = Project(owner_id=user.id, name=payload.name, client=payload.client)
        async with unit_of_work(self.session, "create_project"):
            self.session.add(project)
        logger.info("Project %s created by user %s", project.id, user.id)
        return ProjectOut(
            id=project.id,
            name=project.name,
            client=project.client,
            created_at=project.created_at,
        )

    async def list_projects(
        self, user: User, query: Optional[str] = None
    ) -> list[ProjectOut]:
        task_count = (
            select(func.count(Task.id))
            .where(Task.project_id == Project.id)
            .correlate(Project)
            .scalar_subquery()
        )
        timer_count = (
            select(func.count(Timer.id))
            .where(Timer.project_id == Project.id)
            .correlate(Project)
            .scalar_subquery()
        )
        statement = select(Project, task_count, timer_count).where(
            Project.owner_id == user.id
        )
        if query:
            pattern = f"%{query.lower()}%"
            statement = statement.where(
                or_(
                    func.lower(Project.name).like(pattern),
                    func.lower(func.coalesce(Project.client, "")).like(pattern),
                )
            )
        result = await self.session.execute(
            statement.order_by(Project.created_at.desc())
        )
        return [
            ProjectOut(
                id=project.id,
                name=project.name,
                client=project.client,
                created_at=project.created_at,
                task_count=tasks,
                timer_count=timers,
            )
            for project, tasks, timers in result.all()
        ]

    async def create_task(self, user: User, payload: TaskCreate) -> Task:
        project = await self.session.get(Project, payload.project_id)
        if project is None or project.owner_id != user.id:
            raise NotFoundError("Project not found")

        if payload.assignee_id is not None:
            assignee = await self.session.get(User, payload.assignee_id)
            if assignee is None:
                raise NotFoundError("Assignee not found")

        task = Task(
            project_id=project.id,
            title=payload.title,
            description=payload.description,
            status=payload.status,
            assignee_id=payload.assignee_id,
        )
        async with unit_of_work(self.session, "create_task"):
            self.session.add(task)
        logger.info("Task %s created in project %s", task.id, project.id)
        return task

    async def list_tasks(
        self,
        user: User,
        project_id: Optional[str] = None,
        query: Optional[str] = None,
    ) -> Sequence[Task]:
        statement = (
            select(Task)
            .join(Project, Task.project_id == Project.id)
            .where(or_(Project.owner_id == user.id, Task.assignee_id == user.id))
        )
        if project_id:
            statement = statement.where(Task.project_id == project_id)
        if query:
            pattern = f"%{query.lower()}%"
            statement = statement.where(
                or_(
                    func.lower(Task.title).like(pattern),
                    func.lower(func.coalesce(Task.description, "")).like(pattern),
                )
            )
        result = await self.session.execute(statement.order_by(Task.created_at.desc()))
        return result.scalars().all()
