from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import User
from ..schemas.project import ProjectCreate, ProjectOut, TaskCreate, TaskOut
from ..services.projects import ProjectService

from .deps import get_current_user

router = APIRouter()


def get_service(session: AsyncSession = Depends(get_session)) -> ProjectService:
    return ProjectService(session)


@router.get("/projects", response_model=List[ProjectOut], tags=["projects"])
async def list_projects(
    q: Optional[str] = Query(default=None, max_length=100),
    service: ProjectService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> List[ProjectOut]:
    return await service.list_projects(current_user, q)


@router.post(
    "/projects",
    response_model=ProjectOut,
    status_code=status.HTTP_201_CREATED,
    tags=["projects"],
)
async def create_project(
    payload: ProjectCreate,
    service: ProjectService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> ProjectOut:
    return await service.create_project(current_user, payload)


@router.get("/tasks", response_model=List[TaskOut], tags=["tasks"])
async def list_tasks(
    project_id: Optional[str] = None,
    q: Optional[str] = Query(default=None, max_length=100),
    service: ProjectService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> List[TaskOut]:
    tasks = await service.list_tasks(current_user, project_id, q)
    return [TaskOut.model_validate(task) for task in tasks]


@router.post(
    "/tasks",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    tags=["tasks"],
)
async def create_task(
    payload: TaskCreate,
    service: ProjectService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TaskOut:
    task = await service.create_task(current_user, payload)
    return TaskOut.model_validate(task)
