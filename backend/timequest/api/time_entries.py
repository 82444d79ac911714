from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import User
from ..schemas.time_entry import (
    BulkCreateResult,
    TimeEntryBulkCreate,
    TimeEntryBulkDelete,
    TimeEntryCreate,
    TimeEntryList,
    TimeEntryOut,
)
from ..schemas.timer import BulkDeleteResult
from ..services.time_entries import TimeEntryService

from .deps import get_current_user, get_redis_connection

router = APIRouter()


def get_service(
    session: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis_connection),
) -> TimeEntryService:
    return TimeEntryService(session, redis)


@router.get("", response_model=TimeEntryList)
async def list_time_entries(
    date_from: Optional[datetime] = Query(default=None, alias="from"),
    date_to: Optional[datetime] = Query(default=None, alias="to"),
    project_id: Optional[str] = None,
    task_id: Optional[str] = None,
    billable: Optional[bool] = None,
    service: TimeEntryService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TimeEntryList:
    return await service.list_time_entries(
        current_user,
        date_from=date_from,
        date_to=date_to,
        project_id=project_id,
        task_id=task_id,
        billable=billable,
    )


@router.post("", response_model=TimeEntryOut, status_code=status.HTTP_201_CREATED)
async def create_time_entry(
    payload: TimeEntryCreate,
    service: TimeEntryService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TimeEntryOut:
    entry = await service.create_time_entry(current_user, payload)
    return TimeEntryOut.model_validate(entry)


@router.post("/bulk", response_model=BulkCreateResult, status_code=status.HTTP_201_CREATED)
async def bulk_create_time_entries(
    payload: TimeEntryBulkCreate,
    service: TimeEntryService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> BulkCreateResult:
    created = await service.bulk_create_time_entries(current_user, payload.entries)
    return BulkCreateResult(created_count=created)


@router.post("/bulk-delete", response_model=BulkDeleteResult)
async def bulk_delete_time_entries(
    payload: TimeEntryBulkDelete,
    service: TimeEntryService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> BulkDeleteResult:
    deleted = await service.bulk_delete_time_entries(current_user, payload.time_entry_ids)
    return BulkDeleteResult(deleted_count=deleted)
