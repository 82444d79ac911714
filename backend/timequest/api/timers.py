from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import TimerStatus, User
from ..schemas.time_entry import TimeEntryOut
from ..schemas.timer import (
    BulkDeleteResult,
    TimerBulkDelete,
    TimerComplete,
    TimerCompleted,
    TimerCreate,
    TimerCreated,
    TimerList,
    TimerOut,
    TimerUpdate,
)
from ..services.timers import Clock, TimerService

from .deps import get_clock, get_current_user, get_redis_connection

router = APIRouter()


def get_service(
    session: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis_connection),
    clock: Clock = Depends(get_clock),
) -> TimerService:
    return TimerService(session, redis, clock=clock)


@router.post("", response_model=TimerCreated, status_code=status.HTTP_201_CREATED)
async def start_timer(
    payload: TimerCreate,
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TimerCreated:
    timer, xp_gained = await service.create_timer(current_user, payload)
    return TimerCreated(timer=service.serialize(timer), xp_gained=xp_gained)


@router.get("", response_model=TimerList)
async def list_timers(
    status_filter: Optional[TimerStatus] = Query(default=None, alias="status"),
    project_id: Optional[str] = None,
    task_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TimerList:
    timers, total = await service.list_timers(
        current_user,
        status=status_filter,
        project_id=project_id,
        task_id=task_id,
        limit=limit,
        offset=offset,
    )
    now = service.clock()
    return TimerList(
        timers=[service.serialize(timer, now) for timer in timers],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/active", response_model=Optional[TimerOut])
async def get_active_timer(
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> Optional[TimerOut]:
    timer = await service.get_active_timer(current_user)
    return service.serialize(timer) if timer is not None else None


@router.post("/bulk-delete", response_model=BulkDeleteResult)
async def bulk_delete_timers(
    payload: TimerBulkDelete,
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> BulkDeleteResult:
    deleted = await service.bulk_delete_timers(current_user, payload.timer_ids)
    return BulkDeleteResult(deleted_count=deleted)


@router.get("/{timer_id}", response_model=TimerOut)
async def get_timer(
    timer_id: str,
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TimerOut:
    return service.serialize(await service.get_timer(current_user, timer_id))


@router.patch("/{timer_id}", response_model=TimerOut)
async def update_timer(
    timer_id: str,
    payload: TimerUpdate,
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TimerOut:
    timer = await service.update_timer(current_user, timer_id, payload)
    return service.serialize(timer)


@router.delete("/{timer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timer(
    timer_id: str,
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> Response:
    await service.delete_timer(current_user, timer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{timer_id}/pause", response_model=TimerOut)
async def pause_timer(
    timer_id: str,
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TimerOut:
    return service.serialize(await service.pause_timer(current_user, timer_id))


@router.post("/{timer_id}/resume", response_model=TimerOut)
async def resume_timer(
    timer_id: str,
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TimerOut:
    return service.serialize(await service.resume_timer(current_user, timer_id))


@router.post("/{timer_id}/complete", response_model=TimerCompleted)
async def complete_timer(
    timer_id: str,
    payload: Optional[TimerComplete] = Body(default=None),
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TimerCompleted:
    timer, entry, xp_gained = await service.complete_timer(current_user, timer_id, payload)
    return TimerCompleted(
        timer=service.serialize(timer),
        time_entry=TimeEntryOut.model_validate(entry),
        xp_gained=xp_gained,
    )


@router.post("/{timer_id}/cancel", response_model=TimerOut)
async def cancel_timer(
    timer_id: str,
    service: TimerService = Depends(get_service),
    current_user: User = Depends(get_current_user),
) -> TimerOut:
    return service.serialize(await service.cancel_timer(current_user, timer_id))
