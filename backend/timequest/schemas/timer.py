from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.timer import TimerStatus
from .time_entry import TimeEntryOut


class TimerCreate(BaseModel):
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    note: Optional[str] = Field(default=None, max_length=500)
    billable: bool = False


class TimerUpdate(BaseModel):
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    note: Optional[str] = Field(default=None, max_length=500)
    billable: Optional[bool] = None


class TimerComplete(BaseModel):
    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[datetime] = None


class TimerOut(BaseModel):
    id: str
    status: TimerStatus
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    note: Optional[str] = None
    billable: bool
    started_at: datetime
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    elapsed_ms: int
    total_paused_ms: int
    current_elapsed_ms: int
    created_at: datetime

    model_config = {"from_attributes": True}


class TimerCreated(BaseModel):
    timer: TimerOut
    xp_gained: int


class TimerCompleted(BaseModel):
    timer: TimerOut
    time_entry: TimeEntryOut
    xp_gained: int


class TimerList(BaseModel):
    timers: List[TimerOut]
    total: int
    limit: int
    offset: int


class TimerBulkDelete(BaseModel):
    timer_ids: List[str]

    @field_validator("timer_ids")
    @classmethod
    def ensure_unique_ids(cls, value: List[str]) -> List[str]:
        if len(value) != len(set(value)):
            raise ValueError("timer_ids must be unique")
        return value


class BulkDeleteResult(BaseModel):
    deleted_count: int


class TimerSummary(BaseModel):
    total: int
    running: int
    paused: int
    completed: int
    canceled: int
    active_users: int
