from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class TimeEntryCreate(BaseModel):
    date: datetime
    minutes: int = Field(ge=1, le=24 * 60)
    description: Optional[str] = Field(default=None, max_length=500)
    billable: bool = False
    project_id: Optional[str] = None
    task_id: Optional[str] = None


class TimeEntryBulkCreate(BaseModel):
    entries: List[TimeEntryCreate] = Field(min_length=1, max_length=100)


class TimeEntryBulkDelete(BaseModel):
    time_entry_ids: List[str]


class TimeEntryOut(BaseModel):
    id: str
    user_id: str
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    date: datetime
    minutes: int
    description: Optional[str] = None
    billable: bool
    source_timer_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProjectSummary(BaseModel):
    project_id: str
    project_name: str
    total_minutes: int = 0
    billable_minutes: int = 0
    entry_count: int = 0


class TaskSummary(BaseModel):
    task_id: str
    task_title: str
    total_minutes: int = 0
    billable_minutes: int = 0
    entry_count: int = 0


class TimeEntrySummary(BaseModel):
    total_minutes: int
    billable_minutes: int
    total_entries: int
    project_summary: List[ProjectSummary]
    task_summary: List[TaskSummary]


class TimeEntryList(BaseModel):
    time_entries: List[TimeEntryOut]
    summary: TimeEntrySummary


class BulkCreateResult(BaseModel):
    created_count: int
