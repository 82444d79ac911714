from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    client: Optional[str] = Field(default=None, max_length=100)


class ProjectOut(BaseModel):
    id: str
    name: str
    client: Optional[str] = None
    created_at: datetime
    task_count: int = 0
    timer_count: int = 0


class TaskCreate(BaseModel):
    project_id: str
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[str] = Field(default=None, max_length=32)
    assignee_id: Optional[str] = None


class TaskOut(BaseModel):
    id: str
    project_id: str
    title: str
    description: Optional[str] = None
    status: Optional[str] = None
    assignee_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
