import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from teamboard.auth.tokens import as_utc
from teamboard.models.enums import TaskPriority, TaskStatus

class TaskCreateIn(BaseModel):
    # unknown keys are kept and stored verbatim with the task
    model_config = ConfigDict(extra="allow")

    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    status: TaskStatus = TaskStatus.todo
    priority: TaskPriority = TaskPriority.medium
    deadline: date | None = None
    assigned_to: uuid.UUID | None = None

class TaskUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    deadline: date | None = None
    assigned_to: uuid.UUID | None = None

class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_id: uuid.UUID
    task_no: int
    custom_id: str
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    deadline: date | None
    assigned_to: uuid.UUID | None
    created_by: uuid.UUID | None
    extra: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)
