import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from teamboard.models.enums import ProjectStatus

class ProjectCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    deadline: date | None = None
    members: list[uuid.UUID] = []

class ProjectUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    deadline: date | None = None
    status: ProjectStatus | None = None

class ProjectMembersIn(BaseModel):
    members: list[uuid.UUID]

class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None
    status: ProjectStatus
    deadline: date | None
    manager_id: uuid.UUID | None
    task_counter: int
    member_ids: list[uuid.UUID]
    created_at: datetime
