import uuid

from pydantic import BaseModel

class ProjectReportOut(BaseModel):
    id: uuid.UUID
    name: str
    status: str
    progress: int
    health: str
    task_count: int
    completed_tasks: int

class TrackerOut(BaseModel):
    average_progress: int
    on_track: int
    at_risk: int
    overdue: int
    projects: list[ProjectReportOut]

class DashboardOut(BaseModel):
    scope: str
    active_projects: int
    completed_tasks: int
    open_tasks: int
    high_priority_tasks: int

class WorkloadOut(BaseModel):
    user_id: uuid.UUID | None
    name: str | None
    open_tasks: int
    done_tasks: int
