import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from teamboard.auth.deps import get_current_user
from teamboard.config import settings
from teamboard.db import get_db
from teamboard.feed import ChangeFeed, tasks_channel
from teamboard.models.enums import Role, TaskStatus
from teamboard.models.project import Project
from teamboard.models.task import Task
from teamboard.models.user import User
from teamboard.rbac.deps import ensure_capability, get_permission_engine, require_perm
from teamboard.rbac.engine import PermissionEngine
from teamboard.rbac.perms import ASSIGN_TASK, CREATE_TASK, DELETE_TASK, UPDATE_TASK_STATUS
from teamboard.rbac.scopes import get_visible_project, visible_projects
from teamboard.schemas.tasks import TaskCreateIn, TaskOut, TaskUpdateIn
from teamboard.sequence.allocator import allocate_task
from teamboard.streams import change_stream

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tasks"])

def _publish(request: Request, project_id: uuid.UUID, event: str, task_id: uuid.UUID) -> None:
    feed: ChangeFeed = request.app.state.change_feed
    feed.publish(tasks_channel(project_id), {"event": event, "task_id": str(task_id)})

def _guard_done_for_members(user: User, status: TaskStatus | None) -> None:
    # members move work between todo, in-progress and review; completion is signed off by others
    if user.role == Role.member and status == TaskStatus.done:
        raise HTTPException(status_code=403, detail="members cannot mark tasks done")

def _check_assignee(db: Session, assignee: uuid.UUID | None) -> None:
    if assignee is not None and db.get(User, assignee) is None:
        raise HTTPException(status_code=422, detail="unknown assignee")

def _get_task(db: Session, project_id: uuid.UUID, task_id: uuid.UUID) -> Task:
    t = db.scalar(select(Task).where(Task.id == task_id, Task.project_id == project_id))
    if t is None:
        raise HTTPException(status_code=404, detail="task not found")
    return t

@router.post("/projects/{project_id}/tasks", response_model=TaskOut)
def create_task(
    project_id: uuid.UUID,
    payload: TaskCreateIn,
    request: Request,
    user: User = Depends(require_perm(CREATE_TASK)),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> TaskOut:
    get_visible_project(db, engine, user, project_id)
    _guard_done_for_members(user, payload.status)
    if payload.assigned_to is not None:
        ensure_capability(engine, user, ASSIGN_TASK)
        _check_assignee(db, payload.assigned_to)

    task_data = payload.model_dump()
    task_data["created_by"] = user.id

    t = allocate_task(db, project_id, task_data)
    _publish(request, project_id, "task.created", t.id)
    return TaskOut.model_validate(t)

@router.get("/projects/{project_id}/tasks", response_model=list[TaskOut])
def list_tasks(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> list[TaskOut]:
    get_visible_project(db, engine, user, project_id)
    rows = db.scalars(select(Task).where(Task.project_id == project_id).order_by(Task.task_no)).all()
    return [TaskOut.model_validate(r) for r in rows]

@router.get("/projects/{project_id}/tasks/stream")
def stream_tasks(
    project_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    get_visible_project(db, engine, user, project_id)
    session_factory = request.app.state.session_factory

    def _snapshot(_: dict | None) -> list[dict]:
        with session_factory() as s:
            rows = s.scalars(select(Task).where(Task.project_id == project_id).order_by(Task.task_no)).all()
            return [TaskOut.model_validate(r).model_dump(mode="json") for r in rows]

    return StreamingResponse(
        change_stream(
            request,
            request.app.state.change_feed,
            tasks_channel(project_id),
            _snapshot,
            event="tasks",
            keepalive_seconds=settings.stream_keepalive_seconds,
        ),
        media_type="text/event-stream",
    )

@router.patch("/projects/{project_id}/tasks/{task_id}", response_model=TaskOut)
def update_task(
    project_id: uuid.UUID,
    task_id: uuid.UUID,
    payload: TaskUpdateIn,
    request: Request,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> TaskOut:
    fields = payload.model_fields_set
    if "status" in fields:
        ensure_capability(engine, user, UPDATE_TASK_STATUS)
        _guard_done_for_members(user, payload.status)
    if "assigned_to" in fields:
        ensure_capability(engine, user, ASSIGN_TASK)
    if fields - {"status", "assigned_to"}:
        ensure_capability(engine, user, CREATE_TASK)

    get_visible_project(db, engine, user, project_id)
    t = _get_task(db, project_id, task_id)

    if "status" in fields and payload.status is not None:
        t.status = payload.status
    if "assigned_to" in fields:
        # null unassigns
        _check_assignee(db, payload.assigned_to)
        t.assigned_to = payload.assigned_to
    if "title" in fields and payload.title is not None:
        t.title = payload.title
    if "priority" in fields and payload.priority is not None:
        t.priority = payload.priority
    if "description" in fields:
        t.description = payload.description
    if "deadline" in fields:
        t.deadline = payload.deadline

    db.commit()
    db.refresh(t)
    _publish(request, project_id, "task.updated", t.id)
    return TaskOut.model_validate(t)

@router.delete("/projects/{project_id}/tasks/{task_id}")
def delete_task(
    project_id: uuid.UUID,
    task_id: uuid.UUID,
    request: Request,
    user: User = Depends(require_perm(DELETE_TASK)),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> dict:
    get_visible_project(db, engine, user, project_id)
    t = _get_task(db, project_id, task_id)

    # the project's task_counter is left alone; numbers are never reused
    db.delete(t)
    db.commit()
    _publish(request, project_id, "task.deleted", task_id)
    return {"deleted": True}

@router.get("/tasks/mine", response_model=list[TaskOut])
def my_tasks(
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> list[TaskOut]:
    project_ids = visible_projects(engine, user).with_only_columns(Project.id)
    q = (
        select(Task)
        .where(Task.assigned_to == user.id, Task.project_id.in_(project_ids))
        .order_by(Task.deadline.is_(None), Task.deadline, Task.created_at, Task.task_no)
    )
    return [TaskOut.model_validate(r) for r in db.scalars(q).all()]
