import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from teamboard.auth.deps import get_current_user
from teamboard.db import get_db
from teamboard.models.enums import ProjectStatus
from teamboard.models.message import Message
from teamboard.models.project import Project, ProjectMember
from teamboard.models.task import Task
from teamboard.models.user import User
from teamboard.rbac.deps import ensure_capability, get_permission_engine, require_perm
from teamboard.rbac.engine import PermissionEngine
from teamboard.rbac.perms import (
    ASSIGN_PROJECT,
    CHANGE_PROJECT_STATUS,
    CREATE_PROJECT,
    DELETE_PROJECT,
    UPDATE_PROJECT,
)
from teamboard.rbac.scopes import get_visible_project, visible_projects
from teamboard.schemas.projects import ProjectCreateIn, ProjectMembersIn, ProjectOut, ProjectUpdateIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])

def _check_users_exist(db: Session, user_ids: set[uuid.UUID]) -> None:
    if not user_ids:
        return
    found = set(db.scalars(select(User.id).where(User.id.in_(user_ids))).all())
    missing = user_ids - found
    if missing:
        raise HTTPException(status_code=422, detail="unknown user")

@router.post("", response_model=ProjectOut)
def create_project(
    payload: ProjectCreateIn,
    user: User = Depends(require_perm(CREATE_PROJECT)),
    db: Session = Depends(get_db),
) -> ProjectOut:
    members = {user.id, *payload.members}
    _check_users_exist(db, members)

    p = Project(
        name=payload.name,
        description=payload.description,
        deadline=payload.deadline,
        status=ProjectStatus.planning,
        manager_id=user.id,
        task_counter=0,
    )
    p.memberships = [ProjectMember(user_id=m) for m in members]
    db.add(p)
    db.commit()
    db.refresh(p)
    logger.info("project %s created by %s", p.id, user.id)
    return ProjectOut.model_validate(p)

@router.get("", response_model=list[ProjectOut])
def list_projects(
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> list[ProjectOut]:
    q = visible_projects(engine, user).order_by(Project.created_at.desc())
    rows = db.scalars(q).unique().all()
    return [ProjectOut.model_validate(r) for r in rows]

@router.get("/{project_id}", response_model=ProjectOut)
def get_project(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> ProjectOut:
    return ProjectOut.model_validate(get_visible_project(db, engine, user, project_id))

@router.patch("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdateIn,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> ProjectOut:
    fields = payload.model_fields_set
    # status moves and detail edits are separate capabilities
    if "status" in fields:
        ensure_capability(engine, user, CHANGE_PROJECT_STATUS)
    if fields - {"status"}:
        ensure_capability(engine, user, UPDATE_PROJECT)

    p = get_visible_project(db, engine, user, project_id)
    if "status" in fields and payload.status is not None:
        p.status = payload.status
    if "name" in fields and payload.name is not None:
        p.name = payload.name
    # allow clearing description/deadline by sending null
    if "description" in fields:
        p.description = payload.description
    if "deadline" in fields:
        p.deadline = payload.deadline

    db.commit()
    db.refresh(p)
    return ProjectOut.model_validate(p)

@router.put("/{project_id}/members", response_model=ProjectOut)
def set_members(
    project_id: uuid.UUID,
    payload: ProjectMembersIn,
    user: User = Depends(require_perm(ASSIGN_PROJECT)),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> ProjectOut:
    p = get_visible_project(db, engine, user, project_id)

    members = set(payload.members)
    # the project manager always stays on the project
    if p.manager_id is not None:
        members.add(p.manager_id)
    _check_users_exist(db, members)

    current = {m.user_id: m for m in p.memberships}
    p.memberships = [current.get(uid) or ProjectMember(user_id=uid) for uid in members]
    db.commit()
    db.refresh(p)
    logger.info("project %s members set to %d users", p.id, len(members))
    return ProjectOut.model_validate(p)

@router.delete("/{project_id}")
def delete_project(
    project_id: uuid.UUID,
    user: User = Depends(require_perm(DELETE_PROJECT)),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> dict:
    p = get_visible_project(db, engine, user, project_id)

    db.execute(delete(Task).where(Task.project_id == p.id))
    db.execute(delete(Message).where(Message.project_id == p.id))
    db.delete(p)
    db.commit()
    logger.info("project %s deleted by %s", project_id, user.id)
    return {"deleted": True}
