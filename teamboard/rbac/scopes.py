import uuid

from fastapi import HTTPException
from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from teamboard.models.project import Project, ProjectMember
from teamboard.models.user import User
from teamboard.rbac.deps import can
from teamboard.rbac.engine import PermissionEngine
from teamboard.rbac.perms import VIEW_ALL_PROJECTS

def visible_projects(engine: PermissionEngine, user: User) -> Select:
    q = select(Project)
    if not can(engine, user, VIEW_ALL_PROJECTS):
        q = q.join(ProjectMember, ProjectMember.project_id == Project.id).where(
            ProjectMember.user_id == user.id
        )
    return q

def get_visible_project(
    db: Session,
    engine: PermissionEngine,
    user: User,
    project_id: uuid.UUID,
) -> Project:
    # invisible and missing look the same to the caller
    project = db.scalar(visible_projects(engine, user).where(Project.id == project_id))
    if project is None:
        raise HTTPException(status_code=404, detail="project not found")
    return project
