from collections import defaultdict

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from teamboard.auth.deps import get_current_user
from teamboard.db import get_db
from teamboard.models.enums import ProjectStatus, Role
from teamboard.models.project import Project
from teamboard.models.task import Task
from teamboard.models.user import User
from teamboard.rbac.deps import get_permission_engine, require_perm
from teamboard.rbac.engine import PermissionEngine
from teamboard.rbac.perms import VIEW_REPORTS, VIEW_TEAM_WORKLOAD
from teamboard.rbac.scopes import visible_projects
from teamboard.reports.metrics import (
    AT_RISK,
    ON_TRACK,
    OVERDUE,
    calculate_progress,
    project_health,
    summarize_tasks,
)
from teamboard.schemas.reports import DashboardOut, ProjectReportOut, TrackerOut, WorkloadOut

router = APIRouter(prefix="/reports", tags=["reports"])

def _tasks_by_project(db: Session, project_ids: list) -> dict:
    grouped: dict = defaultdict(list)
    if project_ids:
        for t in db.scalars(select(Task).where(Task.project_id.in_(project_ids))).all():
            grouped[t.project_id].append(t)
    return grouped

@router.get("/tracker", response_model=TrackerOut)
def tracker(
    user: User = Depends(require_perm(VIEW_REPORTS)),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> TrackerOut:
    projects = db.scalars(visible_projects(engine, user).order_by(Project.created_at)).all()
    tasks = _tasks_by_project(db, [p.id for p in projects])

    rows = []
    for p in projects:
        ts = tasks.get(p.id, [])
        counts = summarize_tasks(ts)
        rows.append(
            ProjectReportOut(
                id=p.id,
                name=p.name,
                status=p.status.value,
                progress=calculate_progress(ts),
                health=project_health(p, ts),
                task_count=counts["total"],
                completed_tasks=counts["done"],
            )
        )

    health = [r.health for r in rows]
    average = round(sum(r.progress for r in rows) / len(rows)) if rows else 0
    return TrackerOut(
        average_progress=average,
        on_track=health.count(ON_TRACK),
        at_risk=health.count(AT_RISK),
        overdue=health.count(OVERDUE),
        projects=rows,
    )

@router.get("/dashboard", response_model=DashboardOut)
def dashboard(
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> DashboardOut:
    projects = db.scalars(visible_projects(engine, user)).all()
    q = select(Task).where(Task.project_id.in_([p.id for p in projects]))

    if user.role == Role.member:
        # members see their own workload across every project they belong to
        counts = summarize_tasks(db.scalars(q.where(Task.assigned_to == user.id)).all() if projects else [])
        return DashboardOut(
            scope="personal",
            active_projects=len(projects),
            completed_tasks=counts["done"],
            open_tasks=counts["open"],
            high_priority_tasks=counts["open_high_priority"],
        )

    counts = summarize_tasks(db.scalars(q).all() if projects else [])
    return DashboardOut(
        scope="global",
        active_projects=sum(1 for p in projects if p.status == ProjectStatus.active),
        completed_tasks=counts["done"],
        open_tasks=counts["open"],
        high_priority_tasks=counts["high_priority"],
    )

@router.get("/workload", response_model=list[WorkloadOut])
def workload(
    user: User = Depends(require_perm(VIEW_TEAM_WORKLOAD)),
    db: Session = Depends(get_db),
) -> list[WorkloadOut]:
    per_user: dict = defaultdict(list)
    for t in db.scalars(select(Task)).all():
        per_user[t.assigned_to].append(t)

    names = {u.id: u.name for u in db.scalars(select(User)).all()}
    out = []
    for assignee, ts in per_user.items():
        counts = summarize_tasks(ts)
        out.append(
            WorkloadOut(
                user_id=assignee,
                name=names.get(assignee),
                open_tasks=counts["open"],
                done_tasks=counts["done"],
            )
        )
    # unassigned last, busiest first
    out.sort(key=lambda w: (w.user_id is None, -w.open_tasks, w.name or ""))
    return out
