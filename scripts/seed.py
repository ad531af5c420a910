import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from teamboard.db import SessionLocal
from teamboard.models.enums import ProjectStatus, Role, TaskPriority
from teamboard.models.project import Project, ProjectMember
from teamboard.models.task import Task
from teamboard.models.user import User
from teamboard.rbac.engine import SqlPermissionStore
from teamboard.rbac.perms import DEFAULT_ROLE_PERMISSIONS, normalize_role_permissions
from teamboard.sequence.allocator import allocate_task

@dataclass
class SeedResult:
    admin_email: str
    manager_email: str
    member_email: str
    project_id: uuid.UUID
    task_ids: list[str]
    permissions_version: int

def get_or_create_user(db: Session, email: str, role: Role, name: str | None = None) -> User:
    email = email.lower().strip()
    u = db.scalar(select(User).where(User.email == email))
    if u is None:
        u = User(email=email, name=name, role=role)
        db.add(u)
        db.flush()
    elif u.role != role:
        u.role = role
        db.flush()
    return u

def get_or_create_project(db: Session, name: str, manager: User, members: list[User]) -> Project:
    p = db.scalar(select(Project).where(Project.name == name))
    if p is None:
        p = Project(name=name, status=ProjectStatus.active, manager_id=manager.id)
        db.add(p)
        db.flush()

    have = set(p.member_ids)
    for u in (manager, *members):
        if u.id not in have:
            p.memberships.append(ProjectMember(user_id=u.id))
    db.flush()
    return p

def get_or_create_task(db: Session, project: Project, title: str, **fields) -> Task:
    t = db.scalar(select(Task).where(Task.project_id == project.id, Task.title == title))
    if t is None:
        # numbered through the allocator like any other task
        t = allocate_task(db, project.id, {"title": title, **fields})
    return t

def seed() -> SeedResult:
    store = SqlPermissionStore(SessionLocal)
    stored = store.load() or store.seed(normalize_role_permissions(DEFAULT_ROLE_PERMISSIONS))

    db = SessionLocal()
    try:
        admin = get_or_create_user(db, "admin@example.com", Role.admin, "admin")
        manager = get_or_create_user(db, "manager@example.com", Role.manager, "manager")
        member = get_or_create_user(db, "member@example.com", Role.member, "member")

        project = get_or_create_project(db, "seeded project", manager, [member])
        db.commit()

        tasks = [
            get_or_create_task(db, project, "draft plan", created_by=manager.id, priority=TaskPriority.high),
            get_or_create_task(db, project, "seeded task", created_by=manager.id, assigned_to=member.id),
        ]

        return SeedResult(
            admin_email=admin.email,
            manager_email=manager.email,
            member_email=member.email,
            project_id=project.id,
            task_ids=[t.custom_id for t in tasks],
            permissions_version=stored.version,
        )
    finally:
        db.close()

if __name__ == "__main__":
    r = seed()
    print("seed complete")
    print(f"project_id={r.project_id}")
    print(f"tasks={', '.join(r.task_ids)}")
    print(f"permissions v{r.permissions_version}")
    print("users:")
    print(f"  admin:   {r.admin_email}")
    print(f"  manager: {r.manager_email}")
    print(f"  member:  {r.member_email}")
