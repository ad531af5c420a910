import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from teamboard.auth.deps import get_current_user
from teamboard.db import get_db
from teamboard.models.auth_magic_link import AuthMagicLink
from teamboard.models.enums import Role
from teamboard.models.message import Message
from teamboard.models.note import Note
from teamboard.models.project import Project, ProjectMember
from teamboard.models.task import Task
from teamboard.models.user import User
from teamboard.rbac.deps import ensure_capability, get_permission_engine, require_perm
from teamboard.rbac.engine import PermissionEngine
from teamboard.rbac.perms import MANAGE_USERS
from teamboard.schemas.users import ProfileUpdateIn, UserCreateIn, UserOut, UserUpdateIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

def _apply_profile(u: User, payload: ProfileUpdateIn) -> None:
    fields = payload.model_fields_set
    if "name" in fields:
        u.name = payload.name
    if "phone_number" in fields:
        u.phone_number = payload.phone_number

@router.get("", response_model=list[UserOut])
def list_users(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[UserOut]:
    rows = db.scalars(select(User).order_by(User.created_at, User.email)).all()
    return [UserOut.model_validate(r) for r in rows]

@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(user)

@router.patch("/me", response_model=UserOut)
def update_me(
    payload: ProfileUpdateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserOut:
    _apply_profile(user, payload)
    db.commit()
    db.refresh(user)
    return UserOut.model_validate(user)

@router.post("", response_model=UserOut)
def create_user(
    payload: UserCreateIn,
    user: User = Depends(require_perm(MANAGE_USERS)),
    db: Session = Depends(get_db),
) -> UserOut:
    # only admins hand out elevated roles
    if payload.role != Role.member and user.role != Role.admin:
        raise HTTPException(status_code=403, detail="forbidden")

    email = payload.email.lower().strip()
    if db.scalar(select(User).where(User.email == email)) is not None:
        raise HTTPException(status_code=409, detail="user already exists")

    u = User(email=email, name=payload.name, role=payload.role)
    db.add(u)
    db.commit()
    db.refresh(u)
    logger.info("user %s created by %s with role %s", u.id, user.id, u.role.value)
    return UserOut.model_validate(u)

@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: uuid.UUID,
    payload: UserUpdateIn,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> UserOut:
    fields = payload.model_fields_set
    if "role" in fields and user.role != Role.admin:
        raise HTTPException(status_code=403, detail="forbidden")
    if fields - {"role"} and user.id != user_id:
        ensure_capability(engine, user, MANAGE_USERS)

    u = db.get(User, user_id)
    if u is None:
        raise HTTPException(status_code=404, detail="user not found")

    _apply_profile(u, payload)
    if "role" in fields and payload.role is not None and payload.role != u.role:
        logger.warning("role of user %s changed %s -> %s by %s", u.id, u.role.value, payload.role.value, user.id)
        u.role = payload.role

    db.commit()
    db.refresh(u)
    return UserOut.model_validate(u)

@router.delete("/{user_id}")
def delete_user(
    user_id: uuid.UUID,
    user: User = Depends(require_perm(MANAGE_USERS)),
    db: Session = Depends(get_db),
) -> dict:
    if user_id == user.id:
        raise HTTPException(status_code=400, detail="cannot delete yourself")

    u = db.get(User, user_id)
    if u is None:
        raise HTTPException(status_code=404, detail="user not found")
    if u.role == Role.admin and user.role != Role.admin:
        raise HTTPException(status_code=403, detail="forbidden")

    # same effect as the FK rules, without relying on the backend enforcing them
    db.execute(delete(ProjectMember).where(ProjectMember.user_id == user_id))
    db.execute(delete(Note).where(Note.owner_id == user_id))
    db.execute(delete(AuthMagicLink).where(AuthMagicLink.user_id == user_id))
    db.execute(update(Task).where(Task.assigned_to == user_id).values(assigned_to=None))
    db.execute(update(Task).where(Task.created_by == user_id).values(created_by=None))
    db.execute(update(Message).where(Message.sender_id == user_id).values(sender_id=None))
    db.execute(update(Project).where(Project.manager_id == user_id).values(manager_id=None))
    db.delete(u)
    db.commit()
    logger.info("user %s deleted by %s", user_id, user.id)
    return {"deleted": True}
