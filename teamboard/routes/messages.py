import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from teamboard.auth.deps import get_current_user
from teamboard.db import get_db
from teamboard.models.message import Message
from teamboard.models.user import User
from teamboard.rbac.deps import get_permission_engine
from teamboard.rbac.engine import PermissionEngine
from teamboard.rbac.scopes import get_visible_project
from teamboard.schemas.messages import MessageIn, MessageOut

router = APIRouter(prefix="/projects/{project_id}/messages", tags=["chat"])

@router.get("", response_model=list[MessageOut])
def list_messages(
    project_id: uuid.UUID,
    limit: int = 200,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> list[MessageOut]:
    get_visible_project(db, engine, user, project_id)
    limit = max(1, min(limit, 500))

    # newest page, returned oldest first
    q = (
        select(Message)
        .where(Message.project_id == project_id)
        .order_by(Message.created_at.desc())
        .limit(limit)
    )
    rows = list(reversed(db.scalars(q).all()))
    return [MessageOut.model_validate(r) for r in rows]

@router.post("", response_model=MessageOut)
def send_message(
    project_id: uuid.UUID,
    payload: MessageIn,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
    db: Session = Depends(get_db),
) -> MessageOut:
    get_visible_project(db, engine, user, project_id)

    m = Message(project_id=project_id, sender_id=user.id, text=payload.text)
    db.add(m)
    db.commit()
    db.refresh(m)
    return MessageOut.model_validate(m)
