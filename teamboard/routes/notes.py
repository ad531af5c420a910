import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from teamboard.auth.deps import get_current_user
from teamboard.db import get_db
from teamboard.models.note import Note
from teamboard.models.user import User
from teamboard.schemas.notes import NoteCreateIn, NoteOut, NoteUpdateIn

router = APIRouter(prefix="/notes", tags=["notes"])

def _get_own_note(db: Session, user: User, note_id: uuid.UUID) -> Note:
    # other users' notes are indistinguishable from missing ones
    n = db.scalar(select(Note).where(Note.id == note_id, Note.owner_id == user.id))
    if n is None:
        raise HTTPException(status_code=404, detail="note not found")
    return n

@router.get("", response_model=list[NoteOut])
def list_notes(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[NoteOut]:
    rows = db.scalars(select(Note).where(Note.owner_id == user.id).order_by(Note.updated_at.desc())).all()
    return [NoteOut.model_validate(r) for r in rows]

@router.post("", response_model=NoteOut)
def create_note(
    payload: NoteCreateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NoteOut:
    n = Note(owner_id=user.id, title=payload.title, content=payload.content)
    db.add(n)
    db.commit()
    db.refresh(n)
    return NoteOut.model_validate(n)

@router.patch("/{note_id}", response_model=NoteOut)
def update_note(
    note_id: uuid.UUID,
    payload: NoteUpdateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NoteOut:
    n = _get_own_note(db, user, note_id)
    if payload.title is not None:
        n.title = payload.title
    if payload.content is not None:
        n.content = payload.content
    db.commit()
    db.refresh(n)
    return NoteOut.model_validate(n)

@router.delete("/{note_id}")
def delete_note(
    note_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    n = _get_own_note(db, user, note_id)
    db.delete(n)
    db.commit()
    return {"deleted": True}
