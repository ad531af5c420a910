import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

class NoteCreateIn(BaseModel):
    title: str = Field(default="Untitled", max_length=200)
    content: str = ""

class NoteUpdateIn(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    content: str | None = None

class NoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    content: str
    created_at: datetime
    updated_at: datetime
