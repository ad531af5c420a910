import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

class MessageIn(BaseModel):
    text: str = Field(min_length=1, max_length=4000)

class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_id: uuid.UUID
    sender_id: uuid.UUID | None
    text: str
    created_at: datetime
