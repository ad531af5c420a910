import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from teamboard.models.enums import Role

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    name: str | None
    phone_number: str | None
    role: Role
    created_at: datetime

class UserCreateIn(BaseModel):
    email: EmailStr
    name: str | None = Field(default=None, max_length=200)
    role: Role = Role.member

class ProfileUpdateIn(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    phone_number: str | None = Field(default=None, max_length=40)

class UserUpdateIn(ProfileUpdateIn):
    role: Role | None = None
