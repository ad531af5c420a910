from pydantic import BaseModel

from teamboard.models.enums import Role

class PermissionMapOut(BaseModel):
    version: int
    state: str
    role_permissions: dict[str, list[str]]

class PermissionMapIn(BaseModel):
    role_permissions: dict[str, list[str]]

class MyPermissionsOut(BaseModel):
    role: Role
    capabilities: list[str]

class PermissionCheckOut(BaseModel):
    capability: str
    allowed: bool
