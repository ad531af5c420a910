from teamboard.models.base import Base
from teamboard.models.auth_magic_link import AuthMagicLink
from teamboard.models.message import Message
from teamboard.models.note import Note
from teamboard.models.permission_config import PermissionConfig
from teamboard.models.project import Project, ProjectMember
from teamboard.models.task import Task
from teamboard.models.user import User

__all__ = [
    "Base",
    "User",
    "Project",
    "ProjectMember",
    "Task",
    "Message",
    "Note",
    "PermissionConfig",
    "AuthMagicLink",
]
