import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from teamboard.models.base import Base

PERMISSIONS_KEY = "permissions"

class PermissionConfig(Base):
    """Persisted RoleCapabilityMap; a single row keyed ``permissions``."""

    __tablename__ = "permission_config"

    key: Mapped[str] = mapped_column(String(64), primary_key=True, default=PERMISSIONS_KEY)

    # {"manager": ["create_task", ...], "member": [...]}
    role_permissions: Mapped[dict] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
