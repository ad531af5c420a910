import logging

from fastapi import Depends, HTTPException, Request

from teamboard.auth.deps import get_current_user
from teamboard.models.user import User
from teamboard.rbac.engine import Decision, PermissionEngine
from teamboard.rbac.perms import CAPABILITIES

logger = logging.getLogger(__name__)

def get_permission_engine(request: Request) -> PermissionEngine:
    return request.app.state.permission_engine

def ensure_capability(engine: PermissionEngine, user: User, capability: str) -> None:
    """Refuse the current action unless ``user`` holds ``capability``.

    An engine that cannot load its configuration refuses with 503 rather than
    guessing; a definitive denial is a 403.
    """
    decision = engine.check(user.role, capability)
    if decision is Decision.unavailable:
        engine.ensure_ready()
        decision = engine.check(user.role, capability)

    if decision is not Decision.allowed:
        logger.warning("user %s (%s) denied %s", user.id, user.role.value, capability)
        raise HTTPException(status_code=403, detail="forbidden")

def can(engine: PermissionEngine, user: User, capability: str) -> bool:
    # non-raising variant for branching on optional capabilities
    if engine.check(user.role, capability) is Decision.unavailable:
        engine.ensure_ready()
    return engine.has_permission(user.role, capability)

def require_perm(capability: str):
    if capability not in CAPABILITIES:
        raise RuntimeError(f"unknown capability: {capability}")

    def _checker(
        user: User = Depends(get_current_user),
        engine: PermissionEngine = Depends(get_permission_engine),
    ) -> User:
        ensure_capability(engine, user, capability)
        return user

    return _checker
