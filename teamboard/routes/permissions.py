from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from teamboard.auth.deps import get_current_user
from teamboard.config import settings
from teamboard.models.user import User
from teamboard.rbac.deps import get_permission_engine
from teamboard.rbac.engine import PermissionEngine, PermissionSnapshot
from teamboard.rbac.perms import CAPABILITIES
from teamboard.schemas.permissions import (
    MyPermissionsOut,
    PermissionCheckOut,
    PermissionMapIn,
    PermissionMapOut,
)
from teamboard.streams import change_stream

router = APIRouter(prefix="/permissions", tags=["permissions"])

def _map_out(engine: PermissionEngine, snap: PermissionSnapshot) -> PermissionMapOut:
    return PermissionMapOut(version=snap.version, state=engine.state.value, role_permissions=snap.as_dict())

@router.get("", response_model=PermissionMapOut)
def get_permissions(
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
) -> PermissionMapOut:
    return _map_out(engine, engine.ensure_ready())

@router.put("", response_model=PermissionMapOut)
def update_permissions(
    payload: PermissionMapIn,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
) -> PermissionMapOut:
    # the engine itself refuses non-admin callers
    snap = engine.update_permissions(user.role, payload.role_permissions, actor_id=user.id)
    return _map_out(engine, snap)

@router.get("/me", response_model=MyPermissionsOut)
def my_permissions(
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
) -> MyPermissionsOut:
    return MyPermissionsOut(role=user.role, capabilities=engine.capabilities_for(user.role))

@router.get("/check/{capability}", response_model=PermissionCheckOut)
def check_permission(
    capability: str,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
) -> PermissionCheckOut:
    if capability not in CAPABILITIES:
        raise HTTPException(status_code=404, detail="unknown capability")
    engine.ensure_ready()
    return PermissionCheckOut(capability=capability, allowed=engine.has_permission(user.role, capability))

@router.get("/stream")
def stream_permissions(
    request: Request,
    user: User = Depends(get_current_user),
    engine: PermissionEngine = Depends(get_permission_engine),
) -> StreamingResponse:
    engine.ensure_ready()

    def _snapshot(pushed: dict | None) -> dict:
        # pushes carry the full map
        if pushed is not None:
            return {"version": pushed["version"], "state": engine.state.value, "role_permissions": pushed["role_permissions"]}
        return _map_out(engine, engine.ensure_ready()).model_dump()

    return StreamingResponse(
        change_stream(
            request,
            request.app.state.change_feed,
            engine.channel,
            _snapshot,
            event="permissions",
            keepalive_seconds=settings.stream_keepalive_seconds,
        ),
        media_type="text/event-stream",
    )
