from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from teamboard.db import db_ping
from teamboard.redis_client import redis_ping

router = APIRouter(tags=["health"])

@router.get("/health")
def health() -> dict:
    return {"status": "ok"}

# readiness probe
@router.get("/ready")
def ready(request: Request):
    checks: dict[str, bool] = {}
    errors: dict[str, str] = {}

    for name, fn in (("db", db_ping), ("redis", redis_ping)):
        try:
            checks[name] = bool(fn())
        except Exception as e:
            checks[name] = False
            msg = str(e).strip()
            errors[name] = f"{e.__class__.__name__}{(': ' + msg) if msg else ''}"

    engine = request.app.state.permission_engine
    checks["permissions"] = engine.snapshot is not None

    ok = all(checks.values())

    body: dict = {"status": "ok" if ok else "unready", "checks": checks, "permissions_state": engine.state.value}
    if errors:
        body["errors"] = errors

    # 200 only when db, redis and the permission map are available
    return JSONResponse(status_code=200 if ok else 503, content=body)
