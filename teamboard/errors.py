from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

class TeamboardError(Exception):
    status_code = 500
    detail = "internal_error"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)

class Unauthorized(TeamboardError):
    status_code = 403
    detail = "forbidden"

class NotFound(TeamboardError):
    status_code = 404
    detail = "not found"

class Conflict(TeamboardError):
    status_code = 409
    detail = "conflict"

class InvalidInput(TeamboardError):
    status_code = 422
    detail = "invalid input"

class StoreUnavailable(TeamboardError):
    status_code = 503
    detail = "store_unavailable"

class PermissionsUnavailable(StoreUnavailable):
    detail = "permissions_unavailable"

async def _handle_teamboard_error(request: Request, exc: TeamboardError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TeamboardError, _handle_teamboard_error)
