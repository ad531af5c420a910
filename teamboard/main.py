import logging
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.orm import Session

from teamboard.config import settings
from teamboard.db import SessionLocal
from teamboard.errors import register_error_handlers
from teamboard.feed import ChangeFeed, build_change_feed
from teamboard.rbac.engine import PermissionEngine, SqlPermissionStore
from teamboard.routes.auth import router as auth_router
from teamboard.routes.health import router as health_router
from teamboard.routes.messages import router as messages_router
from teamboard.routes.notes import router as notes_router
from teamboard.routes.permissions import router as permissions_router
from teamboard.routes.projects import router as projects_router
from teamboard.routes.reports import router as reports_router
from teamboard.routes.tasks import router as tasks_router
from teamboard.routes.users import router as users_router

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    engine: PermissionEngine = app.state.permission_engine
    # an unavailable store is not fatal; requests retry the load
    state = engine.start()
    logger.info("teamboard-api started, permissions %s", state.value)
    yield
    engine.stop()

def create_app(
    session_factory: Callable[[], Session] | None = None,
    change_feed: ChangeFeed | None = None,
) -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    session_factory = session_factory or SessionLocal
    feed = change_feed or build_change_feed(settings.change_feed)

    app = FastAPI(title="teamboard-api", version="0.1.0", lifespan=lifespan)
    app.state.session_factory = session_factory
    app.state.change_feed = feed
    app.state.permission_engine = PermissionEngine(
        SqlPermissionStore(session_factory), feed, settings.permissions_channel
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(permissions_router)
    app.include_router(projects_router)
    app.include_router(tasks_router)
    app.include_router(messages_router)
    app.include_router(notes_router)
    app.include_router(reports_router)
    return app

app = create_app()
