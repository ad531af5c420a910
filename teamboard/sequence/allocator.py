from __future__ import annotations

import logging
import random
import time
import uuid
from collections.abc import Mapping
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from teamboard.config import settings
from teamboard.errors import Conflict, NotFound, StoreUnavailable
from teamboard.models.project import Project
from teamboard.models.task import Task

logger = logging.getLogger(__name__)

# payload keys mapped onto task columns; everything else lands in Task.extra
TASK_FIELDS = frozenset(
    {"title", "description", "status", "priority", "deadline", "assigned_to", "created_by"}
)
# owned by the allocator, never taken from the payload
RESERVED_FIELDS = frozenset(
    {"id", "project_id", "task_no", "custom_id", "created_at", "updated_at", "extra"}
)

class CounterMoved(Exception):
    """The project's counter changed between our read and our write."""

def format_custom_id(task_no: int) -> str:
    return f"TK-{task_no:03d}"

def _split_payload(task_data: Mapping[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    columns: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in task_data.items():
        if key in RESERVED_FIELDS:
            continue
        if key in TASK_FIELDS:
            columns[key] = value
        else:
            extra[key] = value
    return columns, extra

def _allocate_once(db: Session, project_id: uuid.UUID, task_data: Mapping[str, Any]) -> Task:
    current = db.scalar(select(Project.task_counter).where(Project.id == project_id))
    if current is None:
        raise NotFound("project not found")

    next_no = current + 1
    res = db.execute(
        update(Project)
        .where(Project.id == project_id, Project.task_counter == current)
        .values(task_counter=next_no)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise CounterMoved()

    columns, extra = _split_payload(task_data)
    task = Task(
        **columns,
        extra=extra,
        project_id=project_id,
        task_no=next_no,
        custom_id=format_custom_id(next_no),
    )
    db.add(task)
    db.flush()
    return task

def allocate_task(
    db: Session,
    project_id: uuid.UUID,
    task_data: Mapping[str, Any],
    *,
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
) -> Task:
    """Create a task in ``project_id`` with the project's next sequence number and commit it."""
    attempts = max_attempts if max_attempts is not None else settings.task_allocation_max_attempts
    backoff = backoff_seconds if backoff_seconds is not None else settings.task_allocation_backoff_seconds

    for attempt in range(1, attempts + 1):
        try:
            task = _allocate_once(db, project_id, task_data)
            db.commit()
        except NotFound:
            db.rollback()
            raise
        except CounterMoved:
            db.rollback()
            logger.info(
                "task counter for project %s moved, retrying (attempt %s/%s)", project_id, attempt, attempts
            )
            if attempt < attempts:
                # exponential backoff with jitter, fresh read on the next pass
                time.sleep(backoff * (2 ** (attempt - 1)) * random.uniform(0.5, 1.5))
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("task allocation for project %s failed: %s", project_id, e)
            raise StoreUnavailable() from e

        db.refresh(task)
        logger.info("allocated %s in project %s", task.custom_id, project_id)
        return task

    logger.warning("task allocation for project %s gave up after %s attempts", project_id, attempts)
    raise Conflict("task_allocation_conflict")
