import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from teamboard.auth.tokens import as_utc
from teamboard.errors import Conflict, NotFound
from teamboard.models.enums import TaskStatus
from teamboard.models.project import Project
from teamboard.models.task import Task
from teamboard.sequence.allocator import allocate_task, format_custom_id

class RacingSession:
    """Session proxy that lets a competing writer commit right after each counter read."""

    def __init__(self, inner, compete, races: int = 1):
        self._inner = inner
        self._compete = compete
        self.races_left = races

    def scalar(self, *args, **kwargs):
        value = self._inner.scalar(*args, **kwargs)
        if self.races_left > 0:
            self.races_left -= 1
            self._compete()
        return value

    def __getattr__(self, name):
        return getattr(self._inner, name)

@pytest.fixture()
def project_id(db_session) -> uuid.UUID:
    p = Project(name="sequence")
    db_session.add(p)
    db_session.commit()
    return p.id

def _task_numbers(session_factory, project_id) -> list[int]:
    with session_factory() as s:
        return list(s.scalars(select(Task.task_no).where(Task.project_id == project_id).order_by(Task.task_no)))

def _counter(session_factory, project_id) -> int:
    with session_factory() as s:
        return s.scalar(select(Project.task_counter).where(Project.id == project_id))

def test_first_task_is_tk_001(db_session, project_id):
    t = allocate_task(db_session, project_id, {"title": "first"})

    assert t.task_no == 1
    assert t.custom_id == "TK-001"
    assert t.status == TaskStatus.todo

def test_numbers_increase_per_project(db_session, session_factory, project_id):
    other = Project(name="other")
    db_session.add(other)
    db_session.commit()

    for i in range(3):
        allocate_task(db_session, project_id, {"title": f"t{i}"})
    t = allocate_task(db_session, other.id, {"title": "elsewhere"})

    assert _task_numbers(session_factory, project_id) == [1, 2, 3]
    assert _counter(session_factory, project_id) == 3
    # each project counts on its own
    assert t.custom_id == "TK-001"

def test_custom_id_format():
    assert format_custom_id(7) == "TK-007"
    assert format_custom_id(42) == "TK-042"
    assert format_custom_id(1000) == "TK-1000"

def test_lost_race_retries_with_fresh_number(db_session, session_factory, project_id):
    allocate_task(db_session, project_id, {"title": "seed"})

    def _compete():
        with session_factory() as other:
            allocate_task(other, project_id, {"title": "competitor"}, backoff_seconds=0)

    racing = RacingSession(db_session, _compete)
    t = allocate_task(racing, project_id, {"title": "mine"}, backoff_seconds=0)

    assert racing.races_left == 0
    assert t.task_no == 3
    assert _task_numbers(session_factory, project_id) == [1, 2, 3]
    assert _counter(session_factory, project_id) == 3

    with session_factory() as s:
        competitor = s.scalar(select(Task).where(Task.title == "competitor"))
    assert competitor.task_no == 2

def test_gives_up_after_max_attempts(db_session, session_factory, project_id):
    def _compete():
        with session_factory() as other:
            allocate_task(other, project_id, {"title": "competitor"}, backoff_seconds=0)

    racing = RacingSession(db_session, _compete, races=10)
    with pytest.raises(Conflict) as exc:
        allocate_task(racing, project_id, {"title": "mine"}, max_attempts=2, backoff_seconds=0)

    assert exc.value.detail == "task_allocation_conflict"
    # only the competitors' tasks exist
    assert _task_numbers(session_factory, project_id) == [1, 2]
    with session_factory() as s:
        assert s.scalar(select(func.count()).select_from(Task).where(Task.title == "mine")) == 0

def test_missing_project_writes_nothing(db_session, session_factory):
    with pytest.raises(NotFound):
        allocate_task(db_session, uuid.uuid4(), {"title": "orphan"})

    with session_factory() as s:
        assert s.scalar(select(func.count()).select_from(Task)) == 0

def test_deleted_numbers_are_not_reused(db_session, session_factory, project_id):
    allocate_task(db_session, project_id, {"title": "a"})
    second = allocate_task(db_session, project_id, {"title": "b"})

    db_session.delete(second)
    db_session.commit()

    t = allocate_task(db_session, project_id, {"title": "c"})
    assert t.task_no == 3
    assert _task_numbers(session_factory, project_id) == [1, 3]

def test_unknown_fields_go_to_extra(db_session, project_id):
    payload = {
        "title": "with extras",
        "story_points": 5,
        "labels": ["backend"],
        # owned by the allocator
        "task_no": 99,
        "custom_id": "TK-999",
    }
    t = allocate_task(db_session, project_id, payload)

    assert t.task_no == 1
    assert t.custom_id == "TK-001"
    assert t.extra == {"story_points": 5, "labels": ["backend"]}

def test_concurrent_creators_get_distinct_numbers(db_session, session_factory, project_id):
    allocate_task(db_session, project_id, {"title": "A"})
    start = threading.Barrier(8)

    def _create(i: int) -> int:
        with session_factory() as s:
            start.wait(timeout=10)
            return allocate_task(s, project_id, {"title": f"parallel {i}"}, max_attempts=50).task_no

    with ThreadPoolExecutor(max_workers=8) as pool:
        numbers = list(pool.map(_create, range(8)))

    assert sorted(numbers) == list(range(2, 10))
    assert _counter(session_factory, project_id) == 9

def test_created_at_comes_from_the_database(db_session, project_id):
    assert Task.__table__.c.created_at.server_default is not None

    before = datetime.now(timezone.utc) - timedelta(minutes=1)
    t = allocate_task(db_session, project_id, {"title": "A"})
    assert t.created_at is not None
    assert before <= as_utc(t.created_at) <= datetime.now(timezone.utc) + timedelta(minutes=1)
