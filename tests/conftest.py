import os
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from teamboard.config import settings
from teamboard.db import get_db
from teamboard.feed import LocalChangeFeed
from teamboard.main import create_app
from teamboard.models import Base
from teamboard.models.enums import Role
from teamboard.models.user import User

@pytest.fixture()
def db_engine(tmp_path):
    # postgres when DATABASE_URL is set, otherwise a throwaway sqlite file
    database_url = os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'teamboard.db'}"
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}

    engine = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()

@pytest.fixture()
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)

@pytest.fixture()
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture()
def feed() -> LocalChangeFeed:
    return LocalChangeFeed()

@pytest.fixture()
def app(session_factory, feed, monkeypatch):
    monkeypatch.setattr(settings, "app_env", "test")
    monkeypatch.setattr(settings, "rate_limit_enabled", False)
    monkeypatch.setattr(settings, "bootstrap_admin_email", None)

    app = create_app(session_factory=session_factory, change_feed=feed)

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    return app

@pytest.fixture()
def client(app) -> TestClient:
    with TestClient(app) as c:
        yield c

def _login(client, email: str) -> str:
    r = client.post("/auth/request-link", json={"email": email})
    assert r.status_code == 200, r.text
    token = r.json()["token"]

    r = client.post("/auth/redeem", json={"token": token})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]

def _auth(jwt: str) -> dict[str, str]:
    return {"authorization": f"bearer {jwt}"}

class Actor:
    def __init__(self, user_id: uuid.UUID, email: str, role: Role, headers: dict[str, str]):
        self.id = user_id
        self.email = email
        self.role = role
        self.headers = headers

@pytest.fixture()
def make_user(client, db_session: Session):
    """Sign a user in through the magic link flow and give them ``role``."""

    def _make(role: Role = Role.member, email: str | None = None) -> Actor:
        email = email or f"{role.value}+{uuid.uuid4().hex[:8]}@example.com"
        jwt = _login(client, email)

        # roles are granted directly in the db
        user = db_session.scalar(select(User).where(User.email == email.lower()))
        assert user is not None
        user.role = role
        db_session.commit()
        return Actor(user.id, email.lower(), role, _auth(jwt))

    return _make

@pytest.fixture()
def admin(make_user) -> Actor:
    return make_user(Role.admin)

@pytest.fixture()
def manager(make_user) -> Actor:
    return make_user(Role.manager)

@pytest.fixture()
def member(make_user) -> Actor:
    return make_user(Role.member)

@pytest.fixture()
def project(client, manager, member) -> dict:
    r = client.post(
        "/projects",
        json={"name": "apollo", "members": [str(member.id)]},
        headers=manager.headers,
    )
    assert r.status_code == 200, r.text
    return r.json()
