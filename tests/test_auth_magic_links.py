from datetime import timedelta

from sqlalchemy import select

from teamboard.auth.tokens import decode_access_token, hash_magic_token, now_utc
from teamboard.config import settings
from teamboard.models.auth_magic_link import AuthMagicLink
from teamboard.models.enums import Role
from teamboard.models.user import User

def _request_magic_token(client, email: str = "magiclink@example.com") -> str:
    r = client.post("/auth/request-link", json={"email": email})
    assert r.status_code == 200, r.text
    token = r.json().get("token")
    assert token, "expected token to be returned in non-prod env"
    return token

def test_magic_link_cannot_be_reused(client):
    token = _request_magic_token(client)

    r1 = client.post("/auth/redeem", json={"token": token})
    assert r1.status_code == 200, r1.text
    assert "access_token" in r1.json()

    r2 = client.post("/auth/redeem", json={"token": token})
    assert r2.status_code == 400, r2.text
    assert "used" in r2.json()["detail"].lower()

def test_magic_link_expires(client, db_session):
    token = _request_magic_token(client)
    token_hash = hash_magic_token(token)

    row = db_session.get(AuthMagicLink, token_hash)
    assert row is not None
    row.expires_at = now_utc() - timedelta(seconds=1)
    db_session.add(row)
    db_session.commit()

    r = client.post("/auth/redeem", json={"token": token})
    assert r.status_code == 400, r.text
    assert "expired" in r.json()["detail"].lower()

def test_unknown_token_rejected(client):
    r = client.post("/auth/redeem", json={"token": "not-a-real-token"})
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid token"

def test_new_users_start_as_members(client, db_session):
    token = _request_magic_token(client, "Newcomer@Example.com")
    r = client.post("/auth/redeem", json={"token": token})
    assert r.status_code == 200

    user = db_session.scalar(select(User).where(User.email == "newcomer@example.com"))
    assert user is not None
    assert user.role == Role.member

    claims = decode_access_token(r.json()["access_token"])
    assert claims["sub"] == str(user.id)
    assert claims["role"] == "member"

def test_bootstrap_admin_is_promoted(client, db_session, monkeypatch):
    monkeypatch.setattr(settings, "bootstrap_admin_email", "root@example.com")
    _request_magic_token(client, "root@example.com")

    user = db_session.scalar(select(User).where(User.email == "root@example.com"))
    assert user.role == Role.admin

def test_protected_routes_require_token(client):
    assert client.get("/users/me").status_code == 401
    r = client.get("/users/me", headers={"authorization": "bearer garbage"})
    assert r.status_code == 401
