from sqlalchemy import select

from teamboard.models.enums import Role
from teamboard.models.project import ProjectMember

def test_me_and_profile_update(client, member):
    r = client.get("/users/me", headers=member.headers)
    assert r.status_code == 200
    assert r.json()["email"] == member.email
    assert r.json()["role"] == "member"

    r = client.patch("/users/me", json={"name": "Ada", "phone_number": "555-0100"}, headers=member.headers)
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Ada"
    assert r.json()["phone_number"] == "555-0100"

def test_only_admin_changes_roles(client, admin, manager, member):
    r = client.patch(f"/users/{member.id}", json={"role": "manager"}, headers=manager.headers)
    assert r.status_code == 403

    # not even for themselves
    r = client.patch(f"/users/{member.id}", json={"role": "admin"}, headers=member.headers)
    assert r.status_code == 403

    r = client.patch(f"/users/{member.id}", json={"role": "manager"}, headers=admin.headers)
    assert r.status_code == 200
    assert r.json()["role"] == "manager"

    # the new role governs the next request
    r = client.post("/projects", json={"name": "promoted"}, headers=member.headers)
    assert r.status_code == 200

def test_admin_creates_users(client, admin, manager):
    r = client.post("/users", json={"email": "Lead@Example.com", "name": "Lead", "role": "manager"}, headers=admin.headers)
    assert r.status_code == 200, r.text
    assert r.json()["email"] == "lead@example.com"
    assert r.json()["role"] == "manager"

    r = client.post("/users", json={"email": "lead@example.com"}, headers=admin.headers)
    assert r.status_code == 409

    # manage_users is admin-only by default
    r = client.post("/users", json={"email": "x@example.com"}, headers=manager.headers)
    assert r.status_code == 403

def test_list_users(client, admin, member):
    r = client.get("/users", headers=member.headers)
    assert r.status_code == 200
    assert {u["email"] for u in r.json()} >= {admin.email, member.email}

def test_delete_user(client, admin, project, manager, member, db_session):
    task = client.post(
        f"/projects/{project['id']}/tasks",
        json={"title": "handoff", "assigned_to": str(member.id)},
        headers=manager.headers,
    ).json()

    r = client.delete(f"/users/{member.id}", headers=admin.headers)
    assert r.status_code == 200

    r = client.get(f"/projects/{project['id']}/tasks", headers=manager.headers)
    assert [t["assigned_to"] for t in r.json() if t["id"] == task["id"]] == [None]
    assert db_session.scalar(select(ProjectMember).where(ProjectMember.user_id == member.id)) is None

    # their token no longer resolves
    assert client.get("/users/me", headers=member.headers).status_code == 401

def test_cannot_delete_self(client, admin):
    r = client.delete(f"/users/{admin.id}", headers=admin.headers)
    assert r.status_code == 400

def test_non_admin_cannot_delete_admin(client, admin, make_user):
    r = client.put("/permissions", json={"role_permissions": {"manager": ["manage_users"]}}, headers=admin.headers)
    assert r.status_code == 200

    manager = make_user(Role.manager)
    r = client.delete(f"/users/{admin.id}", headers=manager.headers)
    assert r.status_code == 403
