import pytest

from teamboard.models.enums import Role

# (role, allowed) per operation under the default permission map
SWEEP = {
    "create_project": {Role.admin: True, Role.manager: True, Role.member: False},
    "update_project": {Role.admin: True, Role.manager: True, Role.member: False},
    "change_project_status": {Role.admin: True, Role.manager: True, Role.member: False},
    "assign_project": {Role.admin: True, Role.manager: True, Role.member: False},
    "delete_project": {Role.admin: True, Role.manager: False, Role.member: False},
    "create_task": {Role.admin: True, Role.manager: True, Role.member: False},
    "update_task_status": {Role.admin: True, Role.manager: True, Role.member: True},
    "delete_task": {Role.admin: True, Role.manager: True, Role.member: False},
    "view_reports": {Role.admin: True, Role.manager: True, Role.member: False},
    "view_team_workload": {Role.admin: True, Role.manager: True, Role.member: False},
    "manage_users": {Role.admin: True, Role.manager: False, Role.member: False},
}

def _do(client, op: str, actor, project_id: str, task_id: str) -> int:
    h = actor.headers
    if op == "create_project":
        return client.post("/projects", json={"name": "sweep"}, headers=h).status_code
    if op == "update_project":
        return client.patch(f"/projects/{project_id}", json={"name": "renamed"}, headers=h).status_code
    if op == "change_project_status":
        return client.patch(f"/projects/{project_id}", json={"status": "Active"}, headers=h).status_code
    if op == "assign_project":
        return client.put(f"/projects/{project_id}/members", json={"members": [str(actor.id)]}, headers=h).status_code
    if op == "delete_project":
        return client.delete(f"/projects/{project_id}", headers=h).status_code
    if op == "create_task":
        return client.post(f"/projects/{project_id}/tasks", json={"title": "t"}, headers=h).status_code
    if op == "update_task_status":
        url = f"/projects/{project_id}/tasks/{task_id}"
        return client.patch(url, json={"status": "review"}, headers=h).status_code
    if op == "delete_task":
        return client.delete(f"/projects/{project_id}/tasks/{task_id}", headers=h).status_code
    if op == "view_reports":
        return client.get("/reports/tracker", headers=h).status_code
    if op == "view_team_workload":
        return client.get("/reports/workload", headers=h).status_code
    if op == "manage_users":
        return client.post("/users", json={"email": "swept@example.com"}, headers=h).status_code
    raise AssertionError(f"no request for {op}")

@pytest.mark.parametrize("op", sorted(SWEEP))
@pytest.mark.parametrize("role", [Role.admin, Role.manager, Role.member])
def test_default_permission_sweep(client, make_user, op, role):
    owner = make_user(Role.admin)
    actor = make_user(role)

    # actor is on the project so visibility never masks the capability check
    r = client.post("/projects", json={"name": "swept", "members": [str(actor.id)]}, headers=owner.headers)
    assert r.status_code == 200, r.text
    project_id = r.json()["id"]
    r = client.post(f"/projects/{project_id}/tasks", json={"title": "t"}, headers=owner.headers)
    assert r.status_code == 200, r.text
    task_id = r.json()["id"]

    status = _do(client, op, actor, project_id, task_id)
    if SWEEP[op][role]:
        assert status == 200, f"{role.value} should be allowed {op}"
    else:
        assert status == 403, f"{role.value} should be refused {op}"

@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/projects"),
        ("get", "/permissions"),
        ("put", "/permissions"),
        ("get", "/tasks/mine"),
        ("get", "/notes"),
        ("get", "/reports/dashboard"),
    ],
)
def test_anonymous_requests_rejected(client, method, path):
    r = client.request(method, path, json={})
    assert r.status_code == 401
