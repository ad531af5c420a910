from teamboard.models.enums import Role

def test_rbac_projects_and_tasks(client, admin, manager, member):
    # manager can create project
    r = client.post("/projects", json={"name": "p-manager", "members": [str(member.id)]}, headers=manager.headers)
    assert r.status_code == 200
    project_id = r.json()["id"]

    # admin can create project
    r = client.post("/projects", json={"name": "p-admin"}, headers=admin.headers)
    assert r.status_code == 200

    # member cannot create project
    r = client.post("/projects", json={"name": "p-member"}, headers=member.headers)
    assert r.status_code == 403

    # manager can create task
    r = client.post(f"/projects/{project_id}/tasks", json={"title": "t-manager"}, headers=manager.headers)
    assert r.status_code == 200
    task_id = r.json()["id"]

    # member cannot delete task
    r = client.delete(f"/projects/{project_id}/tasks/{task_id}", headers=member.headers)
    assert r.status_code == 403

    # manager cannot delete project, admin can
    r = client.delete(f"/projects/{project_id}", headers=manager.headers)
    assert r.status_code == 403
    r = client.delete(f"/projects/{project_id}", headers=admin.headers)
    assert r.status_code == 200

def test_project_visibility(client, project, manager, member, make_user):
    outsider = make_user(Role.member)

    r = client.get("/projects", headers=member.headers)
    assert [p["id"] for p in r.json()] == [project["id"]]

    r = client.get("/projects", headers=outsider.headers)
    assert r.json() == []
    assert client.get(f"/projects/{project['id']}", headers=outsider.headers).status_code == 404

    # view_all_projects
    other = client.post("/projects", json={"name": "other"}, headers=make_user(Role.manager).headers).json()
    r = client.get("/projects", headers=manager.headers)
    assert {p["id"] for p in r.json()} == {project["id"], other["id"]}

def test_project_creator_manages_and_joins(client, project, manager, member):
    assert project["manager_id"] == str(manager.id)
    assert set(project["member_ids"]) == {str(manager.id), str(member.id)}
    assert project["status"] == "Planning"
    assert project["task_counter"] == 0

def test_project_status_and_details(client, project, manager, member):
    url = f"/projects/{project['id']}"

    r = client.patch(url, json={"status": "Active", "description": "launch"}, headers=manager.headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "Active"
    assert r.json()["description"] == "launch"

    assert client.patch(url, json={"status": "Completed"}, headers=member.headers).status_code == 403
    assert client.patch(url, json={"name": "renamed"}, headers=member.headers).status_code == 403

def test_status_capability_alone_allows_status_moves(client, project, admin, member):
    r = client.put(
        "/permissions",
        json={"role_permissions": {"member": ["change_project_status", "update_task_status"]}},
        headers=admin.headers,
    )
    assert r.status_code == 200

    url = f"/projects/{project['id']}"
    assert client.patch(url, json={"status": "On Hold"}, headers=member.headers).status_code == 200
    assert client.patch(url, json={"name": "renamed"}, headers=member.headers).status_code == 403

def test_set_members_keeps_manager(client, project, manager, member, make_user):
    newcomer = make_user(Role.member)

    r = client.put(
        f"/projects/{project['id']}/members",
        json={"members": [str(newcomer.id)]},
        headers=manager.headers,
    )
    assert r.status_code == 200, r.text
    assert set(r.json()["member_ids"]) == {str(manager.id), str(newcomer.id)}

    # the removed member loses sight of the project
    assert client.get(f"/projects/{project['id']}", headers=member.headers).status_code == 404
    assert client.get(f"/projects/{project['id']}", headers=newcomer.headers).status_code == 200

def test_set_members_rejects_unknown_user(client, project, manager):
    r = client.put(
        f"/projects/{project['id']}/members",
        json={"members": ["00000000-0000-0000-0000-000000000003"]},
        headers=manager.headers,
    )
    assert r.status_code == 422

def test_member_cannot_change_membership(client, project, member):
    r = client.put(f"/projects/{project['id']}/members", json={"members": []}, headers=member.headers)
    assert r.status_code == 403

def test_delete_project_removes_tasks(client, project, admin, manager):
    client.post(f"/projects/{project['id']}/tasks", json={"title": "t"}, headers=manager.headers)
    client.post(f"/projects/{project['id']}/messages", json={"text": "hi"}, headers=manager.headers)

    r = client.delete(f"/projects/{project['id']}", headers=admin.headers)
    assert r.status_code == 200
    assert client.get(f"/projects/{project['id']}", headers=admin.headers).status_code == 404
    assert client.get("/tasks/mine", headers=manager.headers).json() == []
