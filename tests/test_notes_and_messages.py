from teamboard.models.enums import Role

def test_notes_are_private(client, manager, member):
    r = client.post("/notes", json={"content": "remember the milk"}, headers=member.headers)
    assert r.status_code == 200, r.text
    note = r.json()
    assert note["title"] == "Untitled"

    assert client.get("/notes", headers=manager.headers).json() == []
    assert client.patch(f"/notes/{note['id']}", json={"title": "mine"}, headers=manager.headers).status_code == 404
    assert client.delete(f"/notes/{note['id']}", headers=manager.headers).status_code == 404

    r = client.patch(f"/notes/{note['id']}", json={"title": "groceries"}, headers=member.headers)
    assert r.status_code == 200
    assert r.json()["title"] == "groceries"
    assert r.json()["content"] == "remember the milk"

    assert client.delete(f"/notes/{note['id']}", headers=member.headers).status_code == 200
    assert client.get("/notes", headers=member.headers).json() == []

def test_project_chat(client, project, manager, member):
    url = f"/projects/{project['id']}/messages"

    assert client.post(url, json={"text": "kickoff at 10"}, headers=manager.headers).status_code == 200
    assert client.post(url, json={"text": "on my way"}, headers=member.headers).status_code == 200

    r = client.get(url, headers=member.headers)
    assert r.status_code == 200
    assert [m["text"] for m in r.json()] == ["kickoff at 10", "on my way"]
    assert r.json()[1]["sender_id"] == str(member.id)

def test_chat_limited_to_project_members(client, project, make_user):
    outsider = make_user(Role.member)
    url = f"/projects/{project['id']}/messages"

    assert client.get(url, headers=outsider.headers).status_code == 404
    assert client.post(url, json={"text": "hello?"}, headers=outsider.headers).status_code == 404

def test_empty_message_rejected(client, project, member):
    r = client.post(f"/projects/{project['id']}/messages", json={"text": ""}, headers=member.headers)
    assert r.status_code == 422
