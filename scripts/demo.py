from __future__ import annotations

import os
import time
from concurrent.futures import ThreadPoolExecutor

import requests
from rich import print
from sqlalchemy import select

from teamboard.db import SessionLocal
from teamboard.models.enums import Role
from teamboard.models.user import User

BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

def _headers(jwt: str | None) -> dict[str, str]:
    headers = {"content-type": "application/json"}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return headers

def post(path: str, *, jwt: str | None = None, json: dict | None = None) -> requests.Response:
    return requests.post(f"{BASE}{path}", headers=_headers(jwt), json=json, timeout=10)

def put(path: str, *, jwt: str | None = None, json: dict | None = None) -> requests.Response:
    return requests.put(f"{BASE}{path}", headers=_headers(jwt), json=json, timeout=10)

def get(path: str, *, jwt: str | None = None) -> requests.Response:
    return requests.get(f"{BASE}{path}", headers=_headers(jwt), timeout=10)

def login(email: str) -> str:
    r = post("/auth/request-link", json={"email": email})
    r.raise_for_status()
    token = r.json()["token"]

    r2 = post("/auth/redeem", json={"token": token})
    r2.raise_for_status()
    return r2.json()["access_token"]

def set_role(email: str, role: Role) -> None:
    with SessionLocal() as db:
        user = db.scalar(select(User).where(User.email == email))
        if not user:
            raise RuntimeError("user not found")
        user.role = role
        db.commit()

def wait_ready(timeout_s: float = 30.0) -> None:
    deadline = time.time() + timeout_s
    last_err: Exception | None = None

    while time.time() < deadline:
        try:
            r = get("/ready")
            if r.status_code == 200:
                return
        except requests.RequestException as e:
            last_err = e
        time.sleep(0.5)

    if last_err:
        raise RuntimeError(f"api not ready after {timeout_s}s (last error: {last_err})")
    raise RuntimeError(f"api not ready after {timeout_s}s")

def main() -> None:
    print("[bold]demo: auth -> project -> concurrent tasks -> permission change[/bold]")

    wait_ready()
    print("[green]ready ok[/green]")

    admin_email = "admin@example.com"
    manager_email = "manager@example.com"
    member_email = "member@example.com"

    # sign everyone up, then grant roles directly
    login(admin_email)
    login(manager_email)
    member_jwt = login(member_email)
    set_role(admin_email, Role.admin)
    set_role(manager_email, Role.manager)
    admin_jwt = login(admin_email)
    manager_jwt = login(manager_email)
    print("users authed")

    r = get("/users/me", jwt=member_jwt)
    r.raise_for_status()
    member_id = r.json()["id"]

    r = post("/projects", jwt=manager_jwt, json={"name": f"demo project {int(time.time())}", "members": [member_id]})
    r.raise_for_status()
    project_id = r.json()["id"]
    print("created project:", project_id)

    # parallel creators still get distinct, gapless numbers
    def _create(i: int) -> str:
        r = post(f"/projects/{project_id}/tasks", jwt=manager_jwt, json={"title": f"demo task {i}"})
        r.raise_for_status()
        return r.json()["custom_id"]

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = sorted(pool.map(_create, range(8)))
    print("created tasks:", ", ".join(ids))

    r = post(f"/projects/{project_id}/tasks", jwt=member_jwt, json={"title": "member task"})
    print("member create_task before grant:", r.status_code)

    r = get("/permissions", jwt=admin_jwt)
    r.raise_for_status()
    role_permissions = r.json()["role_permissions"]
    role_permissions["member"] = sorted({*role_permissions.get("member", []), "create_task"})
    r = put("/permissions", jwt=admin_jwt, json={"role_permissions": role_permissions})
    r.raise_for_status()
    print("permissions now at version", r.json()["version"])

    r = post(f"/projects/{project_id}/tasks", jwt=member_jwt, json={"title": "member task"})
    r.raise_for_status()
    print("member create_task after grant:", r.json()["custom_id"])
    print("[bold green]demo complete[/bold green]")

if __name__ == "__main__":
    main()
