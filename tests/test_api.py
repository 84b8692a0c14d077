"""
HTTP surface: authentication, status-code mapping and the main flows.
"""

import pytest


@pytest.fixture
async def community_id(client, auth_headers, alice):
    resp = await client.post(
        "/communities",
        json={"name": "Pythonistas", "description": "We write a lot of Python"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 201
    return resp.json()["id"]


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_anonymous_is_unauthorized(client):
    resp = await client.post("/communities", json={"name": "Nope", "description": "No token given"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"


async def test_garbage_token_is_unauthorized(client):
    resp = await client.get("/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


async def test_dev_login_sets_cookie(client):
    resp = await client.post("/auth/dev-login", json={"email": "eve@example.com", "full_name": "Eve"})
    assert resp.status_code == 200
    assert resp.json()["access_token"]
    assert "access_token" in resp.cookies

    me = await client.get("/users/me")
    assert me.status_code == 200
    assert me.json()["email"] == "eve@example.com"

    # Logging in again reuses the same user
    again = await client.post("/auth/dev-login", json={"email": "eve@example.com", "full_name": "Eve"})
    assert again.status_code == 200
    assert (await client.get("/users/me")).json()["id"] == me.json()["id"]


async def test_create_and_read_community(client, auth_headers, alice, community_id):
    resp = await client.get(f"/communities/{community_id}", headers=auth_headers(alice))
    assert resp.status_code == 200
    body = resp.json()
    assert body["name"] == "Pythonistas"
    assert body["member_count"] == 1
    assert body["role"] == "OWNER"


async def test_create_rejects_short_name(client, auth_headers, alice):
    resp = await client.post(
        "/communities",
        json={"name": "Py", "description": "We write a lot of Python"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 422


async def test_missing_community_is_404(client, auth_headers, alice):
    resp = await client.get("/communities/999", headers=auth_headers(alice))
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Community not found", "error": "NotFound"}


async def test_join_twice_is_409(client, auth_headers, bob, community_id):
    first = await client.post(f"/communities/{community_id}/join", headers=auth_headers(bob))
    assert first.status_code == 201
    assert first.json()["role"] == "VIEWER"

    second = await client.post(f"/communities/{community_id}/join", headers=auth_headers(bob))
    assert second.status_code == 409
    assert second.json()["error"] == "Conflict"


async def test_private_join_flow(client, auth_headers, alice, bob):
    resp = await client.post(
        "/communities",
        json={"name": "Hidden", "description": "Invite only space here", "is_private": True},
        headers=auth_headers(alice),
    )
    cid = resp.json()["id"]

    denied = await client.post(f"/communities/{cid}/join", headers=auth_headers(bob))
    assert denied.status_code == 403
    assert denied.json()["error"] == "Forbidden"

    invite = await client.post(f"/communities/{cid}/invite", headers=auth_headers(alice))
    assert invite.status_code == 201
    token = invite.json()["token"]
    assert invite.json()["invite_link"].endswith(token)

    joined = await client.post(f"/communities/invites/{token}/join", headers=auth_headers(bob))
    assert joined.status_code == 201
    assert joined.json()["community_id"] == cid


async def test_members_hidden_from_non_members(client, auth_headers, bob, community_id):
    resp = await client.get(f"/communities/{community_id}/members", headers=auth_headers(bob))
    assert resp.status_code == 403


async def test_role_change_and_last_admin(client, auth_headers, alice, bob, community_id):
    await client.post(f"/communities/{community_id}/join", headers=auth_headers(bob))

    promoted = await client.put(
        f"/communities/{community_id}/members/{bob.user_id}/role",
        json={"role": "ADMIN"},
        headers=auth_headers(alice),
    )
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "ADMIN"

    demote_owner = await client.put(
        f"/communities/{community_id}/members/{alice.user_id}/role",
        json={"role": "VIEWER"},
        headers=auth_headers(bob),
    )
    assert demote_owner.status_code == 403

    leave = await client.post(f"/communities/{community_id}/leave", headers=auth_headers(bob))
    assert leave.status_code == 409
    assert leave.json()["detail"] == "Cannot leave as the last admin"

    members = await client.get(f"/communities/{community_id}/members", headers=auth_headers(bob))
    assert members.json()["total"] == 2


async def test_invalid_role_is_422(client, auth_headers, alice, bob, community_id):
    await client.post(f"/communities/{community_id}/join", headers=auth_headers(bob))
    resp = await client.put(
        f"/communities/{community_id}/members/{bob.user_id}/role",
        json={"role": "EMPEROR"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 422


async def test_owner_leave_deletes_community(client, auth_headers, alice, community_id):
    resp = await client.post(f"/communities/{community_id}/leave", headers=auth_headers(alice))
    assert resp.status_code == 200
    assert resp.json()["community_deleted"] is True

    gone = await client.get(f"/communities/{community_id}", headers=auth_headers(alice))
    assert gone.status_code == 404


async def test_browse_and_mine(client, auth_headers, alice, bob, community_id):
    await client.post(
        "/communities",
        json={"name": "Gophers", "description": "Go enthusiasts meet here"},
        headers=auth_headers(bob),
    )

    everything = await client.get("/communities", params={"sort_by": "name", "sort_order": "asc"})
    assert [c["name"] for c in everything.json()["communities"]] == ["Gophers", "Pythonistas"]

    searched = await client.get("/communities", params={"search": "python"})
    assert searched.json()["total"] == 1

    mine = await client.get("/communities/mine", headers=auth_headers(bob))
    assert [c["role"] for c in mine.json()["communities"]] == ["OWNER"]


async def test_delete_community(client, auth_headers, alice, bob, community_id):
    await client.post(f"/communities/{community_id}/join", headers=auth_headers(bob))
    forbidden = await client.delete(f"/communities/{community_id}", headers=auth_headers(bob))
    assert forbidden.status_code == 403

    resp = await client.delete(f"/communities/{community_id}", headers=auth_headers(alice))
    assert resp.status_code == 204
    again = await client.delete(f"/communities/{community_id}", headers=auth_headers(alice))
    assert again.status_code == 404


async def test_project_and_task_routes(client, auth_headers, alice, bob, community_id):
    await client.post(f"/communities/{community_id}/join", headers=auth_headers(bob))

    denied = await client.post(
        f"/communities/{community_id}/projects", json={"name": "Nope"}, headers=auth_headers(bob)
    )
    assert denied.status_code == 403

    project = await client.post(
        f"/communities/{community_id}/projects", json={"name": "Website"}, headers=auth_headers(alice)
    )
    assert project.status_code == 201
    project_id = project.json()["id"]

    task = await client.post(
        f"/communities/{community_id}/tasks",
        json={"title": "Landing page", "project_id": project_id},
        headers=auth_headers(bob),
    )
    assert task.status_code == 201
    task_id = task.json()["id"]
    assert task.json()["status"] == "TODO"

    assigned = await client.put(
        f"/communities/{community_id}/tasks/{task_id}/assign",
        json={"assigned_to": bob.user_id},
        headers=auth_headers(alice),
    )
    assert assigned.json()["assigned_to"] == bob.user_id

    listed = await client.get(
        f"/communities/{community_id}/tasks", params={"status": "TODO"}, headers=auth_headers(bob)
    )
    assert listed.json()["total"] == 1

    deleted = await client.delete(
        f"/communities/{community_id}/projects/{project_id}", headers=auth_headers(alice)
    )
    assert deleted.status_code == 204
    assert (await client.get(f"/communities/{community_id}/tasks", headers=auth_headers(bob))).json()["total"] == 0


async def test_signup_login_and_me(client):
    signup = await client.post(
        "/auth/signup",
        json={"email": "frank@example.com", "full_name": "Frank", "password": "s3cret-pass"},
    )
    assert signup.status_code == 201
    assert signup.json()["email"] == "frank@example.com"
    assert "password_hash" not in signup.json()
    assert "access_token" in signup.cookies

    me = await client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["id"] == signup.json()["id"]

    await client.post("/auth/logout")
    client.cookies.clear()
    assert (await client.get("/auth/me")).status_code == 401

    login = await client.post("/auth/login", json={"email": "frank@example.com", "password": "s3cret-pass"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "frank@example.com"


async def test_login_rejects_bad_credentials(client):
    await client.post(
        "/auth/signup",
        json={"email": "gina@example.com", "full_name": "Gina", "password": "right-password"},
    )
    client.cookies.clear()

    wrong = await client.post("/auth/login", json={"email": "gina@example.com", "password": "wrong-password"})
    assert wrong.status_code == 400
    assert wrong.json()["detail"] == "Invalid email or password"
    assert "access_token" not in wrong.cookies

    unknown = await client.post("/auth/login", json={"email": "nobody@example.com", "password": "whatever"})
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "Invalid email or password"


async def test_signup_rejects_duplicate_email(client):
    payload = {"email": "hank@example.com", "full_name": "Hank", "password": "first-pass"}
    assert (await client.post("/auth/signup", json=payload)).status_code == 201

    again = await client.post("/auth/signup", json=payload)
    assert again.status_code == 400
    assert again.json()["detail"] == "Email already exists"


async def test_passwordless_account_cannot_login(client, alice):
    resp = await client.post("/auth/login", json={"email": "alice@example.com", "password": "anything"})
    assert resp.status_code == 400


async def test_community_detail_is_public(client, auth_headers, bob, community_id):
    anonymous = await client.get(f"/communities/{community_id}")
    assert anonymous.status_code == 200
    assert anonymous.json()["name"] == "Pythonistas"
    assert anonymous.json()["role"] is None

    outsider = await client.get(f"/communities/{community_id}", headers=auth_headers(bob))
    assert outsider.json()["role"] is None

    await client.post(f"/communities/{community_id}/join", headers=auth_headers(bob))
    member = await client.get(f"/communities/{community_id}", headers=auth_headers(bob))
    assert member.json()["role"] == "VIEWER"
