# tests/v1/admin/test_members.py

from datetime import datetime, timedelta

from httpx import AsyncClient

from invite_rewards.services.auth import create_access_token

T0 = datetime(2024, 1, 1, 12, 0, 0)


async def test_admin_login(client: AsyncClient, mocker):
    mocker.patch("invite_rewards.services.auth.settings.ADMIN_USERNAME", "root")
    mocker.patch("invite_rewards.services.auth.settings.ADMIN_PASSWORD", "s3cret")

    bad = await client.post("/api/v1/auth/admin/login", json={"username": "root", "password": "nope"})
    good = await client.post("/api/v1/auth/admin/login", json={"username": "root", "password": "s3cret"})

    assert bad.status_code == 401
    assert good.status_code == 200
    token = good.json()["access_token"]
    response = await client.get("/api/v1/admin/members", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


async def test_admin_endpoints_require_admin_token(client: AsyncClient):
    no_token = await client.get("/api/v1/admin/members")
    assert no_token.status_code in (401, 403)

    garbage = await client.get("/api/v1/admin/members", headers={"Authorization": "Bearer garbage"})
    assert garbage.status_code == 401

    user_token = create_access_token({"sub": "someone", "role": "user"})
    forbidden = await client.get("/api/v1/admin/members", headers={"Authorization": f"Bearer {user_token}"})
    assert forbidden.status_code == 403


async def test_members_list_filters_and_search(client: AsyncClient, admin_auth_headers: dict, add_member):
    add_member("Alice", created_at=T0, status="approved", invite_code_self="ALICE-1")
    add_member("Bob", created_at=T0 + timedelta(minutes=1), status="pending")
    add_member("Carol", created_at=T0 + timedelta(minutes=2), status="deleted")

    all_active = await client.get("/api/v1/admin/members", headers=admin_auth_headers)
    pending = await client.get("/api/v1/admin/members", params={"status": "pending"}, headers=admin_auth_headers)
    search = await client.get("/api/v1/admin/members", params={"q": "alice"}, headers=admin_auth_headers)

    data = all_active.json()
    assert data["total_items"] == 2
    assert [item["full_name"] for item in data["items"]] == ["Bob", "Alice"]
    assert [item["full_name"] for item in pending.json()["items"]] == ["Bob"]
    assert [item["full_name"] for item in search.json()["items"]] == ["Alice"]


async def test_member_details_with_referrals(client: AsyncClient, admin_auth_headers: dict, add_member):
    owner = add_member("Owner", created_at=T0, invite_code_self="AB12", status="approved")
    x = add_member("X", created_at=T0 + timedelta(minutes=1), referrer_id=owner.id, status="approved", invited_selected=True)
    add_member("Z", created_at=T0 + timedelta(minutes=2), referrer_id=x.id, status="approved")

    response = await client.get(f"/api/v1/admin/members/{owner.id}", headers=admin_auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["owner"]["id"] == owner.id
    assert [m["full_name"] for m in data["level1"]] == ["X"]
    assert [m["full_name"] for m in data["level2"]] == ["Z"]
    assert data["level1"][0]["invited_selected"] is True


async def test_change_status_and_conflict(client: AsyncClient, admin_auth_headers: dict, add_member):
    member = add_member("Pending", created_at=T0)

    approved = await client.post(f"/api/v1/admin/members/{member.id}/status", json={"action": "approve"}, headers=admin_auth_headers)
    again = await client.post(f"/api/v1/admin/members/{member.id}/status", json={"action": "approve"}, headers=admin_auth_headers)
    unknown = await client.post("/api/v1/admin/members/999/status", json={"action": "approve"}, headers=admin_auth_headers)
    invalid = await client.post(f"/api/v1/admin/members/{member.id}/status", json={"action": "ban"}, headers=admin_auth_headers)

    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert again.status_code == 409
    assert again.json()["code"] == "conflict"
    assert unknown.status_code == 404
    assert invalid.status_code == 422


async def test_select_member(client: AsyncClient, admin_auth_headers: dict, add_member, sql_directory):
    member = add_member("Member", created_at=T0, status="approved")

    response = await client.post(f"/api/v1/admin/members/{member.id}/select", json={"selected": True}, headers=admin_auth_headers)
    missing = await client.post("/api/v1/admin/members/999/select", json={"selected": True}, headers=admin_auth_headers)

    assert response.status_code == 200
    assert response.json() == {"id": member.id, "ok": True, "selected": True, "error": None}
    assert (await sql_directory.get(member.id)).invited_selected is True
    assert missing.status_code == 502
    assert missing.json()["ok"] is False
    assert missing.json()["selected"] is False


async def test_batch_action_partial_success(client: AsyncClient, admin_auth_headers: dict, add_member):
    a = add_member("A", created_at=T0)
    b = add_member("B", created_at=T0)

    full = await client.post("/api/v1/admin/members/batch", json={"ids": [a.id], "action": "approve"}, headers=admin_auth_headers)
    partial = await client.post("/api/v1/admin/members/batch", json={"ids": [a.id, b.id, 999], "action": "reject"}, headers=admin_auth_headers)

    assert full.status_code == 200
    assert full.json() == {"succeeded": [a.id], "failed": []}
    assert partial.status_code == 207
    data = partial.json()
    assert data["succeeded"] == [a.id, b.id]
    assert [item["id"] for item in data["failed"]] == [999]


async def test_batch_select(client: AsyncClient, admin_auth_headers: dict, add_member):
    a = add_member("A", created_at=T0, status="approved")

    response = await client.post("/api/v1/admin/members/batch-select", json={"ids": [a.id, 999], "selected": True}, headers=admin_auth_headers)
    empty = await client.post("/api/v1/admin/members/batch-select", json={"ids": [], "selected": True}, headers=admin_auth_headers)

    assert response.status_code == 207
    assert response.json()["succeeded"] == [a.id]
    assert empty.status_code == 422


async def test_purge_member(client: AsyncClient, admin_auth_headers: dict, add_member):
    active = add_member("Active", created_at=T0, status="approved")
    gone = add_member("Gone", created_at=T0, status="deleted")

    refused = await client.delete(f"/api/v1/admin/members/{active.id}", headers=admin_auth_headers)
    purged = await client.delete(f"/api/v1/admin/members/{gone.id}", headers=admin_auth_headers)
    listing = await client.get("/api/v1/admin/members", params={"status": "deleted"}, headers=admin_auth_headers)

    assert refused.status_code == 409
    assert purged.status_code == 204
    assert listing.json()["total_items"] == 0
