"""Upload lifecycle endpoint tests."""

from __future__ import annotations

import pytest

from tests.unit.routers.conftest import get_balance, start_task, start_task_id


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@pytest.mark.unit
async def test_create_upload_starts_validating(client, alice):
    user, headers = alice
    response = await start_task(client, headers, "1")
    assert response.status_code == 200

    data = response.json()
    assert data["reward"] == 0
    assert data["newBalance"] == 0
    upload = data["upload"]
    assert upload["status"] == "validating"
    assert upload["userId"] == user["id"]
    assert upload["taskId"] == "1"
    assert upload["fileUrl"] is None
    assert upload["id"].startswith("up-")


@pytest.mark.unit
async def test_create_upload_requires_session(client):
    response = await client.post("/api/uploads", json={"taskId": "1"})
    assert response.status_code == 401


@pytest.mark.unit
async def test_create_upload_unknown_task_returns_404(client, alice):
    _user, headers = alice
    response = await start_task(client, headers, "does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"] == "TASK_NOT_FOUND"


@pytest.mark.unit
async def test_create_upload_missing_task_id_returns_400(client, alice):
    _user, headers = alice
    response = await client.post("/api/uploads", json={}, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_PAYLOAD"


@pytest.mark.unit
async def test_second_upload_while_pending_is_rejected(client, alice):
    _user, headers = alice
    await start_task_id(client, headers, "1")

    response = await start_task(client, headers, "1")
    assert response.status_code == 400
    assert response.json()["error"] == "PENDING_UPLOAD_EXISTS"
    assert response.json()["message"] == "You have a pending upload for this task"


@pytest.mark.unit
async def test_upload_after_approval_is_rejected(client, alice, admin):
    _user, headers = alice
    _admin_user, admin_headers = admin
    upload_id = await start_task_id(client, headers, "1")
    await client.post(f"/api/uploads/{upload_id}/validate", headers=admin_headers)

    response = await start_task(client, headers, "1")
    assert response.status_code == 400
    assert response.json()["error"] == "TASK_ALREADY_COMPLETED"
    assert response.json()["message"] == "Task already completed"


@pytest.mark.unit
async def test_upload_allowed_again_after_rejection(client, alice, admin):
    _user, headers = alice
    _admin_user, admin_headers = admin
    upload_id = await start_task_id(client, headers, "1")
    await client.post(f"/api/uploads/{upload_id}/reject", headers=admin_headers)

    response = await start_task(client, headers, "1")
    assert response.status_code == 200


@pytest.mark.unit
async def test_different_users_can_start_same_task(client, alice, bob):
    _alice_user, alice_headers = alice
    _bob_user, bob_headers = bob
    assert (await start_task(client, alice_headers, "1")).status_code == 200
    assert (await start_task(client, bob_headers, "1")).status_code == 200


# ---------------------------------------------------------------------------
# Validate
# ---------------------------------------------------------------------------


@pytest.mark.unit
async def test_validate_credits_reward_exactly_once(client, alice, admin):
    _user, headers = alice
    _admin_user, admin_headers = admin
    upload_id = await start_task_id(client, headers, "3")

    first = await client.post(f"/api/uploads/{upload_id}/validate", headers=admin_headers)
    assert first.status_code == 200
    assert first.json() == {"status": "approved", "reward": 150, "newBalance": 150}
    assert await get_balance(client, headers) == 150

    second = await client.post(f"/api/uploads/{upload_id}/validate", headers=admin_headers)
    assert second.status_code == 409
    assert second.json()["error"] == "INVALID_STATUS"
    assert second.json()["details"] == {"status": "approved"}
    assert await get_balance(client, headers) == 150


@pytest.mark.unit
async def test_balance_accumulates_across_tasks(client, alice, admin):
    _user, headers = alice
    _admin_user, admin_headers = admin
    for task_id in ("1", "5"):
        upload_id = await start_task_id(client, headers, task_id)
        await client.post(f"/api/uploads/{upload_id}/validate", headers=admin_headers)

    assert await get_balance(client, headers) == 300


@pytest.mark.unit
async def test_validate_by_non_admin_is_forbidden(client, alice):
    _user, headers = alice
    upload_id = await start_task_id(client, headers, "1")

    response = await client.post(f"/api/uploads/{upload_id}/validate", headers=headers)
    assert response.status_code == 403
    assert response.json()["error"] == "FORBIDDEN"
    assert await get_balance(client, headers) == 0


@pytest.mark.unit
async def test_validate_requires_session(client, alice):
    _user, headers = alice
    upload_id = await start_task_id(client, headers, "1")

    response = await client.post(f"/api/uploads/{upload_id}/validate")
    assert response.status_code == 401


@pytest.mark.unit
async def test_validate_unknown_upload_returns_404(client, admin):
    _admin_user, admin_headers = admin
    response = await client.post("/api/uploads/up-missing/validate", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "UPLOAD_NOT_FOUND"


# ---------------------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------------------


@pytest.mark.unit
async def test_cancel_own_upload(client, alice):
    _user, headers = alice
    upload_id = await start_task_id(client, headers, "1")

    response = await client.post(f"/api/uploads/{upload_id}/cancel", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"status": "cancelled"}
    assert await get_balance(client, headers) == 0

    again = await start_task(client, headers, "1")
    assert again.status_code == 200


@pytest.mark.unit
async def test_cancel_by_non_owner_is_forbidden(client, alice, bob):
    _alice_user, alice_headers = alice
    _bob_user, bob_headers = bob
    upload_id = await start_task_id(client, alice_headers, "1")

    response = await client.post(f"/api/uploads/{upload_id}/cancel", headers=bob_headers)
    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized"


@pytest.mark.unit
async def test_cancel_after_approval_conflicts(client, alice, admin):
    _user, headers = alice
    _admin_user, admin_headers = admin
    upload_id = await start_task_id(client, headers, "1")
    await client.post(f"/api/uploads/{upload_id}/validate", headers=admin_headers)

    response = await client.post(f"/api/uploads/{upload_id}/cancel", headers=headers)
    assert response.status_code == 409
    assert await get_balance(client, headers) == 100


@pytest.mark.unit
async def test_cancel_unknown_upload_returns_404(client, alice):
    _user, headers = alice
    response = await client.post("/api/uploads/up-missing/cancel", headers=headers)
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Reject
# ---------------------------------------------------------------------------


@pytest.mark.unit
async def test_reject_leaves_balance_unchanged(client, alice, admin):
    _user, headers = alice
    _admin_user, admin_headers = admin
    upload_id = await start_task_id(client, headers, "5")

    response = await client.post(f"/api/uploads/{upload_id}/reject", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"status": "rejected"}

    again = await client.post(f"/api/uploads/{upload_id}/reject", headers=admin_headers)
    assert again.status_code == 409
    assert await get_balance(client, headers) == 0


@pytest.mark.unit
async def test_validate_after_reject_conflicts(client, alice, admin):
    _user, headers = alice
    _admin_user, admin_headers = admin
    upload_id = await start_task_id(client, headers, "1")
    await client.post(f"/api/uploads/{upload_id}/reject", headers=admin_headers)

    response = await client.post(f"/api/uploads/{upload_id}/validate", headers=admin_headers)
    assert response.status_code == 409
    assert await get_balance(client, headers) == 0


@pytest.mark.unit
async def test_reject_by_non_admin_is_forbidden(client, alice):
    _user, headers = alice
    upload_id = await start_task_id(client, headers, "1")

    response = await client.post(f"/api/uploads/{upload_id}/reject", headers=headers)
    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@pytest.mark.unit
async def test_my_uploads_lists_only_callers_uploads_newest_first(client, alice, bob):
    _alice_user, alice_headers = alice
    _bob_user, bob_headers = bob
    first = await start_task_id(client, alice_headers, "1")
    second = await start_task_id(client, alice_headers, "3")
    await start_task_id(client, bob_headers, "1")

    response = await client.get("/api/uploads/me", headers=alice_headers)
    assert response.status_code == 200
    assert [upload["id"] for upload in response.json()] == [second, first]


@pytest.mark.unit
async def test_my_uploads_requires_session(client):
    response = await client.get("/api/uploads/me")
    assert response.status_code == 401


@pytest.mark.unit
async def test_admin_listing_includes_username_and_task_title(client, alice, admin):
    _user, headers = alice
    _admin_user, admin_headers = admin
    upload_id = await start_task_id(client, headers, "3")

    response = await client.get("/api/admin/uploads", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert set(data[0].keys()) == {"id", "uploadedAt", "username", "taskTitle", "fileUrl", "status"}
    assert data[0]["id"] == upload_id
    assert data[0]["username"] == "alice"
    assert data[0]["taskTitle"] == "Sort Recycling"
    assert data[0]["status"] == "validating"


@pytest.mark.unit
async def test_admin_listing_forbidden_for_regular_user(client, alice):
    _user, headers = alice
    response = await client.get("/api/admin/uploads", headers=headers)
    assert response.status_code == 403
