"""Tests for the employee onboarding API.

GET /me, POST /link, GET /progress, POST /steps/{id}/complete,
GET /routes/{route} and POST /notifications/{index}/read.
"""

import pytest
import pytest_asyncio

from portal.repositories.allowlist_repository import AllowlistRepository
from portal.repositories.profile_repository import ProfileRepository
from portal.services.admin_management_service import AdminManagementService
from tests.conftest import (
    ADMIN,
    EMPLOYEE,
    EMPLOYEE_ID,
    OTHER_EMPLOYEE,
    register_admin,
    seed_allowlist,
    sign_in_as,
)

_BASE = "/api/v1/onboarding"

_SHIFT_BODY = {"shift": {"position": "Picker", "shift_code": "NIGHT-A"}}
_FOOTWEAR_BODY = {"footwear": {f"ack{i}": True for i in range(1, 6)}}
_I9_BODY = {"i9": {"ack": True}}


@pytest_asyncio.fixture
async def linked_client(client, store):
    """Client signed in as an employee who already linked EMPLOYEE_ID."""
    await seed_allowlist(store)
    sign_in_as(client, EMPLOYEE)
    response = await client.post(f"{_BASE}/link", json={"employee_id": EMPLOYEE_ID})
    assert response.status_code == 200
    return client


async def _complete(client, step_id: str, body: dict | None = None):
    return await client.post(f"{_BASE}/steps/{step_id}/complete", json=body)


# =============================================================================
# GET /me
# =============================================================================


class TestOnboardingView:
    async def test_first_visit_bootstraps_unlinked_profile(self, client, store):
        sign_in_as(client, EMPLOYEE)

        response = await client.get(f"{_BASE}/me")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["principal_id"] == EMPLOYEE.id
        assert data["email"] == EMPLOYEE.email
        assert data["employee_id"] is None
        assert data["verified"] is False
        assert data["notifications"] == []
        assert await ProfileRepository.get(store, EMPLOYEE.id) is not None

    async def test_linked_view_lists_gated_steps(self, linked_client):
        response = await linked_client.get(f"{_BASE}/me")

        data = response.json()["data"]
        assert data["employee_id"] == EMPLOYEE_ID
        assert data["verified"] is True
        assert [s["id"] for s in data["steps"]] == [
            "shift_selection",
            "footwear",
            "i9",
            "photo_badge",
            "firstday",
        ]
        assert [s["state"] for s in data["steps"]] == [
            "pending",
            "locked",
            "locked",
            "locked",
            "locked",
        ]
        assert data["progress"] == {
            "completed": 0,
            "total": 5,
            "percent": 0,
            "next_step_id": "shift_selection",
            "complete": False,
        }
        assert data["stage"] == "shift_selection"

    async def test_requires_authentication(self, client):
        response = await client.get(f"{_BASE}/me")

        assert response.status_code == 401

    async def test_admin_gets_employee_required(self, client, store):
        await register_admin(store)
        sign_in_as(client, ADMIN)

        response = await client.get(f"{_BASE}/me")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "EMPLOYEE_REQUIRED"
        assert await ProfileRepository.get(store, ADMIN.id) is None


# =============================================================================
# POST /link
# =============================================================================


class TestLink:
    async def test_link_normalizes_and_claims(self, client, store):
        await seed_allowlist(store, "SP001")
        sign_in_as(client, EMPLOYEE)

        response = await client.post(f"{_BASE}/link", json={"employee_id": "sp-001 "})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["employee_id"] == "SP001"
        assert data["already_linked"] is False
        assert data["onboarding"]["verified"] is True
        entry = await AllowlistRepository.get(store, "SP001")
        assert entry.claimed_by_principal_id == EMPLOYEE.id

    async def test_repeat_link_is_idempotent(self, linked_client):
        response = await linked_client.post(
            f"{_BASE}/link", json={"employee_id": EMPLOYEE_ID}
        )

        assert response.status_code == 200
        assert response.json()["data"]["already_linked"] is True

    async def test_linking_a_different_id_is_refused(self, linked_client, store):
        await seed_allowlist(store, "SP777")

        response = await linked_client.post(f"{_BASE}/link", json={"employee_id": "SP777"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EMPLOYEE_ID_LOCKED"

    @pytest.mark.parametrize(
        ("raw", "code", "status"),
        [
            ("hello", "INVALID_EMPLOYEE_ID", 400),
            ("SP1234567", "INVALID_EMPLOYEE_ID", 400),
            ("SP999", "EMPLOYEE_ID_NOT_FOUND", 404),
        ],
    )
    async def test_rejected_ids(self, client, raw, code, status):
        sign_in_as(client, EMPLOYEE)

        response = await client.post(f"{_BASE}/link", json={"employee_id": raw})

        assert response.status_code == status
        assert response.json()["error"]["code"] == code

    async def test_inactive_entry(self, client, store):
        await seed_allowlist(store, active=False)
        sign_in_as(client, EMPLOYEE)

        response = await client.post(f"{_BASE}/link", json={"employee_id": EMPLOYEE_ID})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "EMPLOYEE_ID_INACTIVE"

    async def test_email_mismatch(self, client, store):
        await seed_allowlist(store, email="someone.else@example.com")
        sign_in_as(client, EMPLOYEE)

        response = await client.post(f"{_BASE}/link", json={"employee_id": EMPLOYEE_ID})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "IDENTITY_MISMATCH"

    async def test_claimed_by_someone_else(self, client, store):
        await seed_allowlist(store)
        sign_in_as(client, OTHER_EMPLOYEE)
        await client.post(f"{_BASE}/link", json={"employee_id": EMPLOYEE_ID})

        sign_in_as(client, EMPLOYEE)
        response = await client.post(f"{_BASE}/link", json={"employee_id": EMPLOYEE_ID})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EMPLOYEE_ID_ALREADY_CLAIMED"
        profile = await ProfileRepository.get(store, EMPLOYEE.id)
        assert profile.employee_id is None

    async def test_body_validation(self, client):
        sign_in_as(client, EMPLOYEE)

        response = await client.post(f"{_BASE}/link", json={"employee_id": ""})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


# =============================================================================
# POST /steps/{id}/complete
# =============================================================================


class TestCompleteStep:
    async def test_shift_selection(self, linked_client):
        response = await _complete(linked_client, "shift_selection", _SHIFT_BODY)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["step_id"] == "shift_selection"
        assert data["next_step_id"] == "footwear"
        assert data["onboarding_complete"] is False
        assert data["steps"][0]["done"] is True
        assert data["steps"][1]["locked"] is False
        assert data["progress"]["completed"] == 1

        view = (await linked_client.get(f"{_BASE}/me")).json()["data"]
        assert view["shift"]["position"] == "Picker"
        assert view["shift"]["status"] == "pending"

    async def test_shift_requires_position_and_code(self, linked_client):
        response = await _complete(
            linked_client, "shift_selection", {"shift": {"position": "Picker"}}
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "STEP_REQUIREMENTS_UNMET"
        assert error["details"] == [{"missing": ["shift_code"]}]

    async def test_locked_step(self, linked_client):
        response = await _complete(linked_client, "footwear", _FOOTWEAR_BODY)

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "STEP_LOCKED"
        assert error["details"] == [{"step_id": "footwear", "blocked_by": "shift_selection"}]

    async def test_already_done(self, linked_client):
        await _complete(linked_client, "shift_selection", _SHIFT_BODY)

        response = await _complete(linked_client, "shift_selection", _SHIFT_BODY)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "STEP_ALREADY_DONE"

    async def test_unknown_step(self, linked_client):
        response = await _complete(linked_client, "payroll")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "UNKNOWN_STEP"

    async def test_photo_badge_is_left_to_administrators(self, linked_client):
        for step_id, body in (
            ("shift_selection", _SHIFT_BODY),
            ("footwear", _FOOTWEAR_BODY),
            ("i9", _I9_BODY),
        ):
            await _complete(linked_client, step_id, body)

        response = await _complete(linked_client, "badge")

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "STEP_REQUIRES_ADMIN"
        assert error["details"] == [{"step_id": "photo_badge"}]

    async def test_footwear_needs_every_acknowledgement(self, linked_client):
        await _complete(linked_client, "shift_selection", _SHIFT_BODY)

        response = await _complete(
            linked_client, "footwear", {"footwear": {"ack1": True, "ack2": True}}
        )

        assert response.status_code == 422
        assert response.json()["error"]["details"] == [{"missing": ["ack3", "ack4", "ack5"]}]

    async def test_unexpected_payload_fields_rejected(self, linked_client):
        response = await _complete(
            linked_client, "shift_selection", {"shift": {"position": "x", "approved": True}}
        )

        assert response.status_code == 400

    async def test_full_sequence_completes_onboarding(self, linked_client, store, config):
        for step_id, body in (
            ("shift_selection", _SHIFT_BODY),
            ("footwear", _FOOTWEAR_BODY),
            ("i9", _I9_BODY),
        ):
            response = await _complete(linked_client, step_id, body)
            assert response.status_code == 200, response.json()
        # Badge is handed out at orientation
        await AdminManagementService(store, config).override_step(
            EMPLOYEE_ID, "photo_badge", done=True
        )

        response = await _complete(linked_client, "first_day")
        assert response.status_code == 200, response.json()
        data = response.json()["data"]

        assert data["onboarding_complete"] is True
        assert data["next_step_id"] is None
        assert data["progress"]["percent"] == 100

        view = (await linked_client.get(f"{_BASE}/me")).json()["data"]
        assert view["stage"] == "completed"
        assert view["status"] == "active"

    async def test_unlinked_employee(self, client):
        sign_in_as(client, EMPLOYEE)

        response = await _complete(client, "shift_selection", _SHIFT_BODY)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EMPLOYEE_NOT_LINKED"


# =============================================================================
# GET /progress and GET /routes/{route}
# =============================================================================


class TestProgress:
    async def test_progress_after_one_step(self, linked_client):
        await _complete(linked_client, "shift_selection", _SHIFT_BODY)

        response = await linked_client.get(f"{_BASE}/progress")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "completed": 1,
            "total": 5,
            "percent": 20,
            "next_step_id": "footwear",
            "complete": False,
        }


class TestRoutes:
    async def test_actionable_route(self, linked_client):
        response = await linked_client.get(f"{_BASE}/routes/shift")

        data = response.json()["data"]
        assert data["route"] == "shift"
        assert data["accessible"] is True
        assert data["step"]["id"] == "shift_selection"
        assert data["redirect_to"] is None

    async def test_locked_route_redirects(self, linked_client):
        response = await linked_client.get(f"{_BASE}/routes/i9")

        data = response.json()["data"]
        assert data["accessible"] is False
        assert data["step"]["state"] == "locked"
        assert data["redirect_to"] == "shift"

    async def test_legacy_alias(self, linked_client):
        response = await linked_client.get(f"{_BASE}/routes/documents")

        assert response.json()["data"]["route"] == "photo_badge"

    async def test_progress_route(self, linked_client):
        response = await linked_client.get(f"{_BASE}/routes/progress")

        data = response.json()["data"]
        assert data["step"] is None
        assert data["accessible"] is True

    async def test_unknown_route(self, linked_client):
        response = await linked_client.get(f"{_BASE}/routes/payroll")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


# =============================================================================
# POST /notifications/{index}/read
# =============================================================================


class TestNotifications:
    async def test_admin_message_shows_up_and_can_be_read(self, linked_client, store):
        await register_admin(store)
        sign_in_as(linked_client, ADMIN)
        sent = await linked_client.post(
            f"/api/v1/admin/records/{EMPLOYEE_ID}/notifications",
            json={"title": "Bring ID", "body": "Two forms please", "kind": "warning"},
        )
        assert sent.status_code == 201

        sign_in_as(linked_client, EMPLOYEE)
        view = (await linked_client.get(f"{_BASE}/me")).json()["data"]
        assert view["notifications"][0]["title"] == "Bring ID"
        assert view["notifications"][0]["kind"] == "warning"
        assert view["notifications"][0]["read"] is False

        response = await linked_client.post(f"{_BASE}/notifications/0/read")

        assert response.status_code == 200
        assert response.json()["data"] == {"index": 0, "read": True}
        view = (await linked_client.get(f"{_BASE}/me")).json()["data"]
        assert view["notifications"][0]["read"] is True

    async def test_unknown_index(self, linked_client):
        response = await linked_client.post(f"{_BASE}/notifications/3/read")

        assert response.status_code == 404

    async def test_negative_index_rejected(self, linked_client):
        response = await linked_client.post(f"{_BASE}/notifications/-1/read")

        assert response.status_code == 400
