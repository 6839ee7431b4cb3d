"""Tests for the admin API.

Allow-list management, admin records, profile oversight, dashboard stats
and the admin registry. Employees must get ADMIN_REQUIRED everywhere.
"""

import pytest
import pytest_asyncio

from portal.models.allowlist import AllowlistStatus
from portal.repositories.admin_record_repository import AdminRecordRepository
from portal.repositories.allowlist_repository import AllowlistRepository
from portal.repositories.profile_repository import ProfileRepository
from tests.conftest import (
    ADMIN,
    EMPLOYEE,
    EMPLOYEE_ID,
    OTHER_EMPLOYEE,
    register_admin,
    seed_allowlist,
    sign_in_as,
)

_BASE = "/api/v1/admin"


@pytest_asyncio.fixture
async def admin_client(client, store):
    await register_admin(store)
    sign_in_as(client, ADMIN)
    return client


async def _link_employee(client, store, principal=EMPLOYEE, employee_id=EMPLOYEE_ID):
    """Link a principal through the onboarding API, then switch back to the admin."""
    if await AllowlistRepository.get(store, employee_id) is None:
        await seed_allowlist(store, employee_id)
    sign_in_as(client, principal)
    response = await client.post("/api/v1/onboarding/link", json={"employee_id": employee_id})
    assert response.status_code == 200
    sign_in_as(client, ADMIN)


class TestAdminRequired:
    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("get", "/allowlist"),
            ("get", "/stats"),
            ("get", "/profiles"),
            ("get", "/admins"),
            ("get", f"/records/{EMPLOYEE_ID}"),
        ],
    )
    async def test_employee_is_refused(self, client, method, path):
        sign_in_as(client, EMPLOYEE)

        response = await getattr(client, method)(f"{_BASE}{path}")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ADMIN_REQUIRED"

    async def test_employee_cannot_grant_themselves_admin(self, client, store):
        sign_in_as(client, EMPLOYEE)

        response = await client.post(
            f"{_BASE}/admins", json={"principal_id": EMPLOYEE.id, "email": EMPLOYEE.email}
        )

        assert response.status_code == 403
        assert await store.get_document("admins", EMPLOYEE.id) is None

    async def test_unauthenticated(self, client):
        response = await client.get(f"{_BASE}/stats")

        assert response.status_code == 401


# =============================================================================
# Allow-list
# =============================================================================


class TestAllowlist:
    async def test_create_normalizes_id_and_email(self, admin_client):
        response = await admin_client.post(
            f"{_BASE}/allowlist",
            json={"employee_id": "sp-042", "full_name": "Ana Lopez", "email": "Ana@Example.com"},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["employee_id"] == "SP042"
        assert data["email"] == "ana@example.com"
        assert data["status"] == "unclaimed"
        assert data["claimed_by_principal_id"] is None

    async def test_duplicate(self, admin_client):
        await admin_client.post(f"{_BASE}/allowlist", json={"employee_id": "SP042"})

        response = await admin_client.post(f"{_BASE}/allowlist", json={"employee_id": "sp042"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_EMPLOYEE_ID"

    async def test_invalid_id(self, admin_client):
        response = await admin_client.post(f"{_BASE}/allowlist", json={"employee_id": "AB12"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_EMPLOYEE_ID"

    async def test_list_with_filters(self, admin_client, store):
        await seed_allowlist(store, "SP001")
        await seed_allowlist(store, "SP002", active=False)

        everything = await admin_client.get(f"{_BASE}/allowlist")
        active = await admin_client.get(f"{_BASE}/allowlist", params={"active": "true"})

        assert [e["employee_id"] for e in everything.json()["data"]] == ["SP001", "SP002"]
        assert [e["employee_id"] for e in active.json()["data"]] == ["SP001"]

    async def test_filter_by_status(self, admin_client, store):
        await seed_allowlist(store, "SP001")
        await _link_employee(admin_client, store, employee_id="SP002")

        response = await admin_client.get(f"{_BASE}/allowlist", params={"status": "verified"})

        assert [e["employee_id"] for e in response.json()["data"]] == ["SP002"]

    async def test_get_missing_entry(self, admin_client):
        response = await admin_client.get(f"{_BASE}/allowlist/SP404")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "EMPLOYEE_ID_NOT_FOUND"

    async def test_update_deactivates_and_clears_email(self, admin_client, store):
        await seed_allowlist(store, email="ana@example.com")

        response = await admin_client.patch(
            f"{_BASE}/allowlist/{EMPLOYEE_ID}", json={"active": False, "email": ""}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["active"] is False
        assert data["email"] is None

    async def test_update_rejects_bad_email(self, admin_client, store):
        await seed_allowlist(store)

        response = await admin_client.patch(
            f"{_BASE}/allowlist/{EMPLOYEE_ID}", json={"email": "not-an-email"}
        )

        assert response.status_code == 400

    async def test_assign_then_employee_links(self, admin_client, store):
        await seed_allowlist(store)

        response = await admin_client.post(
            f"{_BASE}/allowlist/{EMPLOYEE_ID}/assign", json={"principal_id": EMPLOYEE.id}
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "assigned"

        sign_in_as(admin_client, OTHER_EMPLOYEE)
        refused = await admin_client.post(
            "/api/v1/onboarding/link", json={"employee_id": EMPLOYEE_ID}
        )
        assert refused.json()["error"]["code"] == "EMPLOYEE_ID_ALREADY_CLAIMED"

        sign_in_as(admin_client, EMPLOYEE)
        linked = await admin_client.post(
            "/api/v1/onboarding/link", json={"employee_id": EMPLOYEE_ID}
        )
        assert linked.status_code == 200
        entry = await AllowlistRepository.get(store, EMPLOYEE_ID)
        assert entry.status == AllowlistStatus.VERIFIED

    async def test_delete_cascades(self, admin_client, store):
        await _link_employee(admin_client, store)
        await admin_client.post(
            f"{_BASE}/records/{EMPLOYEE_ID}/notifications", json={"title": "Welcome"}
        )

        response = await admin_client.delete(f"{_BASE}/allowlist/{EMPLOYEE_ID}")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "employee_id": EMPLOYEE_ID,
            "record_deleted": True,
            "profile_principal_id": EMPLOYEE.id,
        }
        assert await AllowlistRepository.get(store, EMPLOYEE_ID) is None
        assert await AdminRecordRepository.get(store, EMPLOYEE_ID) is None
        assert await ProfileRepository.get(store, EMPLOYEE.id) is None


# =============================================================================
# Admin records
# =============================================================================


class TestRecords:
    async def test_get_default_record_without_writing(self, admin_client, store):
        await seed_allowlist(store)

        response = await admin_client.get(f"{_BASE}/records/{EMPLOYEE_ID}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["employee_id"] == EMPLOYEE_ID
        assert [s["done"] for s in data["steps"]] == [False] * 5
        assert await AdminRecordRepository.get(store, EMPLOYEE_ID) is None

    async def test_record_requires_allowlist_entry(self, admin_client):
        response = await admin_client.get(f"{_BASE}/records/SP404")

        assert response.status_code == 404

    async def test_force_complete_reaches_linked_profile(self, admin_client, store):
        await _link_employee(admin_client, store)

        response = await admin_client.put(
            f"{_BASE}/records/{EMPLOYEE_ID}/steps/i9", json={"done": True}
        )

        assert response.status_code == 200
        assert [s["done"] for s in response.json()["data"]["steps"]] == [
            True,
            True,
            True,
            False,
            False,
        ]
        profile = await ProfileRepository.get(store, EMPLOYEE.id)
        assert profile.stage == "photo_badge"

    async def test_reset_reaches_linked_profile(self, admin_client, store):
        await _link_employee(admin_client, store)
        await admin_client.put(f"{_BASE}/records/{EMPLOYEE_ID}/steps/i9", json={"done": True})

        response = await admin_client.put(
            f"{_BASE}/records/{EMPLOYEE_ID}/steps/footwear", json={"done": False}
        )

        assert [s["done"] for s in response.json()["data"]["steps"]][:3] == [True, False, False]
        profile = await ProfileRepository.get(store, EMPLOYEE.id)
        assert [s.done for s in profile.steps][:3] == [True, False, False]

    async def test_unknown_step(self, admin_client, store):
        await seed_allowlist(store)

        response = await admin_client.put(
            f"{_BASE}/records/{EMPLOYEE_ID}/steps/payroll", json={"done": True}
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "UNKNOWN_STEP"

    async def test_shift_decision(self, admin_client, store):
        await _link_employee(admin_client, store)
        sign_in_as(admin_client, EMPLOYEE)
        await admin_client.post(
            "/api/v1/onboarding/steps/shift_selection/complete",
            json={"shift": {"position": "Picker", "shift_code": "DAY-1"}},
        )
        sign_in_as(admin_client, ADMIN)

        response = await admin_client.post(
            f"{_BASE}/records/{EMPLOYEE_ID}/shift/decision", json={"approved": True}
        )

        assert response.status_code == 200
        shift = response.json()["data"]["shift"]
        assert shift["position"] == "Picker"
        assert shift["status"] == "approved"
        profile = await ProfileRepository.get(store, EMPLOYEE.id)
        assert profile.shift.approved is True
        assert profile.shift.status.value == "approved"

    async def test_shift_decision_without_selection(self, admin_client, store):
        await _link_employee(admin_client, store)

        response = await admin_client.post(
            f"{_BASE}/records/{EMPLOYEE_ID}/shift/decision", json={"approved": False}
        )

        assert response.status_code == 404

    async def test_appointment_and_details(self, admin_client, store):
        await _link_employee(admin_client, store)

        appointment = await admin_client.put(
            f"{_BASE}/records/{EMPLOYEE_ID}/appointment",
            json={"date": "2026-11-02", "time": "08:30", "address": "Dock 4"},
        )
        details = await admin_client.put(
            f"{_BASE}/records/{EMPLOYEE_ID}/details",
            json={"first_name": "Ana", "last_name": "Lopez", "phone": "555-0100"},
        )

        assert appointment.status_code == 200
        assert details.json()["data"]["details"]["first_name"] == "Ana"
        profile = await ProfileRepository.get(store, EMPLOYEE.id)
        assert profile.appointment.address == "Dock 4"

    async def test_notification_validation(self, admin_client, store):
        await seed_allowlist(store)

        response = await admin_client.post(
            f"{_BASE}/records/{EMPLOYEE_ID}/notifications", json={"title": ""}
        )

        assert response.status_code == 400


# =============================================================================
# Profiles and dashboard
# =============================================================================


class TestProfiles:
    async def test_list_paginates(self, admin_client, store):
        await _link_employee(admin_client, store)
        await _link_employee(admin_client, store, OTHER_EMPLOYEE, "SP124")

        response = await admin_client.get(
            f"{_BASE}/profiles", params={"page": 1, "per_page": 1}
        )

        body = response.json()
        assert len(body["data"]) == 1
        assert body["meta"] == {"total": 2, "page": 1, "per_page": 1, "total_pages": 2}

    async def test_per_page_capped(self, admin_client):
        response = await admin_client.get(f"{_BASE}/profiles", params={"per_page": 500})

        assert response.status_code == 400

    async def test_filter_by_status(self, admin_client, store):
        await _link_employee(admin_client, store)
        sign_in_as(admin_client, OTHER_EMPLOYEE)
        await admin_client.get("/api/v1/onboarding/me")
        sign_in_as(admin_client, ADMIN)

        response = await admin_client.get(f"{_BASE}/profiles", params={"status": "pending"})

        assert [p["principal_id"] for p in response.json()["data"]] == [OTHER_EMPLOYEE.id]

    async def test_profile_view(self, admin_client, store):
        await _link_employee(admin_client, store)

        response = await admin_client.get(f"{_BASE}/profiles/{EMPLOYEE.id}")

        data = response.json()["data"]
        assert data["employee_id"] == EMPLOYEE_ID
        assert len(data["steps"]) == 5

    async def test_suspend(self, admin_client, store):
        await _link_employee(admin_client, store)

        response = await admin_client.patch(
            f"{_BASE}/profiles/{EMPLOYEE.id}/status", json={"status": "suspended"}
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "suspended"

    async def test_delete_releases_claim(self, admin_client, store):
        await _link_employee(admin_client, store)

        response = await admin_client.delete(f"{_BASE}/profiles/{EMPLOYEE.id}")

        assert response.status_code == 204
        entry = await AllowlistRepository.get(store, EMPLOYEE_ID)
        assert entry.claimed_by_principal_id is None
        assert entry.status == AllowlistStatus.UNCLAIMED

    async def test_missing_profile(self, admin_client):
        response = await admin_client.delete(f"{_BASE}/profiles/nobody")

        assert response.status_code == 404


class TestStats:
    async def test_counts(self, admin_client, store):
        await seed_allowlist(store, "SP001")
        await _link_employee(admin_client, store)
        sign_in_as(admin_client, EMPLOYEE)
        await admin_client.post(
            "/api/v1/onboarding/steps/shift_selection/complete",
            json={"shift": {"position": "Picker", "shift_code": "DAY-1"}},
        )
        sign_in_as(admin_client, ADMIN)

        response = await admin_client.get(f"{_BASE}/stats")

        assert response.json()["data"] == {
            "total_profiles": 1,
            "linked_profiles": 1,
            "completed_profiles": 0,
            "pending_shift_approvals": 1,
            "allowlist_total": 2,
            "allowlist_claimed": 1,
        }


# =============================================================================
# Admin registry
# =============================================================================


class TestAdminRegistry:
    async def test_grant_list_revoke(self, admin_client):
        granted = await admin_client.post(
            f"{_BASE}/admins", json={"principal_id": "principal-ops", "email": "OPS@example.com"}
        )
        assert granted.status_code == 201
        assert granted.json()["data"]["email"] == "ops@example.com"

        listed = await admin_client.get(f"{_BASE}/admins")
        assert {a["principal_id"] for a in listed.json()["data"]} == {
            ADMIN.id,
            "principal-ops",
        }

        revoked = await admin_client.delete(f"{_BASE}/admins/principal-ops")
        assert revoked.status_code == 204

    async def test_cannot_revoke_self(self, admin_client):
        response = await admin_client.delete(f"{_BASE}/admins/{ADMIN.id}")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CANNOT_DEMOTE_SELF"

    async def test_revoke_unknown(self, admin_client):
        response = await admin_client.delete(f"{_BASE}/admins/principal-nobody")

        assert response.status_code == 404
