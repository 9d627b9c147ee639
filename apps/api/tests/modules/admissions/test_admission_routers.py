"""
API tests for the admissions, staff admissions and students routers.

The lifecycle dependency is overridden with one backed by the in-memory
stores, and the caller identity is swapped per test.
"""

import pytest
from fastapi.testclient import TestClient

from gsos.core.auth import CurrentUser, Permission, UserRole, get_current_user
from gsos.main import app
from gsos.modules.admissions.dependencies import get_admission_lifecycle
from gsos.modules.students.router import get_student_store

BASE = "/api/v1/schools/school-1"

OFFICER = CurrentUser(
    id="officer-1",
    email="officer@school.example.com",
    role=UserRole.ADMISSIONS_OFFICER,
    school_id="school-1",
)
TEACHER = CurrentUser(
    id="teacher-1",
    email="teacher@school.example.com",
    role=UserRole.TEACHER,
    school_id="school-1",
)
OTHER_OFFICER = CurrentUser(
    id="officer-2",
    email="officer@other.example.com",
    role=UserRole.ADMISSIONS_OFFICER,
    school_id="school-2",
)
PARENT = CurrentUser(
    id="parent-1",
    email="fatmata@example.com",
    role=UserRole.PARENT,
)
STRANGER = CurrentUser(
    id="parent-9",
    email="stranger@example.com",
    role=UserRole.PARENT,
)


def _payload(**overrides) -> dict:
    payload = {
        "applicant": {
            "first_name": "Amara",
            "last_name": "Kamara",
            "date_of_birth": "2016-05-14",
            "gender": "female",
            "nationality": "Sierra Leonean",
            "applied_grade": "Grade 4",
            "preferred_start_date": "2026-09-07",
        },
        "guardians": [
            {
                "first_name": "Fatmata",
                "last_name": "Kamara",
                "relationship": "mother",
                "email": "fatmata@example.com",
                "is_primary": True,
            },
            {
                "first_name": "Mohamed",
                "last_name": "Kamara",
                "relationship": "father",
                "email": "mohamed@example.com",
            },
        ],
        "previous_school": "Freetown Primary",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def caller():
    """Mutable holder for the authenticated user."""
    return {"user": OFFICER}


@pytest.fixture
def client(lifecycle, student_store, caller):
    app.dependency_overrides[get_admission_lifecycle] = lambda: lifecycle
    app.dependency_overrides[get_student_store] = lambda: student_store
    app.dependency_overrides[get_current_user] = lambda: caller["user"]
    yield TestClient(app)
    app.dependency_overrides.clear()


def _submit(client) -> dict:
    response = client.post(f"{BASE}/admissions", json=_payload())
    assert response.status_code == 201, response.text
    return response.json()


def _move(client, admission_id, *statuses):
    for status in statuses:
        response = client.post(
            f"{BASE}/admissions/{admission_id}/transition", json={"status": status}
        )
        assert response.status_code == 200, response.text
    return response.json()


class TestPublicEndpoints:
    def test_submit(self, client, mock_emails):
        body = _submit(client)

        assert body["status"] == "submitted"
        assert body["application_number"].startswith("APP-")
        mock_emails["received"].assert_awaited_once()

    def test_submit_two_primaries(self, client):
        payload = _payload()
        payload["guardians"][1]["is_primary"] = True

        response = client.post(f"{BASE}/admissions", json=payload)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error"] == "VALIDATION_ERROR"
        assert "exactly one primary guardian is required (found 2)" in detail["problems"]

    def test_submit_invalid_email(self, client):
        payload = _payload()
        payload["guardians"][0]["email"] = "not-an-email"
        assert client.post(f"{BASE}/admissions", json=payload).status_code == 422

    def test_submit_rate_limited(self, client):
        for _ in range(5):
            _submit(client)

        response = client.post(f"{BASE}/admissions", json=_payload())

        assert response.status_code == 429
        assert response.json()["detail"]["error"] == "RATE_LIMIT_EXCEEDED"
        assert "retry-after" in response.headers

    def test_track(self, client):
        submitted = _submit(client)

        response = client.get(
            f"{BASE}/admissions/track/{submitted['application_number']}",
            params={"email": "Mohamed@example.com"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status_label"] == "Submitted"
        assert body["applicant_name"] == "Amara Kamara"
        assert "assessment_notes" not in body

    def test_track_wrong_email(self, client):
        submitted = _submit(client)

        response = client.get(
            f"{BASE}/admissions/track/{submitted['application_number']}",
            params={"email": "stranger@example.com"},
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "GUARDIAN_MISMATCH"

    def test_track_unknown(self, client):
        response = client.get(
            f"{BASE}/admissions/track/APP-2026-00000000",
            params={"email": "fatmata@example.com"},
        )
        assert response.status_code == 404


class TestGuardianEndpoints:
    def test_mine(self, client, caller):
        submitted = _submit(client)
        caller["user"] = PARENT

        response = client.get(f"{BASE}/admissions/mine")

        assert response.status_code == 200
        assert [a["id"] for a in response.json()] == [submitted["id"]]

    def test_mine_requires_guardian(self, client):
        response = client.get(f"{BASE}/admissions/mine")
        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "GUARDIAN_ACCESS_REQUIRED"

    def test_guardian_withdraws(self, client, caller):
        submitted = _submit(client)
        caller["user"] = PARENT

        response = client.post(f"{BASE}/admissions/{submitted['id']}/withdraw")

        assert response.status_code == 200
        assert response.json()["status"] == "withdrawn"

    def test_stranger_cannot_withdraw(self, client, caller):
        submitted = _submit(client)
        caller["user"] = STRANGER

        response = client.post(f"{BASE}/admissions/{submitted['id']}/withdraw")

        assert response.status_code == 403

    def test_guardian_attaches_document(self, client, caller, blob_store):
        submitted = _submit(client)
        key = f"admissions/school-1/{submitted['id']}/abc-report.pdf"
        blob_store.keys.add(key)
        caller["user"] = PARENT

        response = client.post(
            f"{BASE}/admissions/{submitted['id']}/documents",
            json={"type": "school_report", "filename": "report.pdf", "storage_key": key},
        )

        assert response.status_code == 201
        assert response.json()["document_count"] == 1

    def test_withdrawn_application_rejects_documents(self, client, caller):
        submitted = _submit(client)
        caller["user"] = PARENT
        client.post(f"{BASE}/admissions/{submitted['id']}/withdraw")

        response = client.post(
            f"{BASE}/admissions/{submitted['id']}/documents",
            json={
                "type": "school_report",
                "filename": "report.pdf",
                "storage_key": f"admissions/school-1/{submitted['id']}/report.pdf",
            },
        )

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "INVALID_STATE"


class TestStaffEndpoints:
    def test_list_and_filter(self, client):
        first = _submit(client)
        _submit(client)
        _move(client, first["id"], "under_review")

        response = client.get(f"{BASE}/admissions", params={"status": "under_review"})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["admissions"][0]["id"] == first["id"]

    def test_stats(self, client):
        _submit(client)

        response = client.get(f"{BASE}/admissions/stats")

        assert response.status_code == 200
        body = response.json()
        assert body["counts"]["submitted"] == 1
        assert body["total"] == 1
        assert body["open"] == 1

    def test_get_details(self, client):
        submitted = _submit(client)

        response = client.get(f"{BASE}/admissions/{submitted['id']}")

        assert response.status_code == 200
        assert response.json()["previous_school"] == "Freetown Primary"

    def test_get_unknown(self, client):
        response = client.get(f"{BASE}/admissions/missing")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "ADMISSION_NOT_FOUND"

    def test_other_school_staff_denied(self, client, caller):
        submitted = _submit(client)
        caller["user"] = OTHER_OFFICER

        response = client.get(f"{BASE}/admissions/{submitted['id']}")

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "SCHOOL_ACCESS_DENIED"

    def test_parent_cannot_use_staff_endpoints(self, client, caller):
        caller["user"] = PARENT
        response = client.get(f"{BASE}/admissions")
        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "STAFF_ACCESS_REQUIRED"

    def test_teacher_cannot_decide(self, client, caller):
        submitted = _submit(client)
        caller["user"] = TEACHER

        response = client.post(
            f"{BASE}/admissions/{submitted['id']}/transition", json={"status": "under_review"}
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "PERMISSION_DENIED"

    def test_invalid_transition(self, client):
        submitted = _submit(client)

        response = client.post(
            f"{BASE}/admissions/{submitted['id']}/transition",
            json={"status": "converted_to_student"},
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["error"] == "INVALID_STATUS_TRANSITION"
        assert detail["current_status"] == "submitted"
        assert detail["requested_status"] == "converted_to_student"

    def test_conversion_requires_convert_permission(self, client, caller):
        submitted = _submit(client)
        _move(client, submitted["id"], "under_review", "offer_made", "offer_accepted")
        caller["user"] = CurrentUser(
            id="decider-1",
            email="decider@school.example.com",
            role=UserRole.TEACHER,
            school_id="school-1",
            permissions={Permission.DECIDE_ADMISSIONS},
        )

        response = client.post(
            f"{BASE}/admissions/{submitted['id']}/transition",
            json={"status": "converted_to_student"},
        )

        assert response.status_code == 403

    def test_assessment_then_offer(self, client, caller):
        submitted = _submit(client)
        _move(client, submitted["id"], "under_review", "assessment_scheduled")

        blocked = client.post(
            f"{BASE}/admissions/{submitted['id']}/transition", json={"status": "offer_made"}
        )
        assert blocked.status_code == 409

        caller["user"] = TEACHER
        assessed = client.post(
            f"{BASE}/admissions/{submitted['id']}/assessment",
            json={"score": 81, "notes": "Confident reader"},
        )
        assert assessed.status_code == 200
        assert assessed.json()["assessment_score"] == 81

        caller["user"] = OFFICER
        offered = _move(client, submitted["id"], "offer_made")
        assert offered["status"] == "offer_made"

    def test_convert(self, client, student_store):
        submitted = _submit(client)
        _move(
            client,
            submitted["id"],
            "under_review",
            "interview_scheduled",
            "offer_made",
            "offer_accepted",
        )

        response = client.post(f"{BASE}/admissions/{submitted['id']}/convert")

        assert response.status_code == 200
        body = response.json()
        assert body["admission"]["status"] == "converted_to_student"
        assert body["student"]["status"] == "active"
        assert len(body["student"]["guardian_ids"]) == 2
        assert body["admission"]["student_id"] == body["student"]["id"]

        again = client.post(f"{BASE}/admissions/{submitted['id']}/convert")
        assert again.status_code == 409
        assert again.json()["detail"]["error"] == "CONFLICT"

        student = client.get(f"{BASE}/students/{body['student']['id']}")
        assert student.status_code == 200
        assert student.json()["first_name"] == "Amara"

    def test_convert_wrong_state(self, client):
        submitted = _submit(client)

        response = client.post(f"{BASE}/admissions/{submitted['id']}/convert")

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "INVALID_STATE"

    def test_delete(self, client, caller, admission_store):
        submitted = _submit(client)

        denied = client.delete(f"{BASE}/admissions/{submitted['id']}")
        assert denied.status_code == 403

        caller["user"] = CurrentUser(
            id="admin-1",
            email="admin@school.example.com",
            role=UserRole.SCHOOL_ADMIN,
            school_id="school-1",
        )
        response = client.delete(f"{BASE}/admissions/{submitted['id']}")

        assert response.status_code == 204
        assert admission_store.records == {}

    def test_student_not_found(self, client):
        response = client.get(f"{BASE}/students/missing")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "STUDENT_NOT_FOUND"

    def test_staff_rate_limit(self, client):
        submitted = _submit(client)

        for _ in range(10):
            client.post(f"{BASE}/admissions/{submitted['id']}/convert")
        response = client.post(f"{BASE}/admissions/{submitted['id']}/convert")

        assert response.status_code == 429


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_ready_reports_memory_backend(self, client):
        assert client.get("/ready").json()["rate_limit_backend"] == "memory"
