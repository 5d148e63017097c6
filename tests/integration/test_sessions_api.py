"""
Integration tests for the HTTP API

Runs the FastAPI app against an in-memory SessionService with a manual
clock. The lifespan (and with it the background scheduler) is not started.
"""

import pytest
from datetime import datetime, time
from fastapi.testclient import TestClient

from main import app
from scheduling_engine.config import get_settings
from scheduling_engine.dependencies import get_session_service
from tests.factories import TOMORROW, TUTOR_ID


@pytest.fixture
def client(service):
    app.dependency_overrides[get_session_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def headers(user_id, role):
    return {
        "Authorization": f"Bearer {get_settings().api_token}",
        "X-User-Id": user_id,
        "X-User-Role": role,
    }


TUTOR = headers(TUTOR_ID, "tutor")
ADMIN = headers("admin-1", "admin")


def student(student_id):
    return headers(student_id, "student")


def open_payload(**overrides):
    payload = {
        "title": "Integration by parts",
        "subject": "Calculus",
        "scheduled_date": TOMORROW.isoformat(),
        "start_time": "14:00",
        "end_time": "15:00",
        "max_participants": 2,
    }
    payload.update(overrides)
    return payload


class TestAuthentication:

    def test_missing_token(self, client):
        response = client.get("/api/v1/sessions/open")
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["code"] == "AUTH_001"

    def test_invalid_token(self, client):
        response = client.get(
            "/api/v1/sessions/open",
            headers={**TUTOR, "Authorization": "Bearer wrong"},
        )
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["code"] == "AUTH_002"

    def test_missing_identity(self, client):
        response = client.get(
            "/api/v1/sessions/open",
            headers={"Authorization": TUTOR["Authorization"]},
        )
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["code"] == "AUTH_003"

    def test_unknown_role(self, client):
        response = client.get("/api/v1/sessions/open", headers=headers("x", "janitor"))
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["code"] == "AUTH_004"


class TestSessionLifecycle:
    """Test the session endpoints end to end"""

    def test_open_register_and_fill(self, client):
        created = client.post("/api/v1/sessions", json=open_payload(), headers=TUTOR)
        assert created.status_code == 201
        session = created.json()["data"]
        assert session["status"] == "pending"
        assert session["is_open"] is True
        assert session["duration_minutes"] == 60

        listed = client.get("/api/v1/sessions/open", headers=student("student-a")).json()
        assert [s["id"] for s in listed["data"]] == [session["id"]]
        assert listed["metadata"]["count"] == 1

        first = client.post(f"/api/v1/sessions/{session['id']}/register", headers=student("student-a"))
        assert first.status_code == 200
        assert first.json()["data"]["status"] == "pending"

        second = client.post(f"/api/v1/sessions/{session['id']}/register", headers=student("student-b"))
        assert second.json()["data"]["status"] == "confirmed"

        full = client.post(f"/api/v1/sessions/{session['id']}/register", headers=student("student-c"))
        assert full.status_code == 409
        assert full.json()["error"]["code"] == "FULL"

        duplicate = client.post(f"/api/v1/sessions/{session['id']}/register", headers=student("student-a"))
        assert duplicate.status_code == 409

    def test_direct_booking_confirm_complete(self, client, profiles):
        created = client.post(
            "/api/v1/sessions",
            json=open_payload(student_id="student-a", max_participants=1),
            headers=TUTOR,
        ).json()["data"]
        assert created["is_open"] is False

        confirmed = client.put(f"/api/v1/sessions/{created['id']}/confirm", headers=student("student-a"))
        assert confirmed.json()["data"]["status"] == "confirmed"

        forbidden = client.put(f"/api/v1/sessions/{created['id']}/complete", headers=student("student-a"))
        assert forbidden.status_code == 403
        assert forbidden.json()["error"]["code"] == "UNAUTHORIZED"

        completed = client.put(f"/api/v1/sessions/{created['id']}/complete", headers=TUTOR)
        assert completed.json()["data"]["status"] == "completed"

        again = client.put(f"/api/v1/sessions/{created['id']}/cancel", headers=TUTOR)
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "INVALID_TRANSITION"

    def test_cancel_with_reason(self, client):
        created = client.post("/api/v1/sessions", json=open_payload(), headers=TUTOR).json()["data"]

        response = client.put(
            f"/api/v1/sessions/{created['id']}/cancel",
            json={"reason": "Room unavailable"},
            headers=TUTOR,
        )

        body = response.json()["data"]
        assert body["status"] == "cancelled"
        assert body["cancellation_reason"] == "Room unavailable"
        assert body["cancelled_by"] == TUTOR_ID

    def test_cancel_without_body(self, client):
        created = client.post("/api/v1/sessions", json=open_payload(), headers=TUTOR).json()["data"]
        response = client.put(f"/api/v1/sessions/{created['id']}/cancel", headers=TUTOR)
        assert response.json()["data"]["status"] == "cancelled"

    def test_reschedule(self, client):
        created = client.post("/api/v1/sessions", json=open_payload(), headers=TUTOR).json()["data"]

        response = client.put(
            f"/api/v1/sessions/{created['id']}/reschedule",
            json={"scheduled_date": TOMORROW.isoformat(), "start_time": "16:00", "end_time": "17:30"},
            headers=TUTOR,
        )

        body = response.json()["data"]
        assert response.status_code == 200
        assert (body["start_time"], body["end_time"], body["duration_minutes"]) == ("16:00:00", "17:30:00", 90)

    def test_tutor_conflict(self, client):
        client.post("/api/v1/sessions", json=open_payload(), headers=TUTOR)
        response = client.post(
            "/api/v1/sessions", json=open_payload(start_time="14:30", end_time="15:30"), headers=TUTOR
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SCHEDULE_CONFLICT"
        assert len(response.json()["error"]["details"]["conflicting_session_ids"]) == 1


class TestErrorMapping:

    def test_unknown_session(self, client):
        response = client.get("/api/v1/sessions/missing", headers=ADMIN)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_past_date(self, client):
        response = client.post(
            "/api/v1/sessions", json=open_payload(scheduled_date="2026-01-01"), headers=TUTOR
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_SCHEDULE"

    def test_malformed_time(self, client):
        response = client.post("/api/v1/sessions", json=open_payload(start_time="2pm"), headers=TUTOR)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_student_cannot_open(self, client):
        response = client.post("/api/v1/sessions", json=open_payload(), headers=student("student-a"))
        assert response.status_code == 403


class TestMatchingAndSweep:

    def test_match_score(self, client):
        response = client.post(
            "/api/v1/matching/score",
            json={"tutor_id": TUTOR_ID, "requested_subjects": ["Calculus"]},
            headers=student("student-a"),
        )
        assert response.status_code == 200
        assert response.json()["data"]["total"] == 90

    def test_match_score_requires_student_or_staff(self, client):
        response = client.post(
            "/api/v1/matching/score", json={"tutor_id": TUTOR_ID}, headers=TUTOR
        )
        assert response.status_code == 403

    def test_staff_scores_for_a_student(self, client):
        response = client.post(
            "/api/v1/matching/score",
            json={"tutor_id": "tutor-2", "requested_subjects": ["Calculus"], "student_id": "student-a"},
            headers=ADMIN,
        )
        assert response.json()["data"]["total"] == 25

    def test_suggestions(self, client):
        response = client.get("/api/v1/matching/suggestions?limit=1", headers=student("student-a"))
        body = response.json()
        assert body["metadata"]["count"] == 1
        assert body["data"][0]["tutor"]["id"] == TUTOR_ID
        assert body["data"][0]["match_score"] == 90

    def test_manual_sweep(self, client, clock):
        created = client.post(
            "/api/v1/sessions", json=open_payload(student_id="student-a"), headers=TUTOR
        ).json()["data"]
        client.put(f"/api/v1/sessions/{created['id']}/confirm", headers=TUTOR)
        clock.set(datetime.combine(TOMORROW, time(15, 5)))

        assert client.post("/api/v1/scheduler/sweep", headers=TUTOR).status_code == 403
        response = client.post("/api/v1/scheduler/sweep", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["data"]["completed"] == 1
        session = client.get(f"/api/v1/sessions/{created['id']}", headers=ADMIN).json()["data"]
        assert session["status"] == "completed" and session["auto_completed"] is True

    def test_scheduler_status(self, client):
        response = client.get("/api/v1/scheduler/status", headers=ADMIN)
        data = response.json()["data"]
        assert data["scheduler_running"] is False
        assert data["sweep_in_progress"] is False
        assert data["interval_minutes"] == 5


class TestHealth:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["service"] == "tutor-scheduling-engine"
