"""
Tests for the inbound patient channel.

Endpoints tested:
- POST /api/v1/inbound/messages
- POST /api/v1/inbound/history-requests/{id}/response
"""
import pytest

from healthydialogue.services import access_requests, messaging

BASE = "/api/v1/inbound"


class TestInboundMessages:
    def test_requires_api_key(self, client, patient, enrollment):
        response = client.post(f"{BASE}/messages", json={"patient_id": patient.id, "content": "hi"})
        assert response.status_code == 401

    def test_rejects_unknown_api_key(self, client, patient, enrollment):
        response = client.post(
            f"{BASE}/messages",
            json={"patient_id": patient.id, "content": "hi"},
            headers={"X-API-Key": "nope"},
        )
        assert response.status_code == 401

    def test_doctor_token_is_not_an_api_key(self, client, auth_headers, patient, enrollment):
        response = client.post(
            f"{BASE}/messages", json={"patient_id": patient.id, "content": "hi"}, headers=auth_headers
        )
        assert response.status_code == 401

    def test_patient_message_reaches_doctor(self, client, auth_headers, inbound_headers, patient, enrollment):
        response = client.post(
            f"{BASE}/messages",
            json={"patient_id": patient.id, "content": "My sugar is high"},
            headers=inbound_headers,
        )
        assert response.status_code == 201, response.text
        result = response.json()
        assert result["created_conversation"] is True

        listing = client.get("/api/v1/conversations", headers=auth_headers).json()
        assert [c["id"] for c in listing["data"]] == [result["conversation_id"]]
        assert listing["data"][0]["unread_count"] == 1
        assert listing["data"][0]["last_message_sender"] == "patient"

    def test_follow_up_joins_open_conversation(self, client, inbound_headers, patient, enrollment):
        first = client.post(
            f"{BASE}/messages", json={"patient_id": patient.id, "content": "one"}, headers=inbound_headers
        ).json()
        second = client.post(
            f"{BASE}/messages", json={"patient_id": patient.id, "content": "two"}, headers=inbound_headers
        ).json()
        assert second["conversation_id"] == first["conversation_id"]
        assert second["created_conversation"] is False

    def test_checkin_submission(self, client, auth_headers, inbound_headers, patient, enrollment):
        client.post(
            f"{BASE}/messages",
            json={
                "patient_id": patient.id,
                "type": "checkin",
                "checkin_type": "weekly_vitals",
                "content_type": "image",
                "media_key": "checkins/bp.jpg",
            },
            headers=inbound_headers,
        )
        checkins = client.get("/api/v1/checkins", headers=auth_headers).json()["data"]
        assert len(checkins) == 1
        assert checkins[0]["last_message_preview"] == "[Image]"

    def test_unenrolled_patient_forbidden(self, client, inbound_headers, factory):
        response = client.post(
            f"{BASE}/messages", json={"patient_id": factory.patient().id, "content": "hi"}, headers=inbound_headers
        )
        assert response.status_code == 403

    def test_reopens_closed_conversation(self, client, db, doctor, inbound_headers, patient, enrollment):
        conversation = messaging.create_conversation(db, doctor_id=doctor.id, patient_id=patient.id)
        messaging.close_conversation(db, conversation_id=conversation.id, doctor_id=doctor.id)

        response = client.post(
            f"{BASE}/messages",
            json={"patient_id": patient.id, "conversation_id": conversation.id, "content": "still here"},
            headers=inbound_headers,
        )

        assert response.json()["conversation_id"] == conversation.id
        view = messaging.get_conversation(db, conversation_id=conversation.id, doctor_id=doctor.id)
        db.refresh(view)
        assert view.status == "open"


class TestHistoryRequestResponse:
    @pytest.fixture
    def request_id(self, db, doctor, patient, enrollment):
        return access_requests.request_history(db, patient_id=patient.id, doctor_id=doctor.id).id

    def test_partial_approval(self, client, inbound_headers, request_id):
        response = client.post(
            f"{BASE}/history-requests/{request_id}/response",
            json={"approved": True, "approve_lab_reports": False, "message": "Not my labs"},
            headers=inbound_headers,
        )
        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["status"] == "approved"
        assert data["approved_prescriptions"] is True
        assert data["approved_lab_reports"] is False
        assert data["approved_other_programs"] is True
        assert data["response_message"] == "Not my labs"

    def test_second_answer_conflicts(self, client, inbound_headers, request_id):
        url = f"{BASE}/history-requests/{request_id}/response"
        assert client.post(url, json={"approved": False}, headers=inbound_headers).status_code == 200
        response = client.post(url, json={"approved": True}, headers=inbound_headers)
        assert response.status_code == 409
        assert response.json()["message"] == "Request is already denied"

    def test_doctor_sees_decision(self, client, auth_headers, inbound_headers, patient, request_id):
        client.post(f"{BASE}/history-requests/{request_id}/response", json={"approved": False}, headers=inbound_headers)
        data = client.get(f"/api/v1/patients/{patient.id}/history-request", headers=auth_headers).json()["data"]
        assert data["status"] == "denied"

    def test_answer_from_other_patient_rejected(self, client, inbound_headers, factory, patient, request_id):
        url = f"{BASE}/history-requests/{request_id}/response"
        stranger = factory.patient()

        response = client.post(url, json={"approved": True, "patient_id": stranger.id}, headers=inbound_headers)
        assert response.status_code == 404

        response = client.post(url, json={"approved": True, "patient_id": patient.id}, headers=inbound_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "approved"

    def test_unknown_request(self, client, inbound_headers):
        response = client.post(f"{BASE}/history-requests/999/response", json={"approved": True}, headers=inbound_headers)
        assert response.status_code == 404
