"""
Tests for Conversation API endpoints.

Endpoints tested:
- GET  /api/v1/conversations
- POST /api/v1/conversations
- GET  /api/v1/conversations/{id}
- GET  /api/v1/conversations/{id}/messages
- POST /api/v1/conversations/{id}/messages
- PUT  /api/v1/conversations/{id}/read
- PUT  /api/v1/conversations/{id}/close
"""
import pytest

from healthydialogue.services import messaging

BASE = "/api/v1/conversations"


@pytest.fixture
def conversation(db, doctor, patient, enrollment):
    return messaging.create_conversation(db, doctor_id=doctor.id, patient_id=patient.id, seed_message="Hello")


class TestCreateConversation:
    def test_create_with_initial_message(self, client, auth_headers, patient, enrollment):
        response = client.post(
            BASE,
            json={"patient_id": patient.id, "type": "query", "initial_message": "How are you feeling?"},
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        conversation_id = response.json()["id"]

        detail = client.get(f"{BASE}/{conversation_id}", headers=auth_headers).json()["data"]
        assert detail["status"] == "open"
        assert detail["unread_count"] == 0
        assert detail["last_message_sender"] == "doctor"
        assert detail["last_message_preview"] == "How are you feeling?"
        assert detail["patient"]["name"] == "Alice Example"
        assert detail["program"]["name"] == "Diabetes Care"

    def test_create_without_enrollment_forbidden(self, client, auth_headers, factory):
        stranger = factory.patient()
        response = client.post(BASE, json={"patient_id": stranger.id}, headers=auth_headers)
        assert response.status_code == 403
        body = response.json()
        assert body["error"] is True
        assert body["status_code"] == 403

    def test_invalid_type_rejected(self, client, auth_headers, patient, enrollment):
        response = client.post(BASE, json={"patient_id": patient.id, "type": "chat"}, headers=auth_headers)
        assert response.status_code == 422

    def test_requires_authentication(self, client, patient, enrollment):
        response = client.post(BASE, json={"patient_id": patient.id})
        assert response.status_code == 401


class TestListConversations:
    def test_list_with_counts(self, client, db, auth_headers, conversation):
        messaging.receive_message(db, conversation_id=conversation.id, content="I have a question")

        response = client.get(BASE, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert [c["id"] for c in body["data"]] == [conversation.id]
        item = body["data"][0]
        assert item["unread_count"] == 1
        assert item["last_message_preview"] == "I have a question"
        assert item["last_message_sender"] == "patient"
        assert body["counts"] == {"total": 1, "unread": 1, "queries": 1, "checkins": 0}
        assert body["pagination"] == {"limit": 50, "offset": 0, "total": 1}

    def test_type_and_status_filters(self, client, db, doctor, auth_headers, conversation):
        messaging.close_conversation(db, conversation_id=conversation.id, doctor_id=doctor.id)

        open_only = client.get(BASE, params={"status": "open"}, headers=auth_headers).json()
        closed = client.get(BASE, params={"status": "closed", "type": "query"}, headers=auth_headers).json()
        checkins = client.get(BASE, params={"type": "checkin"}, headers=auth_headers).json()

        assert open_only["data"] == []
        assert [c["id"] for c in closed["data"]] == [conversation.id]
        assert checkins["data"] == []
        # counts are not affected by filters
        assert checkins["counts"]["total"] == 1

    def test_search(self, client, auth_headers, conversation):
        hit = client.get(BASE, params={"search": "alice"}, headers=auth_headers).json()
        miss = client.get(BASE, params={"search": "zzz"}, headers=auth_headers).json()
        assert len(hit["data"]) == 1
        assert miss["data"] == []

    def test_bad_filter_value(self, client, auth_headers):
        response = client.get(BASE, params={"type": "everything"}, headers=auth_headers)
        assert response.status_code == 422

    def test_limit_is_capped(self, client, auth_headers):
        response = client.get(BASE, params={"limit": 10000}, headers=auth_headers)
        assert response.status_code == 422

    def test_other_doctor_sees_nothing(self, client, factory, headers_for, conversation):
        response = client.get(BASE, headers=headers_for(factory.doctor()))
        assert response.json()["data"] == []


class TestMessages:
    def test_send_and_page(self, client, auth_headers, conversation):
        for i in range(4):
            response = client.post(
                f"{BASE}/{conversation.id}/messages", json={"content": f"note {i}"}, headers=auth_headers
            )
            assert response.status_code == 201

        first = client.get(f"{BASE}/{conversation.id}/messages", params={"limit": 3}, headers=auth_headers).json()
        assert [m["content"] for m in first["data"]] == ["note 1", "note 2", "note 3"]
        assert first["pagination"]["has_more"] is True
        assert first["pagination"]["oldest_timestamp"] == first["data"][0]["timestamp"]

        second = client.get(
            f"{BASE}/{conversation.id}/messages",
            params={"limit": 3, "before": first["pagination"]["oldest_timestamp"]},
            headers=auth_headers,
        ).json()
        assert [m["content"] for m in second["data"]] == ["Hello", "note 0"]
        assert second["pagination"]["has_more"] is False

    def test_send_media_only(self, client, auth_headers, conversation):
        response = client.post(
            f"{BASE}/{conversation.id}/messages",
            json={"content_type": "audio", "media_key": "voice/1.m4a", "media_duration": 12},
            headers=auth_headers,
        )
        assert response.status_code == 201
        detail = client.get(f"{BASE}/{conversation.id}", headers=auth_headers).json()["data"]
        assert detail["last_message_preview"] == "[Audio]"

    def test_send_empty_is_validation_error(self, client, auth_headers, conversation):
        response = client.post(f"{BASE}/{conversation.id}/messages", json={"content": ""}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Message content or media is required"

    def test_unknown_conversation(self, client, auth_headers):
        response = client.get(f"{BASE}/9999/messages", headers=auth_headers)
        assert response.status_code == 404

    def test_foreign_conversation_is_not_found(self, client, factory, headers_for, conversation):
        response = client.post(
            f"{BASE}/{conversation.id}/messages",
            json={"content": "hijack"},
            headers=headers_for(factory.doctor()),
        )
        assert response.status_code == 404


class TestReadAndClose:
    def test_mark_read(self, client, db, auth_headers, conversation):
        messaging.receive_message(db, conversation_id=conversation.id, content="ping")

        response = client.put(f"{BASE}/{conversation.id}/read", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        detail = client.get(f"{BASE}/{conversation.id}", headers=auth_headers).json()["data"]
        assert detail["unread_count"] == 0

    def test_close_is_idempotent(self, client, auth_headers, conversation):
        for _ in range(2):
            response = client.put(f"{BASE}/{conversation.id}/close", headers=auth_headers)
            assert response.status_code == 200
        detail = client.get(f"{BASE}/{conversation.id}", headers=auth_headers).json()["data"]
        assert detail["status"] == "closed"

    def test_doctor_reply_reopens(self, client, auth_headers, conversation):
        client.put(f"{BASE}/{conversation.id}/close", headers=auth_headers)
        client.post(f"{BASE}/{conversation.id}/messages", json={"content": "Back again"}, headers=auth_headers)
        detail = client.get(f"{BASE}/{conversation.id}", headers=auth_headers).json()["data"]
        assert detail["status"] == "open"

    def test_close_unknown(self, client, auth_headers):
        assert client.put(f"{BASE}/123/close", headers=auth_headers).status_code == 404
