"""
Tests for the conversation store and message ledger services.

Covers the doctor/patient message flow, unread accounting, reopen policy,
idempotence of close/mark-read and cursor pagination of the ledger.
"""
import random

import pytest

from healthydialogue import crud
from healthydialogue.core.config import settings
from healthydialogue.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from healthydialogue.models import Conversation, Message
from healthydialogue.models.conversation import ConversationStatus, ConversationType, Sender
from healthydialogue.models.patient import EnrollmentStatus
from healthydialogue.schemas import ConversationFilters, MediaAttachment, StatusFilter, TypeFilter
from healthydialogue.services import messaging


def reload(db, conversation):
    db.expire_all()
    return db.get(Conversation, conversation.id)


def ledger(db, conversation):
    return crud.message.list_all(db, conversation_id=conversation.id)


def unread_in_ledger(db, conversation):
    return crud.message.count_unread_from(db, conversation_id=conversation.id, sender=Sender.PATIENT)


@pytest.fixture
def conversation(db, doctor, patient, enrollment):
    return messaging.create_conversation(db, doctor_id=doctor.id, patient_id=patient.id)


class TestScenarios:
    """Doctor/patient exchange from creation to reopen"""

    def test_seeded_conversation(self, db, doctor, patient, enrollment):
        conversation = messaging.create_conversation(
            db, doctor_id=doctor.id, patient_id=patient.id, seed_message="Hello"
        )

        conversation = reload(db, conversation)
        assert conversation.status == ConversationStatus.OPEN
        assert conversation.unread_count == 0
        assert conversation.last_message_sender == Sender.DOCTOR
        assert conversation.last_message_preview == "Hello"
        assert conversation.enrollment_id == enrollment.id
        messages = ledger(db, conversation)
        assert len(messages) == 1
        assert messages[0].read is True

    def test_patient_message_counts_as_unread(self, db, doctor, patient, enrollment):
        conversation = messaging.create_conversation(
            db, doctor_id=doctor.id, patient_id=patient.id, seed_message="Hello"
        )
        messaging.receive_message(db, conversation_id=conversation.id, content="I have a question")

        conversation = reload(db, conversation)
        assert conversation.unread_count == 1
        assert conversation.last_message_preview == "I have a question"
        assert conversation.last_message_sender == Sender.PATIENT

    def test_mark_read_clears_unread(self, db, doctor, patient, enrollment):
        conversation = messaging.create_conversation(
            db, doctor_id=doctor.id, patient_id=patient.id, seed_message="Hello"
        )
        messaging.receive_message(db, conversation_id=conversation.id, content="I have a question")

        messaging.mark_read(db, conversation_id=conversation.id, doctor_id=doctor.id)

        conversation = reload(db, conversation)
        assert conversation.unread_count == 0
        patient_messages = [m for m in ledger(db, conversation) if m.sender == Sender.PATIENT]
        assert len(patient_messages) == 1
        assert patient_messages[0].read is True

    def test_close_then_patient_message_reopens(self, db, doctor, conversation):
        messaging.close_conversation(db, conversation_id=conversation.id, doctor_id=doctor.id)
        assert reload(db, conversation).status == ConversationStatus.CLOSED

        messaging.receive_message(db, conversation_id=conversation.id, content="One more thing")

        conversation = reload(db, conversation)
        assert conversation.status == ConversationStatus.OPEN
        assert conversation.unread_count == 1
        assert conversation.closed_at is None


class TestCreateConversation:
    def test_requires_active_enrollment(self, db, doctor, patient):
        with pytest.raises(ForbiddenError):
            messaging.create_conversation(db, doctor_id=doctor.id, patient_id=patient.id)
        assert db.query(Conversation).count() == 0

    def test_inactive_enrollment_is_not_enough(self, db, factory, doctor, patient):
        factory.enrollment(doctor, patient, status=EnrollmentStatus.COMPLETED)
        with pytest.raises(ForbiddenError):
            messaging.create_conversation(db, doctor_id=doctor.id, patient_id=patient.id)

    def test_enrollment_must_belong_to_doctor(self, db, factory, doctor, patient, enrollment):
        other_doctor = factory.doctor()
        foreign = factory.enrollment(other_doctor, patient)
        with pytest.raises(ForbiddenError):
            messaging.create_conversation(
                db, doctor_id=doctor.id, patient_id=patient.id, enrollment_id=foreign.id
            )

    def test_without_seed_summary_is_empty(self, db, conversation):
        conversation = reload(db, conversation)
        assert conversation.last_message_at is None
        assert conversation.last_message_preview is None
        assert conversation.last_message_sender is None
        assert ledger(db, conversation) == []

    def test_blank_seed_is_ignored(self, db, doctor, patient, enrollment):
        conversation = messaging.create_conversation(
            db, doctor_id=doctor.id, patient_id=patient.id, seed_message="   "
        )
        assert ledger(db, conversation) == []

    def test_checkin_conversation(self, db, doctor, patient, enrollment):
        conversation = messaging.create_conversation(
            db,
            doctor_id=doctor.id,
            patient_id=patient.id,
            type=ConversationType.CHECKIN,
            checkin_type="weekly_vitals",
        )
        conversation = reload(db, conversation)
        assert conversation.type == ConversationType.CHECKIN
        assert conversation.checkin_type == "weekly_vitals"


class TestSendMessage:
    def test_doctor_message_is_read(self, db, doctor, conversation):
        message = messaging.send_message(
            db, conversation_id=conversation.id, doctor_id=doctor.id, content="Take your meds"
        )
        assert message.read is True
        assert message.sender == Sender.DOCTOR
        assert reload(db, conversation).unread_count == 0

    def test_empty_message_rejected(self, db, doctor, conversation):
        with pytest.raises(ValidationError):
            messaging.send_message(db, conversation_id=conversation.id, doctor_id=doctor.id, content="  ")
        assert ledger(db, conversation) == []

    def test_media_without_text(self, db, doctor, conversation):
        messaging.send_message(
            db,
            conversation_id=conversation.id,
            doctor_id=doctor.id,
            content="",
            content_type="image",
            media=MediaAttachment(key="uploads/x.jpg", url="https://media.example.com/uploads/x.jpg"),
        )
        conversation = reload(db, conversation)
        assert conversation.last_message_preview == "[Image]"
        message = ledger(db, conversation)[0]
        assert message.media_key == "uploads/x.jpg"
        assert message.content == ""

    def test_key_only_media_gets_public_url(self, db, doctor, conversation):
        message = messaging.send_message(
            db,
            conversation_id=conversation.id,
            doctor_id=doctor.id,
            content="",
            content_type="audio",
            media=MediaAttachment(key="voice/note.ogg", duration=12),
        )
        base = settings.MEDIA_PUBLIC_BASE_URL.rstrip("/")
        assert message.media_url == f"{base}/voice/note.ogg"
        assert message.media_duration == 12

    def test_preview_truncated(self, db, doctor, conversation):
        messaging.send_message(db, conversation_id=conversation.id, doctor_id=doctor.id, content="x" * 250)
        assert reload(db, conversation).last_message_preview == "x" * 100

    def test_foreign_conversation_not_found(self, db, factory, conversation):
        stranger = factory.doctor()
        with pytest.raises(NotFoundError):
            messaging.send_message(db, conversation_id=conversation.id, doctor_id=stranger.id, content="hi")

    def test_unknown_conversation_not_found(self, db, doctor):
        with pytest.raises(NotFoundError):
            messaging.send_message(db, conversation_id=999, doctor_id=doctor.id, content="hi")

    def test_doctor_message_reopens_closed(self, db, doctor, conversation):
        messaging.close_conversation(db, conversation_id=conversation.id, doctor_id=doctor.id)
        messaging.send_message(db, conversation_id=conversation.id, doctor_id=doctor.id, content="Following up")
        assert reload(db, conversation).status == ConversationStatus.OPEN

    def test_receive_unknown_conversation(self, db):
        with pytest.raises(NotFoundError):
            messaging.receive_message(db, conversation_id=42, content="hello?")


class TestIdempotence:
    def test_close_twice(self, db, doctor, conversation):
        messaging.close_conversation(db, conversation_id=conversation.id, doctor_id=doctor.id)
        closed_at = reload(db, conversation).closed_at

        messaging.close_conversation(db, conversation_id=conversation.id, doctor_id=doctor.id)

        conversation = reload(db, conversation)
        assert conversation.status == ConversationStatus.CLOSED
        assert conversation.closed_at == closed_at

    def test_mark_read_twice(self, db, doctor, conversation):
        messaging.receive_message(db, conversation_id=conversation.id, content="a")
        messaging.mark_read(db, conversation_id=conversation.id, doctor_id=doctor.id)
        before = [(m.id, m.read) for m in ledger(db, conversation)]

        messaging.mark_read(db, conversation_id=conversation.id, doctor_id=doctor.id)

        assert reload(db, conversation).unread_count == 0
        assert [(m.id, m.read) for m in ledger(db, conversation)] == before

    def test_mark_read_foreign_conversation(self, db, factory, conversation):
        with pytest.raises(NotFoundError):
            messaging.mark_read(db, conversation_id=conversation.id, doctor_id=factory.doctor().id)


class TestUnreadInvariant:
    """unread_count always equals the unread patient messages in the ledger"""

    @pytest.mark.parametrize("seed", [1, 7, 42, 2024])
    def test_random_operation_sequences(self, db, factory, doctor, seed):
        rng = random.Random(seed)
        conversations = []
        for _ in range(3):
            patient = factory.patient()
            factory.enrollment(doctor, patient)
            conversations.append(
                messaging.create_conversation(db, doctor_id=doctor.id, patient_id=patient.id)
            )

        for step in range(60):
            conversation = rng.choice(conversations)
            op = rng.choice(["receive", "receive", "send", "mark_read", "close"])
            if op == "receive":
                messaging.receive_message(db, conversation_id=conversation.id, content=f"patient {step}")
            elif op == "send":
                messaging.send_message(
                    db, conversation_id=conversation.id, doctor_id=doctor.id, content=f"doctor {step}"
                )
            elif op == "mark_read":
                messaging.mark_read(db, conversation_id=conversation.id, doctor_id=doctor.id)
            else:
                messaging.close_conversation(db, conversation_id=conversation.id, doctor_id=doctor.id)

            for c in conversations:
                assert reload(db, c).unread_count == unread_in_ledger(db, c)

    def test_summary_tracks_latest_message(self, db, doctor, conversation):
        messaging.receive_message(db, conversation_id=conversation.id, content="first")
        messaging.send_message(db, conversation_id=conversation.id, doctor_id=doctor.id, content="second")

        conversation = reload(db, conversation)
        latest = ledger(db, conversation)[-1]
        assert conversation.last_message_at == latest.timestamp
        assert conversation.last_message_preview == "second"
        assert conversation.last_message_sender == Sender.DOCTOR


class TestMessagePagination:
    def _fill(self, db, doctor, conversation, n):
        for i in range(n):
            if i % 2:
                messaging.receive_message(db, conversation_id=conversation.id, content=f"m{i}")
            else:
                messaging.send_message(db, conversation_id=conversation.id, doctor_id=doctor.id, content=f"m{i}")

    def test_timestamps_strictly_increase(self, db, doctor, conversation):
        self._fill(db, doctor, conversation, 20)
        stamps = [m.timestamp for m in ledger(db, conversation)]
        assert all(a < b for a, b in zip(stamps, stamps[1:]))

    def test_round_trip_through_before_cursor(self, db, doctor, conversation):
        self._fill(db, doctor, conversation, 23)

        pages = []
        before = None
        while True:
            rows, has_more = messaging.get_messages(
                db, conversation_id=conversation.id, doctor_id=doctor.id, limit=5, before=before
            )
            pages.append(rows)
            if not has_more:
                break
            before = rows[0].timestamp

        walked = [m.id for page in reversed(pages) for m in page]
        assert walked == [m.id for m in ledger(db, conversation)]
        assert len(walked) == len(set(walked)) == 23

    def test_page_is_oldest_first(self, db, doctor, conversation):
        self._fill(db, doctor, conversation, 6)
        rows, has_more = messaging.get_messages(
            db, conversation_id=conversation.id, doctor_id=doctor.id, limit=4
        )
        assert [m.content for m in rows] == ["m2", "m3", "m4", "m5"]
        assert has_more is True

    def test_has_more_when_page_is_exactly_full(self, db, doctor, conversation):
        self._fill(db, doctor, conversation, 4)
        rows, has_more = messaging.get_messages(
            db, conversation_id=conversation.id, doctor_id=doctor.id, limit=4
        )
        assert len(rows) == 4
        assert has_more is True

        rows, has_more = messaging.get_messages(
            db, conversation_id=conversation.id, doctor_id=doctor.id, limit=4, before=rows[0].timestamp
        )
        assert rows == []
        assert has_more is False

    def test_foreign_doctor_cannot_page(self, db, factory, conversation):
        with pytest.raises(NotFoundError):
            messaging.get_messages(db, conversation_id=conversation.id, doctor_id=factory.doctor().id)


class TestListConversations:
    @pytest.fixture
    def populated(self, db, factory, doctor):
        bob = factory.patient(name="Bob Builder")
        carol = factory.patient(name="Carol Singer")
        factory.enrollment(doctor, bob)
        factory.enrollment(doctor, carol)

        query = messaging.create_conversation(db, doctor_id=doctor.id, patient_id=bob.id, seed_message="Knee pain?")
        checkin = messaging.create_conversation(
            db, doctor_id=doctor.id, patient_id=carol.id, type=ConversationType.CHECKIN
        )
        closed = messaging.create_conversation(db, doctor_id=doctor.id, patient_id=carol.id)
        messaging.receive_message(db, conversation_id=checkin.id, content="Weekly glucose 110")
        messaging.close_conversation(db, conversation_id=closed.id, doctor_id=doctor.id)
        return {"query": query, "checkin": checkin, "closed": closed}

    def ids(self, page):
        return [c.id for c in page.items]

    def test_most_recent_activity_first(self, db, doctor, populated):
        page = messaging.list_conversations(db, doctor_id=doctor.id)
        assert page.total == 3
        # Checkin has the newest message, closed has none so falls back to created_at
        assert self.ids(page)[0] == populated["checkin"].id

    def test_filters_are_combined(self, db, doctor, populated):
        filters = ConversationFilters(type=TypeFilter.QUERY, status=StatusFilter.OPEN)
        page = messaging.list_conversations(db, doctor_id=doctor.id, filters=filters)
        assert self.ids(page) == [populated["query"].id]

        filters = ConversationFilters(type=TypeFilter.QUERY, status=StatusFilter.CLOSED)
        page = messaging.list_conversations(db, doctor_id=doctor.id, filters=filters)
        assert self.ids(page) == [populated["closed"].id]

    def test_search_matches_patient_name_or_preview(self, db, doctor, populated):
        page = messaging.list_conversations(db, doctor_id=doctor.id, filters=ConversationFilters(search="bob"))
        assert self.ids(page) == [populated["query"].id]

        page = messaging.list_conversations(db, doctor_id=doctor.id, filters=ConversationFilters(search="GLUCOSE"))
        assert self.ids(page) == [populated["checkin"].id]

    def test_search_treats_wildcards_literally(self, db, factory, doctor, populated):
        for text in ("%", "_", "\\"):
            page = messaging.list_conversations(db, doctor_id=doctor.id, filters=ConversationFilters(search=text))
            assert page.items == []

        dana = factory.patient(name="Dana 100%_Club")
        factory.enrollment(doctor, dana)
        conversation = messaging.create_conversation(db, doctor_id=doctor.id, patient_id=dana.id)

        page = messaging.list_conversations(db, doctor_id=doctor.id, filters=ConversationFilters(search="0%_c"))
        assert self.ids(page) == [conversation.id]

    def test_counts_ignore_filters(self, db, doctor, populated):
        filters = ConversationFilters(type=TypeFilter.CHECKIN)
        page = messaging.list_conversations(db, doctor_id=doctor.id, filters=filters)
        assert page.total == 1
        assert page.counts == {"total": 3, "unread": 1, "queries": 1, "checkins": 1}

    def test_other_doctors_conversations_hidden(self, db, factory, populated):
        page = messaging.list_conversations(db, doctor_id=factory.doctor().id)
        assert page.items == []
        assert page.counts["total"] == 0

    def test_pagination(self, db, doctor, populated):
        first = messaging.list_conversations(db, doctor_id=doctor.id, limit=2)
        second = messaging.list_conversations(db, doctor_id=doctor.id, limit=2, offset=2)
        assert len(first.items) == 2
        assert len(second.items) == 1
        assert set(self.ids(first)).isdisjoint(self.ids(second))


class TestInbound:
    def test_creates_conversation_when_none_open(self, db, doctor, patient, enrollment):
        conversation, message, created = messaging.receive_inbound(
            db, patient_id=patient.id, content="Hi doctor"
        )
        assert created is True
        assert conversation.doctor_id == doctor.id
        assert conversation.enrollment_id == enrollment.id
        assert message.sender == Sender.PATIENT
        assert reload(db, conversation).unread_count == 1

    def test_routes_to_open_conversation(self, db, doctor, patient, conversation):
        routed, _, created = messaging.receive_inbound(db, patient_id=patient.id, content="Follow up")
        assert created is False
        assert routed.id == conversation.id

    def test_closed_conversation_starts_new_one(self, db, doctor, patient, conversation):
        messaging.close_conversation(db, conversation_id=conversation.id, doctor_id=doctor.id)
        routed, _, created = messaging.receive_inbound(db, patient_id=patient.id, content="New issue")
        assert created is True
        assert routed.id != conversation.id

    def test_explicit_conversation_reopens(self, db, doctor, patient, conversation):
        messaging.close_conversation(db, conversation_id=conversation.id, doctor_id=doctor.id)
        routed, _, created = messaging.receive_inbound(
            db, patient_id=patient.id, conversation_id=conversation.id, content="Re: earlier"
        )
        assert created is False
        assert reload(db, routed).status == ConversationStatus.OPEN

    def test_explicit_conversation_of_other_patient(self, db, factory, conversation):
        with pytest.raises(NotFoundError):
            messaging.receive_inbound(
                db, patient_id=factory.patient().id, conversation_id=conversation.id, content="hi"
            )

    def test_ambiguous_doctor(self, db, factory, patient, enrollment):
        factory.enrollment(factory.doctor(), patient)
        with pytest.raises(ValidationError):
            messaging.receive_inbound(db, patient_id=patient.id, content="Which doctor?")

    def test_explicit_doctor_resolves_ambiguity(self, db, factory, patient, enrollment):
        other = factory.doctor()
        factory.enrollment(other, patient)
        conversation, _, _ = messaging.receive_inbound(
            db, patient_id=patient.id, doctor_id=other.id, content="For you"
        )
        assert conversation.doctor_id == other.id

    def test_no_enrollment(self, db, factory):
        with pytest.raises(ForbiddenError):
            messaging.receive_inbound(db, patient_id=factory.patient().id, content="hello")
        assert db.query(Message).count() == 0
