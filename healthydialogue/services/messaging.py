"""
Conversation store and message ledger operations.

Every public function here is one transaction. Writers lock the conversation
row before touching its ledger, so appends, summary updates and unread
bookkeeping for one conversation are serialized while different
conversations proceed independently.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from healthydialogue import crud
from healthydialogue.core.config import settings
from healthydialogue.core.database_utils import transaction
from healthydialogue.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from healthydialogue.models.conversation import (
    Conversation, ConversationStatus, ConversationType, ContentType, Message, Sender
)
from healthydialogue.models.patient import EnrollmentStatus, PatientProgramEnrollment
from healthydialogue.schemas.conversation import ConversationFilters, MediaAttachment
from healthydialogue.utils.timezone import to_utc_naive, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ConversationPage:
    items: List[Conversation]
    total: int
    counts: Dict[str, int] = field(default_factory=dict)


def _require_payload(content: Optional[str], media: Optional[MediaAttachment]) -> None:
    if not (content and content.strip()) and (media is None or media.is_empty):
        raise ValidationError("Message content or media is required")


def _record(
    db: Session,
    conversation: Conversation,
    *,
    sender: str,
    content: Optional[str],
    content_type: str,
    media: Optional[MediaAttachment],
) -> Message:
    """Append to a locked conversation and bring its summary, unread count and status along"""
    message = crud.message.append(
        db,
        conversation_id=conversation.id,
        sender=sender,
        content=content or "",
        content_type=content_type,
        media=media,
        read=sender == Sender.DOCTOR,
    )
    crud.conversation.apply_message_summary(conversation, message, settings.MESSAGE_PREVIEW_LENGTH)

    if sender == Sender.PATIENT:
        conversation.unread_count = Conversation.unread_count + 1

    if conversation.status == ConversationStatus.CLOSED:
        conversation.status = ConversationStatus.OPEN
        conversation.closed_at = None
        logger.info(f"Conversation {conversation.id} reopened by {sender} message")

    conversation.updated_at = utcnow()
    db.flush()
    return message


def create_conversation(
    db: Session,
    *,
    doctor_id: int,
    patient_id: int,
    enrollment_id: Optional[int] = None,
    type: str = ConversationType.QUERY,
    checkin_type: Optional[str] = None,
    seed_message: Optional[str] = None,
) -> Conversation:
    """
    Open a conversation between a doctor and one of their enrolled patients.

    An optional seed message is recorded as doctor-authored and already read.
    """
    with transaction(db):
        enrollment = crud.enrollment.get_active(
            db, doctor_id=doctor_id, patient_id=patient_id, enrollment_id=enrollment_id
        )
        if enrollment is None:
            logger.warning(f"Doctor {doctor_id} has no active enrollment with patient {patient_id}")
            raise ForbiddenError("Patient not enrolled with this doctor")

        conversation = crud.conversation.create_for_doctor(
            db,
            doctor_id=doctor_id,
            patient_id=patient_id,
            enrollment_id=enrollment.id,
            type=type,
            checkin_type=checkin_type,
        )
        if seed_message and seed_message.strip():
            _record(
                db,
                conversation,
                sender=Sender.DOCTOR,
                content=seed_message,
                content_type=ContentType.TEXT,
                media=None,
            )

    logger.info(f"Created {type} conversation {conversation.id} for doctor {doctor_id}, patient {patient_id}")
    return conversation


def send_message(
    db: Session,
    *,
    conversation_id: int,
    doctor_id: int,
    content: Optional[str],
    content_type: str = ContentType.TEXT,
    media: Optional[MediaAttachment] = None,
) -> Message:
    _require_payload(content, media)
    with transaction(db):
        conversation = crud.conversation.get_for_doctor(
            db, conversation_id=conversation_id, doctor_id=doctor_id, lock=True
        )
        if conversation is None:
            raise NotFoundError("Conversation not found")
        message = _record(
            db, conversation, sender=Sender.DOCTOR, content=content, content_type=content_type, media=media
        )
    return message


def receive_message(
    db: Session,
    *,
    conversation_id: int,
    content: Optional[str],
    content_type: str = ContentType.TEXT,
    media: Optional[MediaAttachment] = None,
) -> Message:
    """Record a patient message; it arrives unread and bumps the unread count"""
    _require_payload(content, media)
    with transaction(db):
        conversation = crud.conversation.lock(db, conversation_id=conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        message = _record(
            db, conversation, sender=Sender.PATIENT, content=content, content_type=content_type, media=media
        )
    return message


def _resolve_enrollment(
    db: Session, *, patient_id: int, doctor_id: Optional[int], enrollment_id: Optional[int]
) -> PatientProgramEnrollment:
    if enrollment_id is not None:
        enrollment = crud.enrollment.get(db, enrollment_id)
        if (
            enrollment is None
            or enrollment.patient_id != patient_id
            or enrollment.status != EnrollmentStatus.ACTIVE
            or (doctor_id is not None and enrollment.doctor_id != doctor_id)
        ):
            raise ForbiddenError("No active enrollment for this patient")
        return enrollment

    if doctor_id is not None:
        enrollment = crud.enrollment.get_active(db, doctor_id=doctor_id, patient_id=patient_id)
        if enrollment is None:
            raise ForbiddenError("No active enrollment for this patient")
        return enrollment

    active = crud.enrollment.active_for_patient(db, patient_id=patient_id)
    if not active:
        raise ForbiddenError("No active enrollment for this patient")
    if len({e.doctor_id for e in active}) > 1:
        raise ValidationError("Patient has more than one treating doctor; doctor_id or enrollment_id is required")
    return active[0]


def receive_inbound(
    db: Session,
    *,
    patient_id: int,
    content: Optional[str],
    content_type: str = ContentType.TEXT,
    media: Optional[MediaAttachment] = None,
    type: str = ConversationType.QUERY,
    checkin_type: Optional[str] = None,
    doctor_id: Optional[int] = None,
    enrollment_id: Optional[int] = None,
    conversation_id: Optional[int] = None,
) -> Tuple[Conversation, Message, bool]:
    """
    Entry point for the patient messaging channel.

    Routes to ``conversation_id`` when given, otherwise to the latest open
    conversation of ``type`` with the treating doctor, otherwise starts one.
    Returns the conversation, the stored message and whether the
    conversation was created.
    """
    _require_payload(content, media)
    created = False
    with transaction(db):
        if conversation_id is not None:
            conversation = crud.conversation.lock(db, conversation_id=conversation_id)
            if conversation is None or conversation.patient_id != patient_id:
                raise NotFoundError("Conversation not found")
        else:
            enrollment = _resolve_enrollment(
                db, patient_id=patient_id, doctor_id=doctor_id, enrollment_id=enrollment_id
            )
            conversation = crud.conversation.find_open(
                db, doctor_id=enrollment.doctor_id, patient_id=patient_id, type=type
            )
            if conversation is None:
                conversation = crud.conversation.create_for_doctor(
                    db,
                    doctor_id=enrollment.doctor_id,
                    patient_id=patient_id,
                    enrollment_id=enrollment.id,
                    type=type,
                    checkin_type=checkin_type,
                )
                created = True

        message = _record(
            db, conversation, sender=Sender.PATIENT, content=content, content_type=content_type, media=media
        )

    if created:
        logger.info(f"Patient {patient_id} started {type} conversation {conversation.id}")
    return conversation, message, created


def list_conversations(
    db: Session,
    *,
    doctor_id: int,
    filters: Optional[ConversationFilters] = None,
    limit: int = 50,
    offset: int = 0,
) -> ConversationPage:
    filters = filters or ConversationFilters()
    items, total = crud.conversation.list_for_doctor(
        db, doctor_id=doctor_id, filters=filters, limit=limit, offset=offset
    )
    counts = crud.conversation.counts_for_doctor(db, doctor_id=doctor_id)
    return ConversationPage(items=items, total=total, counts=counts)


def get_conversation(db: Session, *, conversation_id: int, doctor_id: int) -> Conversation:
    conversation = crud.conversation.get_for_doctor(db, conversation_id=conversation_id, doctor_id=doctor_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return conversation


def get_messages(
    db: Session,
    *,
    conversation_id: int,
    doctor_id: int,
    limit: int = 50,
    before: Optional[datetime] = None,
) -> Tuple[List[Message], bool]:
    """One page of history, oldest first; pass the oldest timestamp back as ``before`` for the next"""
    get_conversation(db, conversation_id=conversation_id, doctor_id=doctor_id)
    return crud.message.page(
        db, conversation_id=conversation_id, limit=limit, before=to_utc_naive(before)
    )


def mark_read(db: Session, *, conversation_id: int, doctor_id: int) -> Conversation:
    with transaction(db):
        conversation = crud.conversation.get_for_doctor(
            db, conversation_id=conversation_id, doctor_id=doctor_id, lock=True
        )
        if conversation is None:
            raise NotFoundError("Conversation not found")
        crud.message.mark_all_read_from(db, conversation_id=conversation.id, sender=Sender.PATIENT)
        # Recount under the lock instead of blindly zeroing
        conversation.unread_count = crud.message.count_unread_from(
            db, conversation_id=conversation.id, sender=Sender.PATIENT
        )
        db.flush()
    return conversation


def close_conversation(db: Session, *, conversation_id: int, doctor_id: int) -> Conversation:
    with transaction(db):
        conversation = crud.conversation.get_for_doctor(
            db, conversation_id=conversation_id, doctor_id=doctor_id, lock=True
        )
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if conversation.status != ConversationStatus.CLOSED:
            now = utcnow()
            conversation.status = ConversationStatus.CLOSED
            conversation.closed_at = now
            conversation.updated_at = now
            db.flush()
            logger.info(f"Conversation {conversation.id} closed by doctor {doctor_id}")
    return conversation
