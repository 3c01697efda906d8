from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, case, desc, func, or_
from sqlalchemy.orm import Session, joinedload

from healthydialogue.core.config import settings
from healthydialogue.crud.base import LIKE_ESCAPE, CRUDBase, contains_pattern
from healthydialogue.models.conversation import (
    Conversation, ConversationStatus, ConversationType, ContentType, Message, Sender
)
from healthydialogue.models.patient import Patient, PatientProgramEnrollment
from healthydialogue.schemas.conversation import (
    ConversationCreate, ConversationFilters, MediaAttachment, StatusFilter, TypeFilter
)
from healthydialogue.utils.timezone import utcnow

# Smallest step DateTime columns keep on both PostgreSQL and SQLite
TIMESTAMP_RESOLUTION = timedelta(microseconds=1)


def media_url_for(key: str) -> str:
    """Public URL of a stored media object"""
    return f"{settings.MEDIA_PUBLIC_BASE_URL.rstrip('/')}/{key.lstrip('/')}"


def build_preview(content: str, content_type: str, length: int) -> str:
    if content_type == ContentType.TEXT:
        return (content or "")[:length]
    return f"[{content_type.capitalize()}]"


class CRUDConversation(CRUDBase[Conversation, ConversationCreate, ConversationCreate]):
    def _with_directory(self, query):
        return query.options(
            joinedload(Conversation.patient),
            joinedload(Conversation.enrollment).joinedload(PatientProgramEnrollment.program),
        )

    def get_for_doctor(
        self, db: Session, *, conversation_id: int, doctor_id: int, lock: bool = False
    ) -> Optional[Conversation]:
        query = db.query(self.model).filter(
            Conversation.id == conversation_id,
            Conversation.doctor_id == doctor_id,
        )
        if lock:
            query = query.with_for_update()
        else:
            query = self._with_directory(query)
        return query.first()

    def lock(self, db: Session, *, conversation_id: int) -> Optional[Conversation]:
        """Load a conversation holding its row lock until the transaction ends"""
        return (
            db.query(self.model)
            .filter(Conversation.id == conversation_id)
            .with_for_update()
            .first()
        )

    def create_for_doctor(
        self,
        db: Session,
        *,
        doctor_id: int,
        patient_id: int,
        enrollment_id: Optional[int],
        type: str,
        checkin_type: Optional[str] = None,
    ) -> Conversation:
        now = utcnow()
        db_obj = Conversation(
            doctor_id=doctor_id,
            patient_id=patient_id,
            enrollment_id=enrollment_id,
            type=type,
            checkin_type=checkin_type,
            status=ConversationStatus.OPEN,
            unread_count=0,
            created_at=now,
            updated_at=now,
        )
        db.add(db_obj)
        db.flush()
        return db_obj

    def find_open(
        self, db: Session, *, doctor_id: int, patient_id: int, type: str
    ) -> Optional[Conversation]:
        return (
            db.query(self.model)
            .filter(
                Conversation.doctor_id == doctor_id,
                Conversation.patient_id == patient_id,
                Conversation.type == type,
                Conversation.status == ConversationStatus.OPEN,
            )
            .order_by(desc(Conversation.id))
            .with_for_update()
            .first()
        )

    def apply_message_summary(
        self, conversation: Conversation, message: Message, preview_length: int
    ) -> bool:
        """
        Point the cached summary at ``message`` unless the cache already
        reflects a later one. Returns whether the summary changed.
        """
        if conversation.last_message_at is not None and message.timestamp < conversation.last_message_at:
            return False
        conversation.last_message_at = message.timestamp
        conversation.last_message_preview = build_preview(message.content, message.content_type, preview_length)
        conversation.last_message_sender = message.sender
        return True

    def _filtered(self, db: Session, *, doctor_id: int, filters: ConversationFilters):
        query = (
            db.query(self.model)
            .join(Patient, Conversation.patient_id == Patient.id)
            .filter(Conversation.doctor_id == doctor_id)
        )
        if filters.type != TypeFilter.ANY:
            query = query.filter(Conversation.type == filters.type.value)
        if filters.status != StatusFilter.ANY:
            query = query.filter(Conversation.status == filters.status.value)
        if filters.search:
            pattern = contains_pattern(filters.search)
            query = query.filter(
                or_(
                    Patient.name.ilike(pattern, escape=LIKE_ESCAPE),
                    Conversation.last_message_preview.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        return query

    def list_for_doctor(
        self,
        db: Session,
        *,
        doctor_id: int,
        filters: ConversationFilters,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Conversation], int]:
        query = self._filtered(db, doctor_id=doctor_id, filters=filters)
        total = query.count()
        items = (
            self._with_directory(query)
            .order_by(
                desc(func.coalesce(Conversation.last_message_at, Conversation.created_at)),
                desc(Conversation.id),
            )
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total

    def counts_for_doctor(self, db: Session, *, doctor_id: int) -> Dict[str, int]:
        """Badge counts over every conversation the doctor owns, ignoring list filters"""
        open_query = and_(Conversation.type == ConversationType.QUERY, Conversation.status == ConversationStatus.OPEN)
        open_checkin = and_(Conversation.type == ConversationType.CHECKIN, Conversation.status == ConversationStatus.OPEN)
        row = (
            db.query(
                func.count(Conversation.id),
                func.coalesce(func.sum(Conversation.unread_count), 0),
                func.coalesce(func.sum(case((open_query, 1), else_=0)), 0),
                func.coalesce(func.sum(case((open_checkin, 1), else_=0)), 0),
            )
            .filter(Conversation.doctor_id == doctor_id)
            .one()
        )
        total, unread, queries, checkins = row
        return {
            "total": int(total or 0),
            "unread": int(unread or 0),
            "queries": int(queries or 0),
            "checkins": int(checkins or 0),
        }

    def list_checkins(
        self,
        db: Session,
        *,
        doctor_id: int,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Conversation]:
        query = db.query(self.model).filter(
            Conversation.doctor_id == doctor_id,
            Conversation.type == ConversationType.CHECKIN,
        )
        if status:
            query = query.filter(Conversation.status == status)
        return (
            self._with_directory(query)
            .order_by(
                desc(func.coalesce(Conversation.last_message_at, Conversation.created_at)),
                desc(Conversation.id),
            )
            .offset(offset)
            .limit(limit)
            .all()
        )

    def get_checkin(self, db: Session, *, conversation_id: int, doctor_id: int) -> Optional[Conversation]:
        return (
            self._with_directory(db.query(self.model))
            .filter(
                Conversation.id == conversation_id,
                Conversation.doctor_id == doctor_id,
                Conversation.type == ConversationType.CHECKIN,
            )
            .first()
        )

    def count_created_between(
        self, db: Session, *, doctor_id: int, type: str, start: datetime, end: datetime
    ) -> int:
        return (
            db.query(func.count(Conversation.id))
            .filter(
                Conversation.doctor_id == doctor_id,
                Conversation.type == type,
                Conversation.created_at >= start,
                Conversation.created_at < end,
            )
            .scalar()
        ) or 0

    def count_open(self, db: Session, *, doctor_id: int, type: str) -> int:
        return (
            db.query(func.count(Conversation.id))
            .filter(
                Conversation.doctor_id == doctor_id,
                Conversation.type == type,
                Conversation.status == ConversationStatus.OPEN,
            )
            .scalar()
        ) or 0

    def count_closed_between(
        self, db: Session, *, doctor_id: int, type: str, start: datetime, end: datetime
    ) -> int:
        return (
            db.query(func.count(Conversation.id))
            .filter(
                Conversation.doctor_id == doctor_id,
                Conversation.type == type,
                Conversation.status == ConversationStatus.CLOSED,
                Conversation.closed_at >= start,
                Conversation.closed_at < end,
            )
            .scalar()
        ) or 0

    def total_unread(self, db: Session, *, doctor_id: int) -> int:
        return (
            db.query(func.coalesce(func.sum(Conversation.unread_count), 0))
            .filter(Conversation.doctor_id == doctor_id)
            .scalar()
        ) or 0


class CRUDMessage(CRUDBase[Message, ConversationCreate, ConversationCreate]):
    """Append-only, time-ordered message log per conversation"""

    def latest_timestamp(self, db: Session, *, conversation_id: int) -> Optional[datetime]:
        return (
            db.query(func.max(Message.timestamp))
            .filter(Message.conversation_id == conversation_id)
            .scalar()
        )

    def append(
        self,
        db: Session,
        *,
        conversation_id: int,
        sender: str,
        content: str,
        content_type: str = ContentType.TEXT,
        media: Optional[MediaAttachment] = None,
        read: bool = False,
    ) -> Message:
        """
        Append a message stamped with the server clock. Timestamps strictly
        increase within a conversation so a ``before`` cursor never splits
        messages sharing an instant. Callers must hold the conversation lock.
        """
        timestamp = utcnow()
        latest = self.latest_timestamp(db, conversation_id=conversation_id)
        if latest is not None and timestamp <= latest:
            timestamp = latest + TIMESTAMP_RESOLUTION

        db_obj = Message(
            conversation_id=conversation_id,
            sender=sender,
            content=content or "",
            content_type=content_type,
            read=read,
            timestamp=timestamp,
            created_at=utcnow(),
        )
        if media is not None:
            db_obj.media_url = media.url or (media_url_for(media.key) if media.key else None)
            db_obj.media_key = media.key
            db_obj.media_duration = media.duration
            db_obj.media_thumbnail = media.thumbnail
        db.add(db_obj)
        db.flush()
        return db_obj

    def page(
        self,
        db: Session,
        *,
        conversation_id: int,
        limit: int = 50,
        before: Optional[datetime] = None,
    ) -> Tuple[List[Message], bool]:
        """
        Up to ``limit`` messages strictly older than ``before`` (or the most
        recent ones), returned oldest first.
        """
        query = db.query(self.model).filter(Message.conversation_id == conversation_id)
        if before is not None:
            query = query.filter(Message.timestamp < before)
        rows = query.order_by(desc(Message.timestamp), desc(Message.id)).limit(limit).all()
        rows.reverse()
        return rows, len(rows) == limit

    def list_all(self, db: Session, *, conversation_id: int) -> List[Message]:
        return (
            db.query(self.model)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.timestamp, Message.id)
            .all()
        )

    def mark_all_read_from(self, db: Session, *, conversation_id: int, sender: str) -> int:
        return (
            db.query(self.model)
            .filter(
                Message.conversation_id == conversation_id,
                Message.sender == sender,
                Message.read.is_(False),
            )
            .update({Message.read: True}, synchronize_session="fetch")
        )

    def count_unread_from(self, db: Session, *, conversation_id: int, sender: str = Sender.PATIENT) -> int:
        return (
            db.query(func.count(Message.id))
            .filter(
                Message.conversation_id == conversation_id,
                Message.sender == sender,
                Message.read.is_(False),
            )
            .scalar()
        ) or 0


conversation = CRUDConversation(Conversation)
message = CRUDMessage(Message)
