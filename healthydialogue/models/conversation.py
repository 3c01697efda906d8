from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from healthydialogue.db.base import Base
from healthydialogue.utils.timezone import utcnow


class ConversationType:
    QUERY = "query"
    CHECKIN = "checkin"

    ALL = (QUERY, CHECKIN)


class ConversationStatus:
    OPEN = "open"
    CLOSED = "closed"

    ALL = (OPEN, CLOSED)


class Sender:
    DOCTOR = "doctor"
    PATIENT = "patient"

    ALL = (DOCTOR, PATIENT)


class ContentType:
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"

    ALL = (TEXT, IMAGE, VIDEO, AUDIO, FILE)


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        Index("conversations_doctor_status_idx", "doctor_id", "status"),
        Index("conversations_doctor_type_idx", "doctor_id", "type"),
        Index("conversations_last_message_idx", "doctor_id", "last_message_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    enrollment_id = Column(Integer, ForeignKey("patient_program_enrollments.id"), nullable=True)
    type = Column(String(20), default=ConversationType.QUERY, nullable=False)
    checkin_type = Column(String(50), nullable=True)  # e.g. "Weekly Check-In", "Daily Vitals"
    status = Column(String(20), default=ConversationStatus.OPEN, nullable=False)
    unread_count = Column(Integer, default=0, nullable=False)

    # Summary of the latest message in the ledger
    last_message_at = Column(DateTime, nullable=True)
    last_message_preview = Column(Text, nullable=True)
    last_message_sender = Column(String(20), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    closed_at = Column(DateTime, nullable=True)

    # Relationships
    patient = relationship("Patient")
    doctor = relationship("Doctor")
    enrollment = relationship("PatientProgramEnrollment")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.timestamp",
    )

    @property
    def program(self):
        return self.enrollment.program if self.enrollment else None


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("messages_conversation_time_idx", "conversation_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender = Column(String(20), nullable=False)  # 'doctor' | 'patient'
    content = Column(Text, nullable=False, default="")  # Empty for media-only messages
    content_type = Column(String(20), nullable=False, default=ContentType.TEXT)
    read = Column(Boolean, default=False, nullable=False)
    timestamp = Column(DateTime, nullable=False)

    # Media metadata; bytes live in the object store
    media_url = Column(Text, nullable=True)
    media_key = Column(String(255), nullable=True)
    media_duration = Column(Integer, nullable=True)  # seconds for audio/video
    media_thumbnail = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
