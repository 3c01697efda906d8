from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from healthydialogue.schemas.common import OffsetPagination, PatientContact, PatientSummary, ProgramSummary


ConversationTypeLiteral = Literal["query", "checkin"]
ContentTypeLiteral = Literal["text", "image", "video", "audio", "file"]


class TypeFilter(str, Enum):
    QUERY = "query"
    CHECKIN = "checkin"
    ANY = "any"


class StatusFilter(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    ANY = "any"


class ConversationFilters(BaseModel):
    """Conversation list filters; all given filters are ANDed"""
    type: TypeFilter = TypeFilter.ANY
    status: StatusFilter = StatusFilter.ANY
    search: Optional[str] = None

    @field_validator("search")
    @classmethod
    def blank_search_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()


class MediaAttachment(BaseModel):
    url: Optional[str] = None
    key: Optional[str] = None
    duration: Optional[int] = None     # seconds for audio/video
    thumbnail: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.url or self.key)


# Conversation Schemas
class ConversationCreate(BaseModel):
    patient_id: int
    enrollment_id: Optional[int] = None
    type: ConversationTypeLiteral = "query"
    checkin_type: Optional[str] = None
    initial_message: Optional[str] = None


class ConversationBase(BaseModel):
    id: int
    type: str
    checkin_type: Optional[str] = None
    status: str
    unread_count: int
    last_message_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationListItem(ConversationBase):
    last_message_preview: Optional[str] = None
    last_message_sender: Optional[str] = None
    patient: PatientSummary
    program: Optional[ProgramSummary] = None


class ConversationDetail(ConversationBase):
    last_message_preview: Optional[str] = None
    last_message_sender: Optional[str] = None
    patient: PatientContact
    program: Optional[ProgramSummary] = None


class ConversationCounts(BaseModel):
    total: int = 0
    unread: int = 0
    queries: int = 0
    checkins: int = 0


class ConversationListResponse(BaseModel):
    data: List[ConversationListItem]
    counts: ConversationCounts
    pagination: OffsetPagination


# Message Schemas
class MessageCreate(BaseModel):
    content: Optional[str] = ""
    content_type: ContentTypeLiteral = "text"
    media_url: Optional[str] = None
    media_key: Optional[str] = None
    media_duration: Optional[int] = None
    media_thumbnail: Optional[str] = None

    @property
    def media(self) -> Optional[MediaAttachment]:
        attachment = MediaAttachment(
            url=self.media_url,
            key=self.media_key,
            duration=self.media_duration,
            thumbnail=self.media_thumbnail,
        )
        return None if attachment.is_empty else attachment


class Message(BaseModel):
    id: int
    conversation_id: int
    sender: str
    content: str
    content_type: str
    read: bool
    timestamp: datetime
    media_url: Optional[str] = None
    media_key: Optional[str] = None
    media_duration: Optional[int] = None
    media_thumbnail: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MessagePagination(BaseModel):
    limit: int
    has_more: bool
    oldest_timestamp: Optional[datetime] = None


class MessagePage(BaseModel):
    data: List[Message]
    pagination: MessagePagination


# Check-in Schemas
class CheckinListItem(BaseModel):
    id: int
    checkin_type: Optional[str] = None
    status: str
    unread_count: int
    last_message_at: Optional[datetime] = None
    last_message_preview: Optional[str] = None
    created_at: datetime
    patient: PatientSummary
    program: Optional[ProgramSummary] = None

    model_config = ConfigDict(from_attributes=True)


class CheckinListResponse(BaseModel):
    data: List[CheckinListItem]
    pagination: OffsetPagination


class CheckinDetail(BaseModel):
    id: int
    checkin_type: Optional[str] = None
    status: str
    last_message_at: Optional[datetime] = None
    created_at: datetime
    patient: PatientContact
    program: Optional[ProgramSummary] = None
    messages: List[Message] = []

    model_config = ConfigDict(from_attributes=True)


class CountResponse(BaseModel):
    count: int


# Inbound patient channel
class InboundMessage(MessageCreate):
    patient_id: int
    type: ConversationTypeLiteral = "query"
    checkin_type: Optional[str] = None
    doctor_id: Optional[int] = None
    enrollment_id: Optional[int] = None
    conversation_id: Optional[int] = None


class InboundMessageResult(BaseModel):
    conversation_id: int
    message_id: int
    created_conversation: bool = False
