from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from healthydialogue import models, schemas
from healthydialogue.api import deps
from healthydialogue.core.config import settings
from healthydialogue.services import messaging

router = APIRouter()


@router.get("", response_model=schemas.ConversationListResponse)
def list_conversations(
    db: Session = Depends(deps.get_db),
    type: str = Query("all", pattern="^(all|any|query|checkin)$"),
    status_filter: Optional[schemas.StatusFilter] = Query(None, alias="status"),
    search: Optional[str] = None,
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    """
    Conversations for the current doctor, most recent activity first.

    Counts cover all of the doctor's conversations regardless of filters.
    """
    filters = schemas.ConversationFilters(
        type=schemas.TypeFilter.ANY if type in ("all", "any") else schemas.TypeFilter(type),
        status=status_filter or schemas.StatusFilter.ANY,
        search=search,
    )
    page = messaging.list_conversations(
        db, doctor_id=current_doctor.id, filters=filters, limit=limit, offset=offset
    )
    return schemas.ConversationListResponse(
        data=[schemas.ConversationListItem.model_validate(c) for c in page.items],
        counts=schemas.ConversationCounts(**page.counts),
        pagination=schemas.OffsetPagination(limit=limit, offset=offset, total=page.total),
    )


@router.post("", response_model=schemas.CreatedResponse, status_code=status.HTTP_201_CREATED)
def create_conversation(
    *,
    db: Session = Depends(deps.get_db),
    conversation_in: schemas.ConversationCreate,
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    conversation = messaging.create_conversation(
        db,
        doctor_id=current_doctor.id,
        patient_id=conversation_in.patient_id,
        enrollment_id=conversation_in.enrollment_id,
        type=conversation_in.type,
        checkin_type=conversation_in.checkin_type,
        seed_message=conversation_in.initial_message,
    )
    return schemas.CreatedResponse(id=conversation.id)


@router.get("/{conversation_id}", response_model=schemas.DataResponse[schemas.ConversationDetail])
def read_conversation(
    conversation_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    conversation = messaging.get_conversation(db, conversation_id=conversation_id, doctor_id=current_doctor.id)
    return {"data": schemas.ConversationDetail.model_validate(conversation)}


@router.get("/{conversation_id}/messages", response_model=schemas.MessagePage)
def read_messages(
    conversation_id: int,
    db: Session = Depends(deps.get_db),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    before: Optional[datetime] = None,
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    """
    A page of messages oldest first. Pass ``oldest_timestamp`` back as
    ``before`` to fetch the preceding page.
    """
    messages, has_more = messaging.get_messages(
        db, conversation_id=conversation_id, doctor_id=current_doctor.id, limit=limit, before=before
    )
    return schemas.MessagePage(
        data=[schemas.Message.model_validate(m) for m in messages],
        pagination=schemas.MessagePagination(
            limit=limit,
            has_more=has_more,
            oldest_timestamp=messages[0].timestamp if messages else None,
        ),
    )


@router.post(
    "/{conversation_id}/messages",
    response_model=schemas.CreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_message(
    conversation_id: int,
    *,
    db: Session = Depends(deps.get_db),
    message_in: schemas.MessageCreate,
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    message = messaging.send_message(
        db,
        conversation_id=conversation_id,
        doctor_id=current_doctor.id,
        content=message_in.content,
        content_type=message_in.content_type,
        media=message_in.media,
    )
    return schemas.CreatedResponse(id=message.id)


@router.put("/{conversation_id}/read", response_model=schemas.SuccessResponse)
def mark_read(
    conversation_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    messaging.mark_read(db, conversation_id=conversation_id, doctor_id=current_doctor.id)
    return schemas.SuccessResponse()


@router.put("/{conversation_id}/close", response_model=schemas.SuccessResponse)
def close_conversation(
    conversation_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    messaging.close_conversation(db, conversation_id=conversation_id, doctor_id=current_doctor.id)
    return schemas.SuccessResponse()
