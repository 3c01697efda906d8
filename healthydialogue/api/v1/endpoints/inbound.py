import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from healthydialogue import schemas
from healthydialogue.api import deps
from healthydialogue.services import access_requests, messaging

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(deps.verify_api_key_dependency)])


@router.post("/messages", response_model=schemas.InboundMessageResult, status_code=status.HTTP_201_CREATED)
def receive_message(
    *,
    db: Session = Depends(deps.get_db),
    message_in: schemas.InboundMessage,
) -> Any:
    """
    Deliver a patient message from the messaging channel.
    """
    conversation, message, created = messaging.receive_inbound(
        db,
        patient_id=message_in.patient_id,
        content=message_in.content,
        content_type=message_in.content_type,
        media=message_in.media,
        type=message_in.type,
        checkin_type=message_in.checkin_type,
        doctor_id=message_in.doctor_id,
        enrollment_id=message_in.enrollment_id,
        conversation_id=message_in.conversation_id,
    )
    return schemas.InboundMessageResult(
        conversation_id=conversation.id,
        message_id=message.id,
        created_conversation=created,
    )


@router.post("/history-requests/{request_id}/response", response_model=schemas.DataResponse[schemas.HistoryRequest])
def respond_to_history_request(
    request_id: int,
    *,
    db: Session = Depends(deps.get_db),
    decision: schemas.HistoryRequestDecision,
) -> Any:
    """
    Record the patient's answer to a medical history request.
    """
    request = access_requests.respond(
        db,
        request_id=request_id,
        approved=decision.approved,
        scopes=decision.scopes,
        message=decision.message,
        patient_id=decision.patient_id,
    )
    return {"data": access_requests.to_view(request)}
