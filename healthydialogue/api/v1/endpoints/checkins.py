from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from healthydialogue import crud, models, schemas
from healthydialogue.api import deps
from healthydialogue.core.config import settings
from healthydialogue.models.conversation import ConversationType
from healthydialogue.utils.timezone import day_bounds

router = APIRouter()


@router.get("", response_model=schemas.CheckinListResponse)
def list_checkins(
    db: Session = Depends(deps.get_db),
    status_filter: Optional[schemas.StatusFilter] = Query(None, alias="status"),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    status_value = None
    if status_filter is not None and status_filter != schemas.StatusFilter.ANY:
        status_value = status_filter.value
    checkins = crud.conversation.list_checkins(
        db, doctor_id=current_doctor.id, status=status_value, limit=limit, offset=offset
    )
    return schemas.CheckinListResponse(
        data=[schemas.CheckinListItem.model_validate(c) for c in checkins],
        pagination=schemas.OffsetPagination(limit=limit, offset=offset),
    )


@router.get("/count/today", response_model=schemas.CountResponse)
def count_checkins_today(
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    start, end = day_bounds()
    count = crud.conversation.count_created_between(
        db, doctor_id=current_doctor.id, type=ConversationType.CHECKIN, start=start, end=end
    )
    return schemas.CountResponse(count=count)


@router.get("/{checkin_id}", response_model=schemas.DataResponse[schemas.CheckinDetail])
def read_checkin(
    checkin_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    checkin = crud.conversation.get_checkin(db, conversation_id=checkin_id, doctor_id=current_doctor.id)
    if not checkin:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Check-in not found")

    detail = schemas.CheckinDetail.model_validate(checkin).model_copy(
        update={
            "messages": [
                schemas.Message.model_validate(m)
                for m in crud.message.list_all(db, conversation_id=checkin.id)
            ]
        }
    )
    return {"data": detail}
