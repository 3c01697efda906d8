from datetime import date, timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from healthydialogue import crud, models, schemas
from healthydialogue.api import deps
from healthydialogue.models.conversation import ConversationType
from healthydialogue.utils.timezone import day_bounds, utcnow, week_start

router = APIRouter()


@router.get("/stats", response_model=schemas.DataResponse[schemas.DashboardStats])
def read_stats(
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    doctor_id = current_doctor.id
    start, end = day_bounds()
    stats = schemas.DashboardStats(
        active_patients=crud.enrollment.count_active_patients(db, doctor_id=doctor_id),
        pending_queries=crud.conversation.count_open(db, doctor_id=doctor_id, type=ConversationType.QUERY),
        checkins_today=crud.conversation.count_created_between(
            db, doctor_id=doctor_id, type=ConversationType.CHECKIN, start=start, end=end
        ),
        appointments_today=crud.appointment.count_scheduled_between(db, doctor_id=doctor_id, start=start, end=end),
        total_unread=crud.conversation.total_unread(db, doctor_id=doctor_id),
    )
    return {"data": stats}


@router.get("/schedule", response_model=schemas.Schedule)
def read_schedule(
    db: Session = Depends(deps.get_db),
    date: Optional[date] = None,
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    """
    Appointments on the given day (today by default), earliest first.
    """
    day = date or utcnow().date()
    start, end = day_bounds(day)
    appointments = crud.appointment.scheduled_between(db, doctor_id=current_doctor.id, start=start, end=end)
    return schemas.Schedule(
        data=[schemas.AppointmentWithDetails.model_validate(a) for a in appointments],
        date=day,
    )


@router.get("/weekly-summary", response_model=schemas.DataResponse[schemas.WeeklySummary])
def read_weekly_summary(
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    start = week_start(utcnow())
    closed = {
        kind: crud.conversation.count_closed_between(
            db, doctor_id=current_doctor.id, type=kind, start=start, end=start + timedelta(days=7)
        )
        for kind in ConversationType.ALL
    }
    return {
        "data": schemas.WeeklySummary(
            queries_resolved=closed[ConversationType.QUERY],
            checkins_reviewed=closed[ConversationType.CHECKIN],
            week_start_date=start.date(),
        )
    }
