import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from healthydialogue import crud, models, schemas
from healthydialogue.api import deps
from healthydialogue.core.config import settings
from healthydialogue.schemas.appointment import AppointmentStatusLiteral

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=schemas.AppointmentListResponse)
def read_appointments(
    db: Session = Depends(deps.get_db),
    status_filter: Optional[AppointmentStatusLiteral] = Query(None, alias="status"),
    upcoming: bool = False,
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    """
    Retrieve appointments for the current doctor.
    """
    appointments, total = crud.appointment.get_doctor_appointments(
        db,
        doctor_id=current_doctor.id,
        status=status_filter,
        upcoming=upcoming,
        skip=offset,
        limit=limit,
    )
    return schemas.AppointmentListResponse(
        data=[schemas.AppointmentWithDetails.model_validate(a) for a in appointments],
        pagination=schemas.OffsetPagination(limit=limit, offset=offset, total=total),
    )


@router.post("", response_model=schemas.CreatedResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    *,
    db: Session = Depends(deps.get_db),
    appointment_in: schemas.AppointmentCreate,
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    """
    Create new appointment with an enrolled patient.
    """
    enrollment = crud.enrollment.get_active(
        db,
        doctor_id=current_doctor.id,
        patient_id=appointment_in.patient_id,
        enrollment_id=appointment_in.enrollment_id,
    )
    if not enrollment:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Patient not enrolled with this doctor",
        )

    appointment = crud.appointment.create_for_doctor(
        db, obj_in=appointment_in, doctor_id=current_doctor.id, enrollment_id=enrollment.id
    )
    logger.info(f"Appointment {appointment.id} scheduled by doctor {current_doctor.id}")
    return schemas.CreatedResponse(id=appointment.id)


@router.get("/{appointment_id}", response_model=schemas.DataResponse[schemas.AppointmentWithDetails])
def read_appointment(
    appointment_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    appointment = crud.appointment.get_for_doctor(db, appointment_id=appointment_id, doctor_id=current_doctor.id)
    if not appointment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    return {"data": schemas.AppointmentWithDetails.model_validate(appointment)}


@router.put("/{appointment_id}", response_model=schemas.SuccessResponse)
def update_appointment(
    appointment_id: int,
    *,
    db: Session = Depends(deps.get_db),
    appointment_in: schemas.AppointmentUpdate,
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    appointment = crud.appointment.get_for_doctor(db, appointment_id=appointment_id, doctor_id=current_doctor.id)
    if not appointment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    crud.appointment.update_appointment(db, db_obj=appointment, obj_in=appointment_in)
    return schemas.SuccessResponse()


@router.delete("/{appointment_id}", response_model=schemas.SuccessResponse)
def cancel_appointment(
    appointment_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    """
    Cancel an appointment. The record is kept with status ``cancelled``.
    """
    appointment = crud.appointment.get_for_doctor(db, appointment_id=appointment_id, doctor_id=current_doctor.id)
    if not appointment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    crud.appointment.cancel(db, db_obj=appointment)
    return schemas.SuccessResponse()
