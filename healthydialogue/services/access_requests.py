"""
Medical history access requests.

A request is ``pending`` until the patient answers it or it lapses. Lapsing
is evaluated on read through :func:`effective_status`; nothing has to run in
the background for an old request to show up as ``expired``.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from healthydialogue import crud, schemas
from healthydialogue.core.config import settings
from healthydialogue.core.database_utils import transaction
from healthydialogue.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from healthydialogue.models.history_request import HistoryRequestStatus, MedicalHistoryRequest
from healthydialogue.schemas.history_request import HistoryScopes
from healthydialogue.utils.timezone import utcnow

logger = logging.getLogger(__name__)

NO_GRANT = HistoryScopes(prescriptions=False, lab_reports=False, other_programs=False)


def effective_status(request: MedicalHistoryRequest, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    if request.status == HistoryRequestStatus.PENDING and request.expires_at <= now:
        return HistoryRequestStatus.EXPIRED
    return request.status


def to_view(request: MedicalHistoryRequest, now: Optional[datetime] = None) -> schemas.HistoryRequest:
    view = schemas.HistoryRequest.model_validate(request)
    return view.model_copy(update={"status": effective_status(request, now)})


def _mark_expired(request: MedicalHistoryRequest, now: datetime) -> None:
    request.status = HistoryRequestStatus.EXPIRED
    request.updated_at = now
    logger.info(
        f"History request {request.id} (patient {request.patient_id}, doctor {request.requesting_doctor_id}) expired"
    )


def request_history(
    db: Session,
    *,
    patient_id: int,
    doctor_id: int,
    message: Optional[str] = None,
    scopes: Optional[HistoryScopes] = None,
    enrollment_id: Optional[int] = None,
) -> MedicalHistoryRequest:
    scopes = scopes or HistoryScopes()
    now = utcnow()
    with transaction(db):
        enrollment = crud.enrollment.get_active(
            db, doctor_id=doctor_id, patient_id=patient_id, enrollment_id=enrollment_id
        )
        if enrollment is None:
            raise ForbiddenError("Patient not enrolled with this doctor")

        pending = crud.history_request.get_pending(db, patient_id=patient_id, doctor_id=doctor_id)
        if pending is not None:
            if effective_status(pending, now) == HistoryRequestStatus.PENDING:
                logger.warning(f"Doctor {doctor_id} already has a pending request for patient {patient_id}")
                raise ConflictError("A pending request already exists")
            _mark_expired(pending, now)
            db.flush()

        try:
            request = crud.history_request.create(
                db,
                patient_id=patient_id,
                doctor_id=doctor_id,
                enrollment_id=enrollment.id,
                message=message,
                scopes=scopes,
                requested_at=now,
                expires_at=now + timedelta(days=settings.HISTORY_REQUEST_EXPIRY_DAYS),
            )
        except IntegrityError:
            # Lost a race with a concurrent request for the same pair
            raise ConflictError("A pending request already exists")

    logger.info(f"History request {request.id} created by doctor {doctor_id} for patient {patient_id}")
    return request


def latest_status(
    db: Session, *, patient_id: int, doctor_id: int, persist: bool = False
) -> Optional[schemas.HistoryRequest]:
    """
    Most recent request for the pair as the caller should see it. With
    ``persist`` a lapsed pending request is also written back as expired.
    """
    now = utcnow()
    request = crud.history_request.get_latest(db, patient_id=patient_id, doctor_id=doctor_id)
    if request is None:
        return None
    if persist and effective_status(request, now) != request.status:
        with transaction(db):
            request = crud.history_request.get(db, request.id, lock=True)
            if effective_status(request, now) != request.status:
                _mark_expired(request, now)
    return to_view(request, now)


def respond(
    db: Session,
    *,
    request_id: int,
    approved: bool,
    scopes: Optional[HistoryScopes] = None,
    message: Optional[str] = None,
    patient_id: Optional[int] = None,
) -> MedicalHistoryRequest:
    """
    Record the patient's answer. Only a request that is still effectively
    pending can be answered; the granted scopes never exceed the requested ones.
    """
    now = utcnow()
    with transaction(db):
        request = crud.history_request.get(db, request_id, lock=True)
        if request is None or (patient_id is not None and request.patient_id != patient_id):
            raise NotFoundError("History request not found")

        current = effective_status(request, now)
        if current == HistoryRequestStatus.PENDING:
            requested = HistoryScopes(
                prescriptions=request.request_prescriptions,
                lab_reports=request.request_lab_reports,
                other_programs=request.request_other_programs,
            )
            granted = requested.intersect(scopes or HistoryScopes()) if approved else NO_GRANT

            request.status = HistoryRequestStatus.APPROVED if approved else HistoryRequestStatus.DENIED
            request.responded_at = now
            request.response_message = message
            request.approved_prescriptions = granted.prescriptions
            request.approved_lab_reports = granted.lab_reports
            request.approved_other_programs = granted.other_programs
            request.approval_valid_until = (
                now + timedelta(days=settings.HISTORY_APPROVAL_VALID_DAYS) if approved else None
            )
            request.updated_at = now
            db.flush()
        elif request.status == HistoryRequestStatus.PENDING:
            _mark_expired(request, now)

    if current != HistoryRequestStatus.PENDING:
        logger.warning(f"Rejected response to history request {request_id} in state {current}")
        raise ConflictError(f"Request is already {current}")

    logger.info(f"History request {request.id} {request.status} by patient {request.patient_id}")
    return request


def active_grant(db: Session, *, patient_id: int, doctor_id: int) -> HistoryScopes:
    """Scopes the doctor may currently see under an approved, unexpired request"""
    request = crud.history_request.get_latest_approved(
        db, patient_id=patient_id, doctor_id=doctor_id, now=utcnow()
    )
    if request is None:
        return NO_GRANT
    return HistoryScopes(
        prescriptions=request.approved_prescriptions,
        lab_reports=request.approved_lab_reports,
        other_programs=request.approved_other_programs,
    )


def expire_stale_requests(db: Session) -> int:
    """Persist the expired status of every lapsed pending request"""
    now = utcnow()
    with transaction(db):
        stale = crud.history_request.stale_pending(db, now=now)
        for request in stale:
            _mark_expired(request, now)
    if stale:
        logger.info(f"Expired {len(stale)} stale history requests")
    return len(stale)
