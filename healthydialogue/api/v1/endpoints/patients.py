from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from healthydialogue import crud, models, schemas
from healthydialogue.api import deps
from healthydialogue.core.config import settings
from healthydialogue.services import access_requests

router = APIRouter()


def _require_enrollment(db: Session, doctor_id: int, patient_id: int) -> models.PatientProgramEnrollment:
    enrollment = crud.enrollment.get_active(db, doctor_id=doctor_id, patient_id=patient_id)
    if not enrollment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Patient not found or no active enrollment",
        )
    return enrollment


def _program(program: Optional[models.TherapyProgram]) -> Optional[schemas.ProgramSummary]:
    return schemas.ProgramSummary.model_validate(program) if program else None


@router.get("", response_model=schemas.DataResponse[List[schemas.PatientListItem]])
def list_patients(
    db: Session = Depends(deps.get_db),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    rows = crud.patient.list_for_doctor(db, doctor_id=current_doctor.id, skip=offset, limit=limit)
    return {
        "data": [
            schemas.PatientListItem(
                id=patient.id,
                name=patient.name,
                phone=patient.phone,
                avatar_url=patient.avatar_url,
                enrollment=schemas.EnrollmentSummary.model_validate(enrollment),
                program=_program(program),
            )
            for patient, enrollment, program in rows
        ]
    }


@router.get("/search", response_model=schemas.DataResponse[List[schemas.PatientSearchItem]])
def search_patients(
    db: Session = Depends(deps.get_db),
    q: Optional[str] = None,
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    query = (q or "").strip()
    if len(query) < settings.PATIENT_SEARCH_MIN_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Search query must be at least {settings.PATIENT_SEARCH_MIN_LENGTH} characters",
        )
    rows = crud.patient.search_for_doctor(
        db, doctor_id=current_doctor.id, query=query, limit=settings.PATIENT_SEARCH_LIMIT
    )
    return {
        "data": [
            schemas.PatientSearchItem(
                id=patient.id,
                name=patient.name,
                phone=patient.phone,
                avatar_url=patient.avatar_url,
                program=_program(program),
            )
            for patient, program in rows
        ]
    }


@router.get("/{patient_id}", response_model=schemas.DataResponse[schemas.PatientDetail])
def read_patient(
    patient_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    enrollment = _require_enrollment(db, current_doctor.id, patient_id)
    patient = crud.patient.get(db, patient_id)
    return {
        "data": schemas.PatientDetail(
            id=patient.id,
            name=patient.name,
            phone=patient.phone,
            email=patient.email,
            date_of_birth=patient.date_of_birth,
            gender=patient.gender,
            avatar_url=patient.avatar_url,
            current_program=_program(enrollment.program),
            enrollment_status=enrollment.status,
            enrollment_start_date=enrollment.start_date,
        )
    }


@router.get("/{patient_id}/vitals", response_model=schemas.DataResponse[Optional[schemas.Vitals]])
def read_latest_vitals(
    patient_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    _require_enrollment(db, current_doctor.id, patient_id)
    vitals = crud.vitals.get_latest(db, patient_id=patient_id)
    return {"data": schemas.Vitals.model_validate(vitals) if vitals else None}


@router.get("/{patient_id}/programs", response_model=schemas.DataResponse[schemas.PatientPrograms])
def read_programs(
    patient_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    """
    Programs with the current doctor, plus counts of programs with other
    doctors. The other programs themselves are listed only under an approved
    history request.
    """
    _require_enrollment(db, current_doctor.id, patient_id)
    mine = crud.enrollment.for_doctor_and_patient(db, doctor_id=current_doctor.id, patient_id=patient_id)
    active_count, completed_count = crud.enrollment.other_program_counts(
        db, doctor_id=current_doctor.id, patient_id=patient_id
    )
    other = schemas.OtherPrograms(active_count=active_count, completed_count=completed_count)

    grant = access_requests.active_grant(db, patient_id=patient_id, doctor_id=current_doctor.id)
    if grant.other_programs:
        other.items = [
            schemas.ProgramEnrollment.model_validate(e)
            for e in crud.enrollment.with_other_doctors(db, doctor_id=current_doctor.id, patient_id=patient_id)
        ]

    return {
        "data": schemas.PatientPrograms(
            my_programs=[schemas.ProgramEnrollment.model_validate(e) for e in mine],
            other_programs=other,
        )
    }


@router.get("/{patient_id}/prescriptions", response_model=schemas.DataResponse[schemas.PatientPrescriptions])
def read_prescriptions(
    patient_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    _require_enrollment(db, current_doctor.id, patient_id)
    mine = crud.prescription.list_by_doctor(db, patient_id=patient_id, doctor_id=current_doctor.id)
    result = schemas.PatientPrescriptions(
        my_prescriptions=[schemas.Prescription.model_validate(p) for p in mine],
        other_prescriptions_count=crud.prescription.count_by_other_doctors(
            db, patient_id=patient_id, doctor_id=current_doctor.id
        ),
    )

    grant = access_requests.active_grant(db, patient_id=patient_id, doctor_id=current_doctor.id)
    if grant.prescriptions:
        result.other_prescriptions = [
            schemas.Prescription.model_validate(p)
            for p in crud.prescription.list_by_other_doctors(db, patient_id=patient_id, doctor_id=current_doctor.id)
        ]
    return {"data": result}


@router.get("/{patient_id}/lab-reports", response_model=schemas.DataResponse[List[schemas.LabReport]])
def read_lab_reports(
    patient_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    """
    Lab reports shared with the current doctor. Under an approved history
    request every report of the patient is returned.
    """
    _require_enrollment(db, current_doctor.id, patient_id)
    shared = crud.lab_report.list_shared_with(db, patient_id=patient_id, doctor_id=current_doctor.id)

    reports = []
    seen = set()
    for report, sharing, program in shared:
        seen.add(report.id)
        reports.append(
            schemas.LabReport(
                id=report.id,
                title=report.title,
                document_type=report.document_type,
                description=report.description,
                document_url=report.document_url,
                report_date=report.report_date,
                lab_name=report.lab_name,
                shared_at=sharing.shared_at,
                shared_for=schemas.SharedFor(
                    program_id=program.id if program else None,
                    program_name=program.name if program else None,
                ),
            )
        )

    grant = access_requests.active_grant(db, patient_id=patient_id, doctor_id=current_doctor.id)
    if grant.lab_reports:
        for report in crud.lab_report.list_for_patient(db, patient_id=patient_id):
            if report.id in seen:
                continue
            reports.append(
                schemas.LabReport(
                    id=report.id,
                    title=report.title,
                    document_type=report.document_type,
                    description=report.description,
                    document_url=report.document_url,
                    report_date=report.report_date,
                    lab_name=report.lab_name,
                )
            )
    return {"data": reports}


@router.post(
    "/{patient_id}/history-request",
    response_model=schemas.CreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_history_request(
    patient_id: int,
    *,
    db: Session = Depends(deps.get_db),
    request_in: schemas.HistoryRequestCreate,
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    enrollment = _require_enrollment(db, current_doctor.id, patient_id)
    request = access_requests.request_history(
        db,
        patient_id=patient_id,
        doctor_id=current_doctor.id,
        message=request_in.message,
        scopes=request_in.scopes,
        enrollment_id=enrollment.id,
    )
    return schemas.CreatedResponse(id=request.id)


@router.get("/{patient_id}/history-request", response_model=schemas.DataResponse[Optional[schemas.HistoryRequest]])
def read_history_request(
    patient_id: int,
    db: Session = Depends(deps.get_db),
    current_doctor: models.Doctor = Depends(deps.get_current_doctor),
) -> Any:
    _require_enrollment(db, current_doctor.id, patient_id)
    return {"data": access_requests.latest_status(db, patient_id=patient_id, doctor_id=current_doctor.id)}
