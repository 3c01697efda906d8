from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from healthydialogue.models.history_request import HistoryRequestStatus, MedicalHistoryRequest
from healthydialogue.schemas.history_request import HistoryScopes


class CRUDHistoryRequest:
    def get(self, db: Session, request_id: int, lock: bool = False) -> Optional[MedicalHistoryRequest]:
        query = db.query(MedicalHistoryRequest).filter(MedicalHistoryRequest.id == request_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_pending(
        self, db: Session, *, patient_id: int, doctor_id: int
    ) -> Optional[MedicalHistoryRequest]:
        return (
            db.query(MedicalHistoryRequest)
            .filter(
                MedicalHistoryRequest.patient_id == patient_id,
                MedicalHistoryRequest.requesting_doctor_id == doctor_id,
                MedicalHistoryRequest.status == HistoryRequestStatus.PENDING,
            )
            .with_for_update()
            .first()
        )

    def get_latest(
        self, db: Session, *, patient_id: int, doctor_id: int
    ) -> Optional[MedicalHistoryRequest]:
        return (
            db.query(MedicalHistoryRequest)
            .filter(
                MedicalHistoryRequest.patient_id == patient_id,
                MedicalHistoryRequest.requesting_doctor_id == doctor_id,
            )
            .order_by(desc(MedicalHistoryRequest.requested_at), desc(MedicalHistoryRequest.id))
            .first()
        )

    def get_latest_approved(
        self, db: Session, *, patient_id: int, doctor_id: int, now: datetime
    ) -> Optional[MedicalHistoryRequest]:
        return (
            db.query(MedicalHistoryRequest)
            .filter(
                MedicalHistoryRequest.patient_id == patient_id,
                MedicalHistoryRequest.requesting_doctor_id == doctor_id,
                MedicalHistoryRequest.status == HistoryRequestStatus.APPROVED,
                MedicalHistoryRequest.approval_valid_until > now,
            )
            .order_by(desc(MedicalHistoryRequest.responded_at), desc(MedicalHistoryRequest.id))
            .first()
        )

    def create(
        self,
        db: Session,
        *,
        patient_id: int,
        doctor_id: int,
        enrollment_id: Optional[int],
        message: Optional[str],
        scopes: HistoryScopes,
        requested_at: datetime,
        expires_at: datetime,
    ) -> MedicalHistoryRequest:
        db_obj = MedicalHistoryRequest(
            patient_id=patient_id,
            requesting_doctor_id=doctor_id,
            enrollment_id=enrollment_id,
            status=HistoryRequestStatus.PENDING,
            requested_at=requested_at,
            expires_at=expires_at,
            request_message=message,
            request_prescriptions=scopes.prescriptions,
            request_lab_reports=scopes.lab_reports,
            request_other_programs=scopes.other_programs,
            created_at=requested_at,
            updated_at=requested_at,
        )
        db.add(db_obj)
        db.flush()
        return db_obj

    def stale_pending(self, db: Session, *, now: datetime) -> List[MedicalHistoryRequest]:
        return (
            db.query(MedicalHistoryRequest)
            .filter(
                MedicalHistoryRequest.status == HistoryRequestStatus.PENDING,
                MedicalHistoryRequest.expires_at <= now,
            )
            .with_for_update()
            .all()
        )


history_request = CRUDHistoryRequest()
