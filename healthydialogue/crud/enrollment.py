from typing import List, Optional, Tuple

from sqlalchemy import case, desc, distinct, func, or_
from sqlalchemy.orm import Session, joinedload

from healthydialogue.crud.base import LIKE_ESCAPE, contains_pattern
from healthydialogue.models.patient import (
    EnrollmentStatus, Patient, PatientProgramEnrollment, TherapyProgram
)


class CRUDEnrollment:
    """Doctor/patient/program relationships that authorize access to patient data"""

    def get_active(
        self,
        db: Session,
        *,
        doctor_id: int,
        patient_id: int,
        enrollment_id: Optional[int] = None,
    ) -> Optional[PatientProgramEnrollment]:
        query = db.query(PatientProgramEnrollment).filter(
            PatientProgramEnrollment.doctor_id == doctor_id,
            PatientProgramEnrollment.patient_id == patient_id,
            PatientProgramEnrollment.status == EnrollmentStatus.ACTIVE,
        )
        if enrollment_id is not None:
            query = query.filter(PatientProgramEnrollment.id == enrollment_id)
        return (
            query.options(joinedload(PatientProgramEnrollment.program))
            .order_by(desc(PatientProgramEnrollment.start_date), desc(PatientProgramEnrollment.id))
            .first()
        )

    def has_active_enrollment(self, db: Session, *, doctor_id: int, patient_id: int) -> bool:
        return self.get_active(db, doctor_id=doctor_id, patient_id=patient_id) is not None

    def get(self, db: Session, enrollment_id: int) -> Optional[PatientProgramEnrollment]:
        return db.get(PatientProgramEnrollment, enrollment_id)

    def active_for_patient(self, db: Session, *, patient_id: int) -> List[PatientProgramEnrollment]:
        return (
            db.query(PatientProgramEnrollment)
            .filter(
                PatientProgramEnrollment.patient_id == patient_id,
                PatientProgramEnrollment.status == EnrollmentStatus.ACTIVE,
            )
            .order_by(desc(PatientProgramEnrollment.start_date))
            .all()
        )

    def for_doctor_and_patient(
        self, db: Session, *, doctor_id: int, patient_id: int
    ) -> List[PatientProgramEnrollment]:
        return (
            db.query(PatientProgramEnrollment)
            .options(joinedload(PatientProgramEnrollment.program))
            .filter(
                PatientProgramEnrollment.patient_id == patient_id,
                PatientProgramEnrollment.doctor_id == doctor_id,
            )
            .order_by(desc(PatientProgramEnrollment.start_date))
            .all()
        )

    def with_other_doctors(
        self, db: Session, *, doctor_id: int, patient_id: int
    ) -> List[PatientProgramEnrollment]:
        return (
            db.query(PatientProgramEnrollment)
            .options(joinedload(PatientProgramEnrollment.program))
            .filter(
                PatientProgramEnrollment.patient_id == patient_id,
                PatientProgramEnrollment.doctor_id != doctor_id,
            )
            .order_by(desc(PatientProgramEnrollment.start_date))
            .all()
        )

    def other_program_counts(self, db: Session, *, doctor_id: int, patient_id: int) -> Tuple[int, int]:
        """(active, completed) enrollments the patient has with other doctors"""
        active, completed = (
            db.query(
                func.coalesce(func.sum(case((PatientProgramEnrollment.status == EnrollmentStatus.ACTIVE, 1), else_=0)), 0),
                func.coalesce(func.sum(case((PatientProgramEnrollment.status == EnrollmentStatus.COMPLETED, 1), else_=0)), 0),
            )
            .filter(
                PatientProgramEnrollment.patient_id == patient_id,
                PatientProgramEnrollment.doctor_id != doctor_id,
            )
            .one()
        )
        return int(active or 0), int(completed or 0)

    def count_active_patients(self, db: Session, *, doctor_id: int) -> int:
        return (
            db.query(func.count(distinct(PatientProgramEnrollment.patient_id)))
            .filter(
                PatientProgramEnrollment.doctor_id == doctor_id,
                PatientProgramEnrollment.status == EnrollmentStatus.ACTIVE,
            )
            .scalar()
        ) or 0


class CRUDPatient:
    def get(self, db: Session, patient_id: int) -> Optional[Patient]:
        return db.query(Patient).filter(Patient.id == patient_id).first()

    def list_for_doctor(
        self, db: Session, *, doctor_id: int, skip: int = 0, limit: int = 50
    ) -> List[Tuple[Patient, PatientProgramEnrollment, Optional[TherapyProgram]]]:
        return (
            db.query(Patient, PatientProgramEnrollment, TherapyProgram)
            .join(PatientProgramEnrollment, PatientProgramEnrollment.patient_id == Patient.id)
            .outerjoin(TherapyProgram, PatientProgramEnrollment.therapy_program_id == TherapyProgram.id)
            .filter(PatientProgramEnrollment.doctor_id == doctor_id)
            .order_by(Patient.name, PatientProgramEnrollment.id)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def search_for_doctor(
        self, db: Session, *, doctor_id: int, query: str, limit: int = 20
    ) -> List[Tuple[Patient, Optional[TherapyProgram]]]:
        pattern = contains_pattern(query)
        return (
            db.query(Patient, TherapyProgram)
            .join(PatientProgramEnrollment, PatientProgramEnrollment.patient_id == Patient.id)
            .outerjoin(TherapyProgram, PatientProgramEnrollment.therapy_program_id == TherapyProgram.id)
            .filter(
                PatientProgramEnrollment.doctor_id == doctor_id,
                PatientProgramEnrollment.status == EnrollmentStatus.ACTIVE,
                or_(
                    Patient.name.ilike(pattern, escape=LIKE_ESCAPE),
                    Patient.phone.ilike(pattern, escape=LIKE_ESCAPE),
                ),
            )
            .order_by(Patient.name)
            .limit(limit)
            .all()
        )


enrollment = CRUDEnrollment()
patient = CRUDPatient()
