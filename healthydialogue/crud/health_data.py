from typing import List, Optional, Tuple

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from healthydialogue.models.health_data import DocumentSharing, LabReport, PatientVitals, Prescription
from healthydialogue.models.patient import PatientProgramEnrollment, TherapyProgram


class CRUDVitals:
    def get_latest(self, db: Session, *, patient_id: int) -> Optional[PatientVitals]:
        return (
            db.query(PatientVitals)
            .filter(PatientVitals.patient_id == patient_id)
            .order_by(desc(PatientVitals.recorded_at), desc(PatientVitals.id))
            .first()
        )


class CRUDPrescription:
    def list_by_doctor(self, db: Session, *, patient_id: int, doctor_id: int) -> List[Prescription]:
        return (
            db.query(Prescription)
            .filter(Prescription.patient_id == patient_id, Prescription.doctor_id == doctor_id)
            .order_by(desc(Prescription.prescribed_date), desc(Prescription.id))
            .all()
        )

    def list_by_other_doctors(self, db: Session, *, patient_id: int, doctor_id: int) -> List[Prescription]:
        return (
            db.query(Prescription)
            .filter(Prescription.patient_id == patient_id, Prescription.doctor_id != doctor_id)
            .order_by(desc(Prescription.prescribed_date), desc(Prescription.id))
            .all()
        )

    def count_by_other_doctors(self, db: Session, *, patient_id: int, doctor_id: int) -> int:
        return (
            db.query(func.count(Prescription.id))
            .filter(Prescription.patient_id == patient_id, Prescription.doctor_id != doctor_id)
            .scalar()
        ) or 0


class CRUDLabReport:
    def list_shared_with(
        self, db: Session, *, patient_id: int, doctor_id: int
    ) -> List[Tuple[LabReport, DocumentSharing, Optional[TherapyProgram]]]:
        """Reports the patient shared with this doctor, with the program they were shared for"""
        return (
            db.query(LabReport, DocumentSharing, TherapyProgram)
            .join(DocumentSharing, DocumentSharing.lab_report_id == LabReport.id)
            .outerjoin(PatientProgramEnrollment, DocumentSharing.enrollment_id == PatientProgramEnrollment.id)
            .outerjoin(TherapyProgram, PatientProgramEnrollment.therapy_program_id == TherapyProgram.id)
            .filter(
                LabReport.patient_id == patient_id,
                DocumentSharing.shared_with_doctor_id == doctor_id,
            )
            .order_by(desc(LabReport.report_date), desc(LabReport.id))
            .all()
        )

    def list_for_patient(self, db: Session, *, patient_id: int) -> List[LabReport]:
        return (
            db.query(LabReport)
            .filter(LabReport.patient_id == patient_id)
            .order_by(desc(LabReport.report_date), desc(LabReport.id))
            .all()
        )


vitals = CRUDVitals()
prescription = CRUDPrescription()
lab_report = CRUDLabReport()
