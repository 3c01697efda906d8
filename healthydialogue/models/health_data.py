from sqlalchemy import (
    Column, Integer, String, Boolean, Text, DateTime, Date, Numeric, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from healthydialogue.db.base import Base
from healthydialogue.utils.timezone import utcnow


class PatientVitals(Base):
    __tablename__ = "patient_vitals"
    __table_args__ = (
        Index("vitals_patient_date_idx", "patient_id", "recorded_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    recorded_by = Column(Integer, ForeignKey("doctors.id"), nullable=True)
    enrollment_id = Column(Integer, ForeignKey("patient_program_enrollments.id"), nullable=True)

    systolic_bp = Column(Integer, nullable=True)           # mmHg
    diastolic_bp = Column(Integer, nullable=True)          # mmHg
    heart_rate = Column(Integer, nullable=True)            # bpm
    weight = Column(Numeric(5, 2), nullable=True)          # kg
    height = Column(Numeric(5, 2), nullable=True)          # cm
    temperature = Column(Numeric(4, 1), nullable=True)     # Celsius
    oxygen_saturation = Column(Integer, nullable=True)     # percentage
    blood_sugar_fasting = Column(Integer, nullable=True)   # mg/dL
    blood_sugar_post_meal = Column(Integer, nullable=True) # mg/dL
    respiratory_rate = Column(Integer, nullable=True)      # breaths per minute

    notes = Column(Text, nullable=True)
    recorded_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Prescription(Base):
    """Prescription document issued by a doctor"""
    __tablename__ = "prescriptions"
    __table_args__ = (
        Index("prescriptions_patient_doctor_idx", "patient_id", "doctor_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    enrollment_id = Column(Integer, ForeignKey("patient_program_enrollments.id"), nullable=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    document_url = Column(Text, nullable=True)
    document_key = Column(String(255), nullable=True)

    prescribed_date = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    doctor = relationship("Doctor")


class LabReport(Base):
    __tablename__ = "lab_reports"
    __table_args__ = (
        Index("lab_reports_patient_date_idx", "patient_id", "report_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    uploaded_by = Column(Integer, ForeignKey("doctors.id"), nullable=True)  # Null if patient uploaded

    title = Column(String(255), nullable=False)
    document_type = Column(String(30), default="lab_report", nullable=False)  # prescription, lab_report, medical_record, imaging, other
    description = Column(Text, nullable=True)
    document_url = Column(Text, nullable=True)
    document_key = Column(String(255), nullable=True)

    report_date = Column(Date, nullable=False)
    lab_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class DocumentSharing(Base):
    """A lab report the patient shared with a specific doctor"""
    __tablename__ = "document_sharing"
    __table_args__ = (
        UniqueConstraint("lab_report_id", "shared_with_doctor_id", name="unique_document_sharing"),
    )

    id = Column(Integer, primary_key=True, index=True)
    lab_report_id = Column(Integer, ForeignKey("lab_reports.id"), nullable=False, index=True)
    shared_with_doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    enrollment_id = Column(Integer, ForeignKey("patient_program_enrollments.id"), nullable=True)

    shared_at = Column(DateTime, default=utcnow, nullable=False)
    shared_by_patient = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    lab_report = relationship("LabReport")
    enrollment = relationship("PatientProgramEnrollment")
