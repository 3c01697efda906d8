from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, Date, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from healthydialogue.db.base import Base
from healthydialogue.utils.timezone import utcnow


class EnrollmentStatus:
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"

    ALL = (ACTIVE, COMPLETED, PAUSED, CANCELLED)


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    textit_uuid = Column(String(100), unique=True, nullable=True)
    name = Column(String(255), index=True, nullable=False)
    phone = Column(String(20), index=True, nullable=False)
    email = Column(String(255), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    avatar_url = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    enrollments = relationship("PatientProgramEnrollment", back_populates="patient")


class TherapyProgram(Base):
    __tablename__ = "therapy_programs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_days = Column(Integer, nullable=True)
    icon = Column(String(50), nullable=True)   # Icon identifier for UI
    color = Column(String(20), nullable=True)  # Color code for UI
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PatientProgramEnrollment(Base):
    """Authorization-bearing link between a doctor, a patient and a therapy program"""
    __tablename__ = "patient_program_enrollments"
    __table_args__ = (
        UniqueConstraint("patient_id", "doctor_id", "therapy_program_id", name="unique_patient_doctor_program"),
        Index("enrollments_doctor_patient_status_idx", "doctor_id", "patient_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    therapy_program_id = Column(Integer, ForeignKey("therapy_programs.id"), nullable=False)
    status = Column(String(20), default=EnrollmentStatus.ACTIVE, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    completed_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    patient = relationship("Patient", back_populates="enrollments")
    doctor = relationship("Doctor", back_populates="enrollments")
    program = relationship("TherapyProgram")
