from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from healthydialogue.db.base import Base
from healthydialogue.utils.timezone import utcnow


class HistoryRequestStatus:
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"

    ALL = (PENDING, APPROVED, DENIED, EXPIRED)
    TERMINAL = (APPROVED, DENIED, EXPIRED)


class MedicalHistoryRequest(Base):
    """A doctor's request for consent to see a patient's data outside their own enrollment"""
    __tablename__ = "medical_history_requests"
    __table_args__ = (
        Index("history_requests_patient_doctor_idx", "patient_id", "requesting_doctor_id", "requested_at"),
        Index("history_requests_status_idx", "status"),
        # At most one pending request per (patient, doctor)
        Index(
            "history_requests_one_pending_idx",
            "patient_id",
            "requesting_doctor_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    requesting_doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    enrollment_id = Column(Integer, ForeignKey("patient_program_enrollments.id"), nullable=True)

    status = Column(String(20), default=HistoryRequestStatus.PENDING, nullable=False)
    requested_at = Column(DateTime, default=utcnow, nullable=False)
    responded_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)

    request_message = Column(Text, nullable=True)
    response_message = Column(Text, nullable=True)

    # What was requested
    request_prescriptions = Column(Boolean, default=True, nullable=False)
    request_lab_reports = Column(Boolean, default=True, nullable=False)
    request_other_programs = Column(Boolean, default=True, nullable=False)

    # Approval scope, meaningful only when status == approved
    approved_prescriptions = Column(Boolean, default=False, nullable=False)
    approved_lab_reports = Column(Boolean, default=False, nullable=False)
    approved_other_programs = Column(Boolean, default=False, nullable=False)
    approval_valid_until = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    patient = relationship("Patient")
    requesting_doctor = relationship("Doctor")
