from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from healthydialogue.db.base import Base
from healthydialogue.utils.timezone import utcnow


class AppointmentStatus:
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    ALL = (SCHEDULED, COMPLETED, CANCELLED, NO_SHOW)


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("appointments_doctor_date_idx", "doctor_id", "scheduled_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    enrollment_id = Column(Integer, ForeignKey("patient_program_enrollments.id"), nullable=True)

    title = Column(String(255), nullable=True)             # "Follow-up", "Initial Consultation"
    appointment_type = Column(String(50), nullable=True)   # "in-person", "video", "phone"
    status = Column(String(20), default=AppointmentStatus.SCHEDULED, nullable=False, index=True)

    scheduled_at = Column(DateTime, nullable=False)
    duration = Column(Integer, default=30, nullable=False)  # minutes
    end_time = Column(DateTime, nullable=True)

    location = Column(Text, nullable=True)
    meeting_link = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    reminder_sent = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    patient = relationship("Patient")
    doctor = relationship("Doctor")
    enrollment = relationship("PatientProgramEnrollment")

    @property
    def program(self):
        return self.enrollment.program if self.enrollment else None
