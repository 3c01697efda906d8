from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime
from sqlalchemy.orm import relationship

from healthydialogue.db.base import Base
from healthydialogue.utils.timezone import utcnow


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    textit_uuid = Column(String(100), unique=True, nullable=True)  # Messaging channel contact id
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=True)
    phone = Column(String(20), index=True, nullable=False)
    registration_number = Column(String(50), unique=True, nullable=True)  # Medical council registration
    qualifications = Column(Text, nullable=True)  # e.g., "MBBS, MD, FRCP"
    avatar_url = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    enrollments = relationship("PatientProgramEnrollment", back_populates="doctor")
