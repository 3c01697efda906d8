from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from healthydialogue.schemas.common import ProgramSummary


class EnrollmentSummary(BaseModel):
    id: int
    status: str
    start_date: date

    model_config = ConfigDict(from_attributes=True)


class PatientListItem(BaseModel):
    id: int
    name: str
    phone: str
    avatar_url: Optional[str] = None
    enrollment: EnrollmentSummary
    program: Optional[ProgramSummary] = None


class PatientSearchItem(BaseModel):
    id: int
    name: str
    phone: str
    avatar_url: Optional[str] = None
    program: Optional[ProgramSummary] = None


class PatientDetail(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    avatar_url: Optional[str] = None
    current_program: Optional[ProgramSummary] = None
    enrollment_status: str
    enrollment_start_date: date


class Vitals(BaseModel):
    id: int
    patient_id: int
    systolic_bp: Optional[int] = None
    diastolic_bp: Optional[int] = None
    heart_rate: Optional[int] = None
    weight: Optional[Decimal] = None
    height: Optional[Decimal] = None
    temperature: Optional[Decimal] = None
    oxygen_saturation: Optional[int] = None
    blood_sugar_fasting: Optional[int] = None
    blood_sugar_post_meal: Optional[int] = None
    respiratory_rate: Optional[int] = None
    notes: Optional[str] = None
    recorded_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProgramEnrollment(BaseModel):
    id: int
    status: str
    start_date: date
    end_date: Optional[date] = None
    program: ProgramSummary

    model_config = ConfigDict(from_attributes=True)


class OtherPrograms(BaseModel):
    active_count: int = 0
    completed_count: int = 0
    # Populated only under an approved history request
    items: Optional[List[ProgramEnrollment]] = None


class PatientPrograms(BaseModel):
    my_programs: List[ProgramEnrollment]
    other_programs: OtherPrograms


class Prescription(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    document_url: Optional[str] = None
    prescribed_date: date
    valid_until: Optional[date] = None
    is_active: bool
    doctor_id: int

    model_config = ConfigDict(from_attributes=True)


class PatientPrescriptions(BaseModel):
    my_prescriptions: List[Prescription]
    other_prescriptions_count: int
    other_prescriptions: Optional[List[Prescription]] = None


class SharedFor(BaseModel):
    program_id: Optional[int] = None
    program_name: Optional[str] = None


class LabReport(BaseModel):
    id: int
    title: str
    document_type: str
    description: Optional[str] = None
    document_url: Optional[str] = None
    report_date: date
    lab_name: Optional[str] = None
    shared_at: Optional[datetime] = None
    shared_for: Optional[SharedFor] = None
