from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from healthydialogue.schemas.common import OffsetPagination, PatientContact, ProgramSummary

AppointmentStatusLiteral = Literal["scheduled", "completed", "cancelled", "no_show"]


class AppointmentCreate(BaseModel):
    patient_id: int
    enrollment_id: Optional[int] = None
    title: Optional[str] = None
    appointment_type: str = "in-person"
    scheduled_at: datetime
    duration: int = Field(default=30, gt=0)
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    title: Optional[str] = None
    appointment_type: Optional[str] = None
    status: Optional[AppointmentStatusLiteral] = None
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, gt=0)
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = None


class AppointmentProgram(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class AppointmentWithDetails(BaseModel):
    id: int
    title: Optional[str] = None
    appointment_type: Optional[str] = None
    status: str
    scheduled_at: datetime
    duration: int
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    patient: PatientContact
    program: Optional[AppointmentProgram] = None

    model_config = ConfigDict(from_attributes=True)


class AppointmentListResponse(BaseModel):
    data: List[AppointmentWithDetails]
    pagination: OffsetPagination
