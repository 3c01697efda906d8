from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class HistoryScopes(BaseModel):
    prescriptions: bool = True
    lab_reports: bool = True
    other_programs: bool = True

    def intersect(self, other: "HistoryScopes") -> "HistoryScopes":
        return HistoryScopes(
            prescriptions=self.prescriptions and other.prescriptions,
            lab_reports=self.lab_reports and other.lab_reports,
            other_programs=self.other_programs and other.other_programs,
        )


class HistoryRequestCreate(BaseModel):
    message: Optional[str] = None
    request_prescriptions: bool = True
    request_lab_reports: bool = True
    request_other_programs: bool = True

    @property
    def scopes(self) -> HistoryScopes:
        return HistoryScopes(
            prescriptions=self.request_prescriptions,
            lab_reports=self.request_lab_reports,
            other_programs=self.request_other_programs,
        )


class HistoryRequestDecision(BaseModel):
    """Patient's answer, delivered through the inbound channel"""
    patient_id: Optional[int] = None  # answering patient; must own the request when given
    approved: bool
    approve_prescriptions: Optional[bool] = None
    approve_lab_reports: Optional[bool] = None
    approve_other_programs: Optional[bool] = None
    message: Optional[str] = None

    @property
    def scopes(self) -> HistoryScopes:
        # Unspecified scopes default to whatever was requested
        return HistoryScopes(
            prescriptions=self.approve_prescriptions is not False,
            lab_reports=self.approve_lab_reports is not False,
            other_programs=self.approve_other_programs is not False,
        )


class HistoryRequest(BaseModel):
    id: int
    patient_id: int
    requesting_doctor_id: int
    enrollment_id: Optional[int] = None
    status: str
    requested_at: datetime
    responded_at: Optional[datetime] = None
    expires_at: datetime
    request_message: Optional[str] = None
    response_message: Optional[str] = None
    request_prescriptions: bool
    request_lab_reports: bool
    request_other_programs: bool
    approved_prescriptions: bool
    approved_lab_reports: bool
    approved_other_programs: bool
    approval_valid_until: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
