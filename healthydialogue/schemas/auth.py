from typing import Optional

from pydantic import BaseModel, ConfigDict


class LoginLinkRequest(BaseModel):
    identifier: str  # messaging-channel uuid or phone


class LoginLink(BaseModel):
    url: str
    token: str


class TokenPayload(BaseModel):
    sub: Optional[int] = None
    is_doctor: bool = False


class DoctorInfo(BaseModel):
    id: int
    name: str
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TokenValidation(BaseModel):
    valid: bool
    doctor: Optional[DoctorInfo] = None
    error: Optional[str] = None
