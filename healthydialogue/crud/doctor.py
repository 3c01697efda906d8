from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from healthydialogue.crud.base import CRUDBase
from healthydialogue.models.doctor import Doctor
from healthydialogue.schemas.auth import DoctorInfo


class CRUDDoctor(CRUDBase[Doctor, DoctorInfo, DoctorInfo]):
    def get_by_identifier(self, db: Session, identifier: str) -> Optional[Doctor]:
        """Look up an active doctor by messaging-channel uuid or phone number"""
        return (
            db.query(Doctor)
            .filter(or_(Doctor.textit_uuid == identifier, Doctor.phone == identifier))
            .filter(Doctor.is_active.is_(True))
            .first()
        )


doctor = CRUDDoctor(Doctor)
