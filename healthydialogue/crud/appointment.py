from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from healthydialogue.crud.base import CRUDBase
from healthydialogue.models.appointment import Appointment, AppointmentStatus
from healthydialogue.models.patient import PatientProgramEnrollment
from healthydialogue.schemas.appointment import AppointmentCreate, AppointmentUpdate
from healthydialogue.utils.timezone import to_utc_naive, utcnow


class CRUDAppointment(CRUDBase[Appointment, AppointmentCreate, AppointmentUpdate]):
    def _with_details(self, query):
        return query.options(
            joinedload(Appointment.patient),
            joinedload(Appointment.enrollment).joinedload(PatientProgramEnrollment.program),
        )

    def create_for_doctor(
        self, db: Session, *, obj_in: AppointmentCreate, doctor_id: int, enrollment_id: Optional[int]
    ) -> Appointment:
        obj_in_data = obj_in.model_dump()
        obj_in_data["doctor_id"] = doctor_id
        obj_in_data["enrollment_id"] = enrollment_id
        obj_in_data["scheduled_at"] = to_utc_naive(obj_in.scheduled_at)
        obj_in_data["end_time"] = obj_in_data["scheduled_at"] + timedelta(minutes=obj_in.duration)
        obj_in_data["status"] = AppointmentStatus.SCHEDULED
        obj_in_data["updated_at"] = utcnow()
        db_obj = self.model(**obj_in_data)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get_doctor_appointments(
        self,
        db: Session,
        *,
        doctor_id: int,
        status: Optional[str] = None,
        upcoming: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Appointment], int]:
        query = db.query(self.model).filter(Appointment.doctor_id == doctor_id)
        if status:
            query = query.filter(Appointment.status == status)
        if upcoming:
            query = query.filter(Appointment.scheduled_at >= utcnow())
        total = query.count()
        order = Appointment.scheduled_at.asc() if upcoming else Appointment.scheduled_at.desc()
        items = (
            self._with_details(query)
            .order_by(order, Appointment.id)
            .offset(skip)
            .limit(limit)
            .all()
        )
        return items, total

    def get_for_doctor(self, db: Session, *, appointment_id: int, doctor_id: int) -> Optional[Appointment]:
        return (
            self._with_details(db.query(self.model))
            .filter(Appointment.id == appointment_id, Appointment.doctor_id == doctor_id)
            .first()
        )

    def update_appointment(self, db: Session, *, db_obj: Appointment, obj_in: AppointmentUpdate) -> Appointment:
        obj_data = obj_in.model_dump(exclude_unset=True, exclude_none=True)
        if "scheduled_at" in obj_data:
            obj_data["scheduled_at"] = to_utc_naive(obj_data["scheduled_at"])
        for field in obj_data:
            setattr(db_obj, field, obj_data[field])

        # Keep end_time consistent with the (possibly new) start and duration
        db_obj.end_time = db_obj.scheduled_at + timedelta(minutes=db_obj.duration)
        db_obj.updated_at = utcnow()

        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def cancel(self, db: Session, *, db_obj: Appointment) -> Appointment:
        db_obj.status = AppointmentStatus.CANCELLED
        db_obj.updated_at = utcnow()
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def scheduled_between(
        self, db: Session, *, doctor_id: int, start: datetime, end: datetime
    ) -> List[Appointment]:
        return (
            self._with_details(db.query(self.model))
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.scheduled_at >= start,
                Appointment.scheduled_at < end,
                Appointment.status != AppointmentStatus.CANCELLED,
            )
            .order_by(Appointment.scheduled_at)
            .all()
        )

    def count_scheduled_between(self, db: Session, *, doctor_id: int, start: datetime, end: datetime) -> int:
        return (
            db.query(func.count(Appointment.id))
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.scheduled_at >= start,
                Appointment.scheduled_at < end,
                Appointment.status == AppointmentStatus.SCHEDULED,
            )
            .scalar()
        ) or 0


appointment = CRUDAppointment(Appointment)
