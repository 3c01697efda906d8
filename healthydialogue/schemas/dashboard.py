from datetime import date
from typing import List

from pydantic import BaseModel

from healthydialogue.schemas.appointment import AppointmentWithDetails


class DashboardStats(BaseModel):
    active_patients: int
    pending_queries: int
    checkins_today: int
    appointments_today: int
    total_unread: int


class Schedule(BaseModel):
    data: List[AppointmentWithDetails]
    date: date


class WeeklySummary(BaseModel):
    queries_resolved: int
    checkins_reviewed: int
    week_start_date: date
