from .conversation import conversation, message
from .doctor import doctor
from .enrollment import enrollment, patient
from .history_request import history_request
from .health_data import vitals, prescription, lab_report
from .appointment import appointment

__all__ = [
    "conversation", "message", "doctor", "enrollment", "patient", "history_request",
    "vitals", "prescription", "lab_report", "appointment",
]
