from .doctor import Doctor
from .patient import Patient, TherapyProgram, PatientProgramEnrollment, EnrollmentStatus
from .conversation import Conversation, Message, ConversationType, ConversationStatus, Sender, ContentType
from .history_request import MedicalHistoryRequest, HistoryRequestStatus
from .health_data import PatientVitals, Prescription, LabReport, DocumentSharing
from .appointment import Appointment, AppointmentStatus
