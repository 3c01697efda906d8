from .common import (
    DataResponse, CreatedResponse, SuccessResponse, OffsetPagination, PatientSummary, PatientContact, ProgramSummary,
)
from .conversation import (
    ConversationFilters, TypeFilter, StatusFilter, MediaAttachment,
    ConversationCreate, ConversationListItem, ConversationDetail, ConversationCounts, ConversationListResponse,
    MessageCreate, Message, MessagePage, MessagePagination,
    CheckinListItem, CheckinListResponse, CheckinDetail, CountResponse,
    InboundMessage, InboundMessageResult,
)
from .history_request import HistoryScopes, HistoryRequestCreate, HistoryRequestDecision, HistoryRequest
from .patient import (
    EnrollmentSummary, PatientListItem, PatientSearchItem, PatientDetail, Vitals, ProgramEnrollment,
    PatientPrograms, OtherPrograms, Prescription, PatientPrescriptions, LabReport, SharedFor,
)
from .appointment import AppointmentCreate, AppointmentUpdate, AppointmentWithDetails, AppointmentListResponse
from .dashboard import DashboardStats, Schedule, WeeklySummary
from .auth import LoginLinkRequest, LoginLink, TokenPayload, DoctorInfo, TokenValidation
