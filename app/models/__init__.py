from app.models.audit_log import AuditLog
from app.models.application import Application
from app.models.application_comment import ApplicationComment
from app.models.application_document import ApplicationDocument
from app.models.application_stage_review import ApplicationStageReview
from app.models.application_status_history import ApplicationStatusHistory
from app.models.appointment import Appointment
from app.models.officer import Officer
from app.models.otp_verification import OtpVerification
from app.models.payment import Payment
from app.models.user import User

__all__ = [
    "AuditLog",
    "Application",
    "ApplicationComment",
    "ApplicationDocument",
    "ApplicationStageReview",
    "ApplicationStatusHistory",
    "Appointment",
    "Officer",
    "OtpVerification",
    "Payment",
    "User",
]
