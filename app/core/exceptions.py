from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """Base class for errors raised by the approval workflow.

    Each subclass carries the HTTP status and stable error code the API
    layer reports, so services can raise without knowing about FastAPI.
    """

    status_code = 400
    code = "workflow_error"
    default_message = "Workflow action failed"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class Unauthorized(WorkflowError):
    status_code = 403
    code = "unauthorized_actor"
    default_message = "Actor is not authorized for the application's current stage"


class InvalidStageAction(WorkflowError):
    status_code = 409
    code = "invalid_stage_action"
    default_message = "Action is not valid for the application's current status"


class KeyLabelNotConfigured(InvalidStageAction):
    code = "key_label_not_configured"
    default_message = "No HSM key label configured for this officer"


class DocumentNotVerified(WorkflowError):
    status_code = 409
    code = "document_not_verified"
    default_message = "Required documents must be verified before signing"


class AppointmentNotCompleted(WorkflowError):
    status_code = 409
    code = "appointment_not_completed"
    default_message = "The document review appointment must be completed first"


class ApplicationNotFound(WorkflowError):
    status_code = 404
    code = "application_not_found"
    default_message = "Application not found"


class DocumentNotFound(WorkflowError):
    status_code = 404
    code = "document_not_found"
    default_message = "Document not found for this application"


class AppointmentNotFound(WorkflowError):
    status_code = 404
    code = "appointment_not_found"
    default_message = "Appointment not found for this application"


class OfficerNotFound(WorkflowError):
    status_code = 404
    code = "officer_not_found"
    default_message = "Officer not found"


class PaymentNotFound(WorkflowError):
    status_code = 404
    code = "payment_not_found"
    default_message = "Payment not found"


class OtpExpired(WorkflowError):
    status_code = 410
    code = "otp_expired"
    default_message = "OTP has expired or is no longer active; request a new one"


class OtpMismatch(WorkflowError):
    status_code = 400
    code = "otp_mismatch"
    default_message = "OTP does not match"


class OtpServiceUnavailable(WorkflowError):
    status_code = 503
    code = "otp_service_unavailable"
    default_message = "OTP service is unavailable"


class SignerServiceUnavailable(WorkflowError):
    status_code = 502
    code = "signer_service_unavailable"
    default_message = "Signing service failed; request a new OTP and retry"


class PaymentGatewayUnavailable(WorkflowError):
    status_code = 503
    code = "payment_gateway_unavailable"
    default_message = "Payment gateway is unavailable"


class PaymentSignatureInvalid(WorkflowError):
    status_code = 400
    code = "payment_signature_invalid"
    default_message = "Payment gateway response could not be verified"
