from fastapi import HTTPException
from app.constants.error_codes import ErrorCode


class AppException(HTTPException):
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: ErrorCode,
        details: dict | None = None,
    ):
        super().__init__(status_code=status_code, detail=message)
        self.error_code = error_code
        self.details = details


# =====================================================
# SALES DOCUMENT LIFECYCLE
# =====================================================
class InvalidTransition(AppException):
    """The requested event is not legal from the document's current status."""

    def __init__(self, current_status: str, event: str):
        super().__init__(
            409,
            f"Cannot {event} a document in status '{current_status}'",
            ErrorCode.INVALID_TRANSITION,
            {"current_status": current_status, "event": event},
        )
        self.current_status = current_status
        self.event = event


class MissingRejectionReason(AppException):
    def __init__(self):
        super().__init__(
            400,
            "A rejection reason is required",
            ErrorCode.MISSING_REJECTION_REASON,
        )


class InvalidReopenDate(AppException):
    def __init__(self, valid_until, today):
        super().__init__(
            400,
            "Valid until date must be in the future",
            ErrorCode.INVALID_REOPEN_DATE,
            {"valid_until": str(valid_until), "today": str(today)},
        )


class AlreadyConverted(AppException):
    def __init__(self, ref_number: str, invoice_ref: str | None):
        super().__init__(
            409,
            f"Document {ref_number} was already converted to invoice {invoice_ref}",
            ErrorCode.ALREADY_CONVERTED,
            {"ref_number": ref_number, "invoice_ref": invoice_ref},
        )


class NotEditableInCurrentState(AppException):
    def __init__(self, ref_number: str, status: str, converted: bool):
        reason = "it has been converted" if converted else f"its status is '{status}'"
        super().__init__(
            409,
            f"Document {ref_number} cannot be modified because {reason}",
            ErrorCode.NOT_EDITABLE_IN_CURRENT_STATE,
            {"ref_number": ref_number, "status": status, "converted": converted},
        )


class ValidationError(AppException):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(400, message, ErrorCode.VALIDATION_ERROR, details)


class Conflict(AppException):
    def __init__(self, message: str = "Document was modified by another request", details: dict | None = None):
        super().__init__(409, message, ErrorCode.CONFLICT, details)


class NotFound(AppException):
    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NOT_FOUND):
        super().__init__(404, message, error_code)


class PermissionDenied(AppException):
    def __init__(self, action: str):
        super().__init__(
            403,
            "Permission denied",
            ErrorCode.PERMISSION_DENIED,
            {"action": action},
        )


class InvoiceCreationFailed(AppException):
    def __init__(self, ref_number: str, reason: str):
        super().__init__(
            502,
            f"Invoice could not be created for {ref_number}",
            ErrorCode.INVOICE_CREATION_FAILED,
            {"ref_number": ref_number, "reason": reason},
        )
