"""
Admissions Errors

Every failure raised by the admissions lifecycle carries a machine-readable
error code and the HTTP status the routers should answer with.
"""

from gsos.modules.admissions.schemas import AdmissionStatus
from gsos.modules.admissions.transitions import VALID_STATUS_TRANSITIONS


class AdmissionError(Exception):
    """Base exception for admissions operations."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)

    def to_detail(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class ValidationError(AdmissionError):
    """Malformed or missing input."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__(
            "Application is invalid: " + "; ".join(self.problems),
            "VALIDATION_ERROR",
            422,
        )

    def to_detail(self) -> dict:
        return {**super().to_detail(), "problems": self.problems}


class AdmissionNotFoundError(AdmissionError):
    def __init__(self, admission_ref: str):
        super().__init__(
            f"Admission {admission_ref} not found",
            "ADMISSION_NOT_FOUND",
            404,
        )


class GuardianMismatchError(AdmissionError):
    """Email does not belong to any guardian on the application."""

    def __init__(self):
        super().__init__(
            "The email address does not match a guardian on this application",
            "GUARDIAN_MISMATCH",
            403,
        )


class InvalidTransitionError(AdmissionError):
    """Requested status change is not an edge of the lifecycle."""

    def __init__(
        self,
        current_status: AdmissionStatus,
        requested_status: AdmissionStatus,
        reason: str | None = None,
    ):
        self.current_status = current_status
        self.requested_status = requested_status
        self.reason = reason
        if reason:
            message = (
                f"Cannot transition from '{current_status.value}' to "
                f"'{requested_status.value}': {reason}"
            )
        else:
            valid = VALID_STATUS_TRANSITIONS.get(current_status, set())
            valid_str = ", ".join(sorted(s.value for s in valid)) if valid else "none (terminal state)"
            message = (
                f"Cannot transition from '{current_status.value}' to "
                f"'{requested_status.value}'. Valid transitions: {valid_str}"
            )
        super().__init__(message, "INVALID_STATUS_TRANSITION", 409)

    def to_detail(self) -> dict:
        return {
            **super().to_detail(),
            "current_status": self.current_status.value,
            "requested_status": self.requested_status.value,
        }


class InvalidStateError(AdmissionError):
    """Operation is not allowed in the admission's current status."""

    def __init__(self, current_status: AdmissionStatus, operation: str):
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} while application is '{current_status.value}'",
            "INVALID_STATE",
            409,
        )

    def to_detail(self) -> dict:
        return {**super().to_detail(), "current_status": self.current_status.value}


class ConflictError(AdmissionError):
    """A concurrent request changed the admission first."""

    def __init__(self, message: str = "Application was modified by another request"):
        super().__init__(message, "CONFLICT", 409)


class PersistenceError(AdmissionError):
    """The backing store failed; the operation is safe to retry."""

    def __init__(self, message: str = "Storage is temporarily unavailable"):
        super().__init__(message, "STORE_UNAVAILABLE", 503)


class DataIntegrityError(AdmissionError):
    """A stored record holds a value outside the domain."""

    def __init__(self, message: str):
        super().__init__(message, "DATA_INTEGRITY_ERROR", 500)
