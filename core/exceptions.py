"""
Business error types and error codes

Code ranges:
1000-1999: authentication and permissions
3000-3999: consultations
4000-4999: prescriptions
"""
import enum
from typing import Any, Dict, Optional


class ErrorCode(enum.Enum):
    # (code, http status, default message)
    PARAM_ERROR = (400, 400, "Invalid parameters")
    UNAUTHORIZED = (401, 401, "Authentication required")
    FORBIDDEN = (403, 403, "Permission denied")
    NOT_FOUND = (404, 404, "Resource not found")
    INTERNAL_ERROR = (500, 500, "Internal server error")

    AUTH_TOKEN_INVALID = (1003, 401, "Invalid token")
    AUTH_ROLE_NOT_ALLOWED = (1006, 403, "Role not allowed")

    CONSULT_NOT_FOUND = (3001, 404, "Consultation not found")
    CONSULT_STATUS_INVALID = (3002, 409, "Consultation status does not allow this operation")
    CONSULT_NOT_BELONG = (3003, 403, "Not allowed to access this consultation")
    DOCTOR_NOT_FOUND = (3006, 404, "Doctor not found")

    PRESCRIPTION_NOT_FOUND = (4001, 404, "Prescription not found")
    PRESCRIPTION_STATUS_INVALID = (4002, 409, "Prescription status does not allow this operation")
    PRESCRIPTION_NOT_BELONG = (4005, 403, "Not allowed to modify this prescription")

    def __init__(self, code: int, http_status: int, message: str):
        self.code = code
        self.http_status = http_status
        self.message = message


class BusinessError(Exception):
    """Error raised by services and rendered by the API error handler"""

    def __init__(
        self,
        error_code: ErrorCode,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.error_code = error_code
        self.message = message or error_code.message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.error_code.http_status


class InvalidTransitionError(BusinessError):
    """Requested status change is not an allowed edge"""

    def __init__(self, error_code: ErrorCode, current: Any, target: Any) -> None:
        current_code = getattr(current, "value", current)
        target_code = getattr(target, "value", target)
        message = f"Illegal status transition: {current_code} -> {target_code}"
        super().__init__(
            error_code, message, {"current": current_code, "target": target_code}
        )
        self.current = current
        self.target = target
