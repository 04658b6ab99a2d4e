"""
Typed failures for the examination portal

Every expected, caller-recoverable condition has its own class so the
client can tell "already attempted" from "not yet open" from "already
submitted". Only unexpected infrastructure failures surface as an opaque
internal error.

Usage:
    from app.exceptions import AlreadyAttempted

    if attempt.completed:
        raise AlreadyAttempted(exam_id)
"""
from typing import Optional, Any, Dict


class PortalError(Exception):
    """Base exception for all portal errors"""
    
    status_code = 500
    
    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }


# ============================================
# Identity & authorization
# ============================================

class Unauthenticated(PortalError):
    """No valid bearer credential on the request"""
    
    status_code = 401
    
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message, code="unauthenticated")


class Forbidden(PortalError):
    """Authenticated, but the role may not perform this operation"""
    
    status_code = 403
    
    def __init__(self, message: str = "Not authorized for this operation"):
        super().__init__(message, code="forbidden")


# ============================================
# Resources
# ============================================

class NotFound(PortalError):
    """Exam, question or attempt does not exist"""
    
    status_code = 404
    
    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code="not_found",
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


# ============================================
# Attempt lifecycle
# ============================================

class AlreadyAttempted(PortalError):
    """A completed attempt exists for this exam and student"""
    
    status_code = 409
    
    def __init__(self, exam_id: Any):
        super().__init__(
            "You have already attempted this exam",
            code="already_attempted",
            details={"exam_id": str(exam_id)},
        )


class AlreadySubmitted(PortalError):
    """Submit was called on an attempt that is already completed"""
    
    status_code = 409
    
    def __init__(self, exam_id: Any):
        super().__init__(
            "This exam has already been submitted",
            code="already_submitted",
            details={"exam_id": str(exam_id)},
        )


class NotStarted(PortalError):
    """Submit was called without a prior start"""
    
    status_code = 409
    
    def __init__(self, exam_id: Any):
        super().__init__(
            "Exam attempt has not been started",
            code="not_started",
            details={"exam_id": str(exam_id)},
        )


class ExamNotAvailable(PortalError):
    """The exam is inactive or outside its window for a new attempt"""
    
    status_code = 403
    
    def __init__(self, exam_id: Any, status: str):
        super().__init__(
            f"Exam is not available for new attempts ({status})",
            code="exam_not_available",
            details={"exam_id": str(exam_id), "exam_status": status},
        )


class NotYetCompleted(PortalError):
    """Attempt detail was requested before submission"""
    
    status_code = 409
    
    def __init__(self, attempt_id: Any):
        super().__init__(
            "Attempt has not been submitted yet",
            code="not_yet_completed",
            details={"attempt_id": str(attempt_id)},
        )


# ============================================
# Payloads
# ============================================

class ValidationFailed(PortalError):
    """Malformed request payload"""
    
    status_code = 422
    
    def __init__(self, message: str = "Request validation failed", errors: Optional[list] = None):
        super().__init__(message, code="validation_failed", details={"errors": errors or []})
