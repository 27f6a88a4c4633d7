"""
SmartPick Exception Hierarchy

Every error raised by the reservation core carries a human-readable message,
a machine-readable code, optional details and the HTTP status it maps to at
the transport boundary. The message is what clients see; callers that need
finer handling match on its text (e.g. "penalty").

Exception Hierarchy:
    SmartPickError
    ├── ValidationFailedError
    ├── AuthorizationError
    ├── NotFoundError
    └── ConflictError
        └── PenaltyActiveError
"""
from datetime import datetime
from typing import Optional, Dict, Any


class SmartPickError(Exception):
    """
    Base exception for all SmartPick custom errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for logging
        details: Additional context for debugging/audit
        status_code: HTTP status used by the error handler
    """

    default_code: str = "SMARTPICK_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ValidationFailedError(SmartPickError):
    """Input is well-formed but not acceptable (e.g. no approved business)."""
    default_code = "VALIDATION_FAILED"
    status_code = 400


class AuthorizationError(SmartPickError):
    """Wrong role, or the actor does not own the resource."""
    default_code = "FORBIDDEN"
    status_code = 403


class NotFoundError(SmartPickError):
    """Reservation, product or business id does not resolve."""
    default_code = "NOT_FOUND"
    status_code = 404


class ConflictError(SmartPickError):
    """A precondition checked inside the transaction failed."""
    default_code = "CONFLICT"
    status_code = 409


class PenaltyActiveError(ConflictError):
    """User is blocked from reserving until penalty_until."""
    default_code = "PENALTY_ACTIVE"

    def __init__(self, message: str, penalty_until: datetime, **kwargs):
        details = kwargs.pop("details", {})
        details["penalty_until"] = penalty_until.isoformat()
        super().__init__(message, details=details, **kwargs)
        self.penalty_until = penalty_until
