"""
Application and LLM error definitions
"""

from enum import Enum
from typing import Optional, Dict, Any
from dataclasses import dataclass


class LLMErrorCode(Enum):
    """Failure categories reported by text-generation providers"""

    # API
    RATE_LIMIT = "rate_limit"
    API_ERROR = "api_error"
    TIMEOUT = "timeout"

    # Auth / quota
    AUTH_FAILED = "auth_failed"
    INSUFFICIENT_QUOTA = "insufficient_quota"

    # Request
    INVALID_REQUEST = "invalid_request"
    CONTEXT_LENGTH_EXCEEDED = "context_length_exceeded"
    EMPTY_RESPONSE = "empty_response"

    # Network
    NETWORK_ERROR = "network_error"

    # Internal
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    UNKNOWN_ERROR = "unknown_error"


@dataclass
class LLMError(Exception):
    """Raised by the LLM layer for any failed generation"""

    error_code: LLMErrorCode
    provider: str
    retryable: bool
    original_error: Optional[Exception] = None
    error_message: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.error_message is None:
            self.error_message = f"LLM Error: {self.error_code.value} from {self.provider}"
        super().__init__(self.error_message)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the error for structured logging."""
        return {
            "error_code": self.error_code.value,
            "provider": self.provider,
            "retryable": self.retryable,
            "error_message": self.error_message,
            "original_error": str(self.original_error) if self.original_error else None,
            "metadata": self.metadata or {},
        }


# --- Standard Application Errors ---

class AppError(Exception):
    """Base application error class."""
    def __init__(self, code: str, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        """Returns a dictionary representation for API responses."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }

class NotFoundError(AppError):
    """To be raised when a resource is not found."""
    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            code="NOT_FOUND",
            message=f"{resource.capitalize()} with ID '{resource_id}' not found.",
            status_code=404,
            details={"resource": resource, "resource_id": str(resource_id)}
        )

class InvalidRequestError(AppError):
    """To be raised for validation or other bad request errors."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code="INVALID_REQUEST",
            message=message,
            status_code=400,
            details=details
        )

class UnauthorizedError(AppError):
    """To be raised for authentication errors."""
    def __init__(self, message: str = "Authentication required."):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401
        )

class ForbiddenError(AppError):
    """To be raised for authorization errors."""
    def __init__(self, message: str = "You do not have permission to perform this action."):
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403
        )


class MatchAccessDenied(ForbiddenError):
    """The caller is not one of the two participants of the match."""
    def __init__(self, match_id: Any = None):
        super().__init__("Access denied to this match")
        if match_id is not None:
            self.details = {"match_id": str(match_id)}
