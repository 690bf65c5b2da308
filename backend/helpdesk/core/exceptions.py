"""
Custom exception hierarchy for structured error handling.

WHY: Every failure the API returns carries a stable, machine-checkable
``kind`` plus a human-readable message. Clients branch on ``kind``; the
message is for people. Handlers in exception_handlers.py render these
classes, so route code only ever raises.

Kinds:
    unauthorized   no, expired or invalid bearer token
    forbidden      valid token, insufficient role or tenant scope
    not_found      absent, or present in another tenant (masked)
    validation     malformed or out-of-range input, caught before any write
    conflict       uniqueness violations (ticket number, setting key, ...)
    invalid_state  illegal status transition, protected setting, bad type
    unavailable    collaborator failure (email transport, file store)

IMPORTANT: NEVER raise the base Exception class from application code.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500
    kind: str = "internal"
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "key", "api_key"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authentication & Authorization
# ============================================================================


class AuthenticationError(AppException):
    """
    Raised when authentication fails.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    kind = "unauthorized"
    default_message = "Authentication failed"


class TokenExpiredError(AuthenticationError):
    """Raised when a bearer token has expired."""

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationError):
    """Raised when a bearer token is malformed or has an invalid signature."""

    default_message = "Token is invalid"


class AuthorizationError(AppException):
    """
    Raised when the caller's role or tenant scope does not allow an action.

    WHY: Distinguishing authorization (403) from authentication (401) lets
    the front-end show "you don't have permission" instead of a login page.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    kind = "forbidden"
    default_message = "You do not have permission to perform this action"


# ============================================================================
# Validation
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    kind = "validation"
    default_message = "Validation failed"


class MissingTenantError(ValidationError):
    """
    Raised when a tenant-scoped operation is attempted by an account that
    belongs to no company (platform-level accounts creating tickets).
    """

    default_message = "A company is required for this operation"


# ============================================================================
# Resources
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    Also used for rows that exist in another tenant, so callers cannot
    probe for the existence of other companies' data.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    kind = "not_found"
    default_message = "Resource not found"


class TicketNotFoundError(ResourceNotFoundError):
    """Raised when a ticket doesn't exist or is outside the caller's tenant."""

    default_message = "Ticket not found"


class ConflictError(AppException):
    """
    Raised on uniqueness violations.

    HTTP Status: 409 Conflict
    """

    status_code = 409
    kind = "conflict"
    default_message = "Resource already exists"


class TicketNumberConflictError(ConflictError):
    """
    Raised when a unique ticket number could not be allocated within the
    configured number of attempts.
    """

    default_message = "Could not allocate a unique ticket number, please retry"


# ============================================================================
# State
# ============================================================================


class InvalidStateTransitionError(AppException):
    """
    Raised when an operation is not legal in the resource's current state.

    Used for ticket status transitions (Closed is terminal), unknown target
    statuses and unsupported setting data types.

    HTTP Status: 409 Conflict
    """

    status_code = 409
    kind = "invalid_state"
    default_message = "Invalid state transition"


class ProtectedSettingError(InvalidStateTransitionError):
    """Raised when a system-protected setting is modified or reset."""

    default_message = "System settings cannot be modified"


# ============================================================================
# External Services
# ============================================================================


class ExternalServiceError(AppException):
    """
    Base exception for collaborator failures (email, file store).

    HTTP Status: 503 Service Unavailable
    """

    status_code = 503
    kind = "unavailable"
    default_message = "External service unavailable"


class EmailServiceError(ExternalServiceError):
    """Raised when the email provider rejects or fails to deliver a message."""

    default_message = "Email service error"


class FileStorageError(ExternalServiceError):
    """Raised when the file store cannot read, write or delete a file."""

    default_message = "File storage unavailable"
