"""Error handling utilities for return claim processing."""

from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum


class ErrorType(Enum):
    """Enumeration of error types in the return processing system."""

    # Caller errors
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    AUTHENTICATION_INVALID = "AUTHENTICATION_INVALID"
    FORBIDDEN = "FORBIDDEN"
    INVALID_REQUEST = "INVALID_REQUEST"
    CLAIM_NOT_FOUND = "CLAIM_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # Model service errors
    MODEL_RATE_LIMIT = "MODEL_RATE_LIMIT"
    MODEL_TIMEOUT = "MODEL_TIMEOUT"
    MODEL_AUTH_ERROR = "MODEL_AUTH_ERROR"
    MODEL_INVALID_REQUEST = "MODEL_INVALID_REQUEST"
    MODEL_SERVICE_ERROR = "MODEL_SERVICE_ERROR"
    MODEL_UNPARSEABLE_OUTPUT = "MODEL_UNPARSEABLE_OUTPUT"
    AUTHENTICITY_CHECK_FAILED = "AUTHENTICITY_CHECK_FAILED"

    # Storage errors
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"

    # System errors
    CONFIG_INVALID = "CONFIG_INVALID"
    INITIALIZATION_FAILED = "INITIALIZATION_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# Messages shown to callers; upstream detail stays in server-side logs
PUBLIC_MESSAGES = {
    ErrorType.AUTHENTICATION_REQUIRED: "Authentication required",
    ErrorType.AUTHENTICATION_INVALID: "Authentication required",
    ErrorType.FORBIDDEN: "Not permitted",
    ErrorType.INVALID_REQUEST: "Invalid request data",
    ErrorType.INVALID_TRANSITION: "Invalid request data",
    ErrorType.CLAIM_NOT_FOUND: "Return request not found",
}
GENERIC_PUBLIC_MESSAGE = "Unable to process return request. Please try again later."


@dataclass
class ErrorContext:
    """
    Context information for errors in the return processing system.

    Attributes:
        error_type: Type of error from ErrorType enum
        message: Human-readable error message (server side only)
        recoverable: Whether the pipeline may continue past the error
        fallback_action: Optional description of fallback action taken
        details: Optional additional error details
        original_exception: Optional original exception that caused this error
    """

    error_type: ErrorType
    message: str
    recoverable: bool
    fallback_action: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    original_exception: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging."""
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "fallback_action": self.fallback_action,
            "details": self.details or {},
            "original_exception": str(self.original_exception) if self.original_exception else None
        }


class ReturnProcessingError(Exception):
    """
    Base exception for all return processing errors.

    Attributes:
        context: ErrorContext with detailed error information
    """

    def __init__(self, context: ErrorContext):
        self.context = context
        super().__init__(context.message)

    def __str__(self) -> str:
        base = f"{self.context.error_type.value}: {self.context.message}"
        if self.context.fallback_action:
            base += f" (Fallback: {self.context.fallback_action})"
        return base

    @property
    def error_type(self) -> ErrorType:
        return self.context.error_type

    @property
    def public_message(self) -> str:
        """Generic message safe to return to the caller."""
        return PUBLIC_MESSAGES.get(self.context.error_type, GENERIC_PUBLIC_MESSAGE)

    def to_dict(self) -> Dict[str, Any]:
        return self.context.to_dict()


class AuthenticationError(ReturnProcessingError):
    """Missing, invalid or insufficient bearer credential."""

    @classmethod
    def missing(cls) -> "AuthenticationError":
        return cls(ErrorContext(
            error_type=ErrorType.AUTHENTICATION_REQUIRED,
            message="Missing authorization header",
            recoverable=False,
        ))

    @classmethod
    def invalid(cls, reason: str, error: Optional[Exception] = None) -> "AuthenticationError":
        return cls(ErrorContext(
            error_type=ErrorType.AUTHENTICATION_INVALID,
            message=f"Invalid bearer credential: {reason}",
            recoverable=False,
            original_exception=error,
        ))

    @classmethod
    def forbidden(cls, user_id: str, required_role: str) -> "AuthenticationError":
        return cls(ErrorContext(
            error_type=ErrorType.FORBIDDEN,
            message=f"User {user_id} lacks role '{required_role}'",
            recoverable=False,
            details={"user_id": user_id, "required_role": required_role},
        ))


class ClaimValidationError(ReturnProcessingError):
    """Request rejected before any pipeline stage runs."""

    @classmethod
    def missing_fields(cls, fields) -> "ClaimValidationError":
        return cls(ErrorContext(
            error_type=ErrorType.INVALID_REQUEST,
            message=f"Missing required fields: {', '.join(fields)}",
            recoverable=False,
            details={"missing": list(fields)},
        ))

    @classmethod
    def unsupported_image(cls, image_reference: str) -> "ClaimValidationError":
        return cls(ErrorContext(
            error_type=ErrorType.INVALID_REQUEST,
            message=f"Unsupported image locator: {image_reference}",
            recoverable=False,
            details={"image_reference": image_reference},
        ))

    @classmethod
    def invalid_transition(cls, claim_id: str, reason: str) -> "ClaimValidationError":
        return cls(ErrorContext(
            error_type=ErrorType.INVALID_TRANSITION,
            message=f"Claim {claim_id}: {reason}",
            recoverable=False,
            details={"claim_id": claim_id},
        ))


class ClaimNotFoundError(ReturnProcessingError):
    """Referenced claim does not exist."""

    @classmethod
    def for_claim(cls, claim_id: str) -> "ClaimNotFoundError":
        return cls(ErrorContext(
            error_type=ErrorType.CLAIM_NOT_FOUND,
            message=f"Return claim {claim_id} not found",
            recoverable=False,
            details={"claim_id": claim_id},
        ))


class UpstreamModelError(ReturnProcessingError):
    """Fatal failure of a model-service call or of its structured output."""

    @classmethod
    def from_client_error(
        cls,
        error: Exception,
        operation: str,
        recoverable: bool = False,
        fallback_action: Optional[str] = None
    ) -> "UpstreamModelError":
        """
        Create UpstreamModelError from a botocore ClientError.

        Args:
            error: Original ClientError (or any exception)
            operation: Description of operation that failed
            recoverable: Whether error is recoverable
            fallback_action: Optional fallback action description

        Returns:
            UpstreamModelError instance
        """
        error_code = "Unknown"
        error_message = str(error)

        if hasattr(error, 'response'):
            error_info = error.response.get("Error", {})
            error_code = error_info.get("Code", "Unknown")
            error_message = error_info.get("Message", str(error))

        error_type_map = {
            "ThrottlingException": ErrorType.MODEL_RATE_LIMIT,
            "TooManyRequestsException": ErrorType.MODEL_RATE_LIMIT,
            "RequestTimeout": ErrorType.MODEL_TIMEOUT,
            "RequestTimeoutException": ErrorType.MODEL_TIMEOUT,
            "ModelTimeoutException": ErrorType.MODEL_TIMEOUT,
            "UnauthorizedException": ErrorType.MODEL_AUTH_ERROR,
            "AccessDeniedException": ErrorType.MODEL_AUTH_ERROR,
            "ValidationException": ErrorType.MODEL_INVALID_REQUEST,
        }

        context = ErrorContext(
            error_type=error_type_map.get(error_code, ErrorType.MODEL_SERVICE_ERROR),
            message=f"Model service error during {operation}: {error_message}",
            recoverable=recoverable,
            fallback_action=fallback_action,
            details={"error_code": error_code, "operation": operation},
            original_exception=error
        )
        return cls(context)

    @classmethod
    def unparseable(
        cls,
        operation: str,
        detail: str,
        error: Optional[Exception] = None
    ) -> "UpstreamModelError":
        """Create error for a model response that cannot be used."""
        return cls(ErrorContext(
            error_type=ErrorType.MODEL_UNPARSEABLE_OUTPUT,
            message=f"Unusable model output during {operation}: {detail}",
            recoverable=False,
            details={"operation": operation},
            original_exception=error,
        ))


class AuthenticityClassificationError(ReturnProcessingError):
    """Authenticity screening failed; always downgraded to a safe default."""

    @classmethod
    def downgraded(cls, image_reference: str, error: Exception) -> "AuthenticityClassificationError":
        return cls(ErrorContext(
            error_type=ErrorType.AUTHENTICITY_CHECK_FAILED,
            message=f"Authenticity check failed for '{image_reference}': {error}",
            recoverable=True,
            fallback_action="Assume authentic image of good quality",
            details={"image_reference": image_reference},
            original_exception=error,
        ))


class PersistenceError(ReturnProcessingError):
    """Relational store read or write failure."""

    @classmethod
    def from_exception(cls, operation: str, error: Exception) -> "PersistenceError":
        return cls(ErrorContext(
            error_type=ErrorType.PERSISTENCE_FAILED,
            message=f"Store operation '{operation}' failed: {error}",
            recoverable=False,
            details={"operation": operation},
            original_exception=error,
        ))
