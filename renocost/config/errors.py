"""RenoCost error handling.

Custom exceptions and error codes for the estimate generation pipeline.
"""

from enum import Enum
from typing import Optional, Dict, Any, List


# Error Codes
class ErrorCode:
    """Error code constants."""

    # Configuration Errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    API_KEY_MISSING = "API_KEY_MISSING"
    API_KEY_REJECTED = "API_KEY_REJECTED"

    # Transport Errors
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"

    # Model Errors
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"
    MODEL_EMPTY_RESPONSE = "MODEL_EMPTY_RESPONSE"

    # Normalization Errors
    RESPONSE_UNUSABLE = "RESPONSE_UNUSABLE"


class TransportErrorKind(str, Enum):
    """Failure classes produced by the transport layer."""

    INVALID_TARGET = "invalid_target"
    NO_DATA = "no_data"
    DECODE_FAILED = "decode_failed"
    ENCODE_FAILED = "encode_failed"
    HTTP_ERROR = "http_error"
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    SERVER_FAULT = "server_fault"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    TransportErrorKind.TIMEOUT,
    TransportErrorKind.UNREACHABLE,
    TransportErrorKind.RATE_LIMITED,
    TransportErrorKind.SERVER_FAULT,
})


class EstimatorError(Exception):
    """Base exception for RenoCost errors.

    Provides structured error information for callers.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize EstimatorError.

        Args:
            code: Error code from ErrorCode constants
            message: Human-readable error message
            details: Additional error context
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response.

        Returns:
            Dictionary with code, message, and details.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class TransportError(EstimatorError):
    """Transport-level failure with a fixed kind."""

    def __init__(
        self,
        kind: TransportErrorKind,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        retry_after: Optional[float] = None,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=ErrorCode.TRANSPORT_ERROR,
            message=message or _default_transport_message(kind, status_code, body, retry_after),
            details={
                **(details or {}),
                "kind": kind.value,
                "status_code": status_code,
            }
        )
        self.kind = kind
        self.status_code = status_code
        self.body = body
        self.retry_after = retry_after
        self.attempts = 0

    @property
    def is_retryable(self) -> bool:
        """Whether the transport should retry after this failure."""
        return self.kind in RETRYABLE_KINDS

    @property
    def is_payload_too_large(self) -> bool:
        return self.kind == TransportErrorKind.HTTP_ERROR and self.status_code == 413


def _default_transport_message(
    kind: TransportErrorKind,
    status_code: Optional[int],
    body: Optional[str],
    retry_after: Optional[float]
) -> str:
    if kind == TransportErrorKind.HTTP_ERROR:
        return f"HTTP Error {status_code}: {body or 'Unknown error'}"
    if kind == TransportErrorKind.RATE_LIMITED:
        if retry_after is not None:
            return f"Rate limited. Retry after {retry_after:g} seconds"
        return "Rate limited. Please try again later"
    if kind == TransportErrorKind.SERVER_FAULT:
        return f"Server error: {body or 'Internal server error'}"
    return {
        TransportErrorKind.INVALID_TARGET: "Invalid URL provided",
        TransportErrorKind.NO_DATA: "No data received from server",
        TransportErrorKind.DECODE_FAILED: "Failed to decode response",
        TransportErrorKind.ENCODE_FAILED: "Failed to encode request",
        TransportErrorKind.UNREACHABLE: "Network connection unavailable",
        TransportErrorKind.TIMEOUT: "Request timed out",
        TransportErrorKind.UNAUTHORIZED: "Authentication required",
        TransportErrorKind.CANCELLED: "Request was cancelled",
    }.get(kind, "Unknown transport error")


class ConfigurationError(EstimatorError):
    """Missing or rejected credentials. Fatal, never retried."""

    def __init__(self, message: str, code: str = ErrorCode.CONFIGURATION_ERROR, details: Optional[Dict] = None):
        super().__init__(code=code, message=message, details=details)


class ModelUnavailableError(EstimatorError):
    """Every model tier in the cascade failed."""

    def __init__(self, failures: List[Dict[str, Any]], details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.MODEL_UNAVAILABLE,
            message=f"All {len(failures)} model tiers failed",
            details={**(details or {}), "failures": failures}
        )
        self.failures = failures


class UnusableResponseError(EstimatorError):
    """Model output contained no extractable cost signal."""

    def __init__(self, message: str = "No cost signal found in model response", details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.RESPONSE_UNUSABLE,
            message=message,
            details=details
        )
