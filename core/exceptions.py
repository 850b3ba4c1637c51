"""
Custom exceptions for the collection sync engine with structured error context.

Every exception carries a discriminating ``kind`` and a ``retryable`` flag so
that callers classify failures with a field check instead of inspecting the
message text.

Exception Hierarchy:
    SyncError (base)
    ├── ConfigurationError
    ├── ExtractionError
    │   ├── CatalogAPIError
    │   │   ├── AuthenticationError
    │   │   │   └── HandshakeTicketError
    │   │   ├── ResourceNotFoundError
    │   │   └── RateLimitError
    │   ├── TransientError
    │   │   └── ServerError
    │   ├── DataFormatError
    │   └── RetriesExhaustedError
    ├── PersistenceError
    ├── SyncInProgressError
    └── RetryableError / NonRetryableError (mixins)
"""

import enum
from typing import Optional, Dict, Any
from datetime import datetime


class ErrorKind(str, enum.Enum):
    """Discriminator for error classification"""
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    TRANSIENT = "transient"
    NOT_FOUND = "not_found"
    CLIENT = "client"
    DATA_FORMAT = "data_format"
    RETRIES_EXHAUSTED = "retries_exhausted"
    PERSISTENCE = "persistence"
    SYNC_IN_PROGRESS = "sync_in_progress"
    UNKNOWN = "unknown"


class SyncError(Exception):
    """
    Base exception for all sync-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (endpoint, status code, etc.)
        original_exception: The original exception that was caught (if any)
        kind: Error classification
        retryable: Whether retrying the failed operation may succeed
    """

    kind: ErrorKind = ErrorKind.UNKNOWN
    retryable: bool = False

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind.value,
            "retryable": self.retryable,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncError):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts and connection resets
    - Rate limiting (HTTP 429)
    - Server errors (HTTP 5xx)
    """

    retryable = True


class NonRetryableError(SyncError):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Missing configuration
    - Authentication failures (HTTP 401, 403)
    - Invalid or already used verification codes
    - Resource not found (HTTP 404)
    """

    retryable = False


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(NonRetryableError):
    """Required configuration (username, consumer pair, credential) is missing."""

    kind = ErrorKind.CONFIGURATION


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(SyncError):
    """Base exception for failures talking to the catalog API."""
    pass


class CatalogAPIError(NonRetryableError, ExtractionError):
    """
    Exception raised when the catalog API answers with an error status.

    Context should include:
        - endpoint: The endpoint that failed
        - status_code: HTTP status code
        - response_body: Response body (truncated if large)
    """

    kind = ErrorKind.CLIENT

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message, context, original_exception)
        self.status_code = status_code
        self.response_body = response_body
        if status_code is not None:
            self.context["status_code"] = status_code


class AuthenticationError(CatalogAPIError):
    """Authentication failures (HTTP 401, 403, rejected handshake) that should not be retried."""

    kind = ErrorKind.AUTHENTICATION


class HandshakeTicketError(AuthenticationError):
    """The handshake ticket is unknown or expired; the handshake must be restarted."""
    pass


class ResourceNotFoundError(CatalogAPIError):
    """Resource not found errors (HTTP 404) that should not be retried."""

    kind = ErrorKind.NOT_FOUND


class RateLimitError(RetryableError, CatalogAPIError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = 429,
        response_body: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, status_code, response_body, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after is not None:
            self.context["retry_after"] = retry_after


class TransientError(RetryableError, ExtractionError):
    """Network failures and timeouts that should be retried."""

    kind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message, context, original_exception)
        self.status_code = status_code
        self.response_body = response_body
        if status_code is not None:
            self.context["status_code"] = status_code


class ServerError(TransientError):
    """Server errors (HTTP 5xx) that should be retried."""

    kind = ErrorKind.TRANSIENT


class DataFormatError(NonRetryableError, ExtractionError):
    """The API answered successfully but the body could not be parsed."""

    kind = ErrorKind.DATA_FORMAT


class RetriesExhaustedError(NonRetryableError, ExtractionError):
    """
    Raised when a retryable operation kept failing until the policy gave up.

    Attributes:
        attempts: Total number of attempts made
        last_error: The error raised by the final attempt
    """

    kind = ErrorKind.RETRIES_EXHAUSTED

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Exception,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, context, original_exception=last_error)
        self.attempts = attempts
        self.last_error = last_error
        self.context["attempts"] = attempts


# ============================================================================
# Persistence Errors
# ============================================================================

class PersistenceError(NonRetryableError):
    """
    Exception raised when a database write fails and was rolled back.

    Context should include:
        - operation: Type of database operation (REPLACE, INSERT, UPDATE)
        - table_name: Name of the table
    """

    kind = ErrorKind.PERSISTENCE


# ============================================================================
# Orchestration Errors
# ============================================================================

class SyncInProgressError(NonRetryableError):
    """A sync run is already in flight in this process."""

    kind = ErrorKind.SYNC_IN_PROGRESS
