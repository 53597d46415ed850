"""
Custom exceptions for the replication service with structured error context.

This module provides the exception hierarchy used by the REST clients, the
reconciliation engine and the alerting layer. Each exception carries context
information for debugging and for the operator alert emails.

Exception Hierarchy:
    SyncException (base)
    ├── UpstreamError
    │   └── MalformedResponseError
    ├── SyncConnectionError
    ├── MissingFieldError
    ├── AlertTransportError
    ├── ConfigurationError
    └── RecoverableError / FatalError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class SyncException(Exception):
    """
    Base exception for all replication errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (endpoint, url, record id, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        context = {k: v for k, v in self.context.items() if k != "error_timestamp"}
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Classification Mixins
# ============================================================================

class RecoverableError(SyncException):
    """
    Errors that abort only the current polling tick.

    The scheduler keeps running and the next tick retries from the state
    held in the status store.
    """
    pass


class FatalError(SyncException):
    """
    Errors that stop the scheduled service permanently.

    Use this for misconfiguration and unexpected upstream answers, where
    continuing would silently skip data.
    """
    pass


# ============================================================================
# Upstream Errors
# ============================================================================

class UpstreamError(FatalError):
    """
    Exception raised when an endpoint answers outside 2xx (and not 409).

    Context should include:
        - endpoint: Which of source / target / status_store answered
        - url: The requested URL
        - status_code: HTTP status code (None for non-HTTP protocol errors)
        - response_body: Response body (truncated)
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message, context, original_exception)
        self.status_code = status_code
        if status_code is not None:
            self.context["status_code"] = status_code


class MalformedResponseError(UpstreamError):
    """Response body could not be decoded or has an unexpected shape."""
    pass


class SyncConnectionError(RecoverableError):
    """
    Transport-level failure: connection refused, host unreachable or timeout.

    Context should include:
        - endpoint: Which endpoint could not be reached
        - url: The requested URL
    """
    pass


# ============================================================================
# Document Errors
# ============================================================================

class MissingFieldError(FatalError):
    """
    A configured field is absent on a discovered document.

    Context should include:
        - field_name: The configured field name
        - available_fields: Fields present on the document
    """
    pass


# ============================================================================
# Alerting / Configuration Errors
# ============================================================================

class AlertTransportError(SyncException):
    """
    Alert email could not be sent.

    Best-effort only: logged by the alert gateway, never escalated.
    """
    pass


class ConfigurationError(FatalError):
    """Service configuration is incomplete or invalid."""
    pass
