"""
Exception hierarchy for the GGE Tracker API.

Every error raised by the API derives from ``TrackerError`` and carries a
human-readable ``message``, a ``details`` dict for structured logs, a
``severity``, an ``is_retryable`` flag and a stable ``error_code``.

Only ``ggetracker.api.app`` turns these into HTTP status codes. The cache
and queue layers recover from store failures locally and raise nothing
fatal of their own.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    INFO = "info"  # expected, caller's fault
    WARNING = "warning"  # handled, likely transient
    ERROR = "error"
    CRITICAL = "critical"  # service cannot work


class TrackerError(Exception):
    """
    Base class for API errors.

    Subclasses set ``ERROR_CODE``, ``SEVERITY`` and ``RETRYABLE``; instances
    may override the last two.

    >>> TrackerError("Cache store unreachable", {"url": "redis://cache"}).to_dict()["error_code"]
    'TRACKER_ERROR'
    """

    ERROR_CODE = "TRACKER_ERROR"
    SEVERITY = ErrorSeverity.ERROR
    RETRYABLE = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}
        self.severity = severity or self.SEVERITY
        self.is_retryable = self.RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or self.ERROR_CODE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        if not self.details:
            return f"[{self.error_code}] {self.message}"
        return f"[{self.error_code}] {self.message} | {self.details}"


def _cause(error: Optional[BaseException]) -> Dict[str, Any]:
    if error is None:
        return {"error": None, "error_type": None}
    return {"error": str(error), "error_type": type(error).__name__}


class ConfigurationError(TrackerError):
    ERROR_CODE = "CONFIG_ERROR"
    SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            {"config_key": config_key, "message": message},
        )


class CacheStoreError(TrackerError):
    """
    The cache store was unreachable or rejected a command.

    The cache accessor turns this into a miss or a logged no-op; it only
    reaches callers of the store itself (startup, fill-version bumps).
    """

    ERROR_CODE = "CACHE_STORE_ERROR"
    SEVERITY = ErrorSeverity.WARNING
    RETRYABLE = True

    def __init__(
        self,
        operation: str,
        cache_key: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        self.cache_key = cache_key
        self.original_error = original_error
        target = f" for key '{cache_key}'" if cache_key else ""
        reason = str(original_error) if original_error else "operation failed"
        super().__init__(
            f"Cache store error during {operation}{target}: {reason}",
            {"operation": operation, "cache_key": cache_key, **_cause(original_error)},
        )


class UpstreamError(TrackerError):
    """The game proxy or the asset host failed; ``status_code`` is None for transport errors."""

    ERROR_CODE = "UPSTREAM_ERROR"
    SEVERITY = ErrorSeverity.WARNING
    RETRYABLE = True

    def __init__(self, url: str, status_code: Optional[int] = None, message: Optional[str] = None) -> None:
        self.url = url
        self.status_code = status_code
        if message is None:
            message = "Upstream request failed"
            if status_code is not None:
                message += f" with status {status_code}"
        super().__init__(message, {"url": url, "status_code": status_code})


class NotFoundError(TrackerError):
    ERROR_CODE = "NOT_FOUND"
    SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource: str, identifier: Any, message: Optional[str] = None) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            message or f"{resource} not found: {identifier}",
            {"resource": resource, "identifier": identifier},
        )


class InvalidInputError(TrackerError):
    ERROR_CODE = "INVALID_INPUT"
    SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message, {"field": field})


class AdmissionJobError(TrackerError):
    """
    Failure signal set on a job channel its handler left unfinalized.

    The message is deliberately generic; ``original_error`` is for logs only.
    """

    ERROR_CODE = "ADMISSION_JOB_FAILED"

    def __init__(self, queue_name: str, original_error: Optional[BaseException] = None) -> None:
        self.queue_name = queue_name
        self.original_error = original_error
        super().__init__(
            "Internal Server Error. Please try again later.",
            {"queue": queue_name, "error_type": type(original_error).__name__ if original_error else None},
        )


class ResourceUnavailableError(TrackerError):
    """A scarce resource (the headless browser) could not be launched."""

    ERROR_CODE = "RESOURCE_UNAVAILABLE"
    SEVERITY = ErrorSeverity.CRITICAL
    RETRYABLE = True

    def __init__(self, resource: str, original_error: Optional[BaseException] = None) -> None:
        self.resource = resource
        self.original_error = original_error
        reason = str(original_error) if original_error else "unavailable"
        super().__init__(
            f"Resource {resource} unavailable: {reason}",
            {"resource": resource, **_cause(original_error)},
        )
