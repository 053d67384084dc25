"""
Shared error handling for the Hotlist aggregation service.

Every error raised across the fetch-cache-dispatch pipeline derives from
HotlistError so the transport layer can map it to an HTTP status and a
structured body without leaking internals.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: int
    message: str
    error: str
    details: Dict[str, Any] = {}


class HotlistError(Exception):
    """Base exception for Hotlist services."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.status_code,
            message=self.message,
            error=self.code,
            details=self.details,
        )


class CacheUnavailable(HotlistError):
    """The cache storage medium failed; callers degrade to a miss."""

    status_code = 503

    def __init__(self, message: str = "Cache unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_UNAVAILABLE", message, details)


class InvalidTTL(HotlistError):
    """A non-positive TTL was passed to the cache."""

    status_code = 500

    def __init__(self, ttl_seconds: Any):
        super().__init__(
            "INVALID_TTL",
            f"TTL must be a positive number of seconds, got {ttl_seconds!r}",
            {"ttl_seconds": ttl_seconds},
        )


class UpstreamFailure(HotlistError):
    """An upstream producer failed."""

    status_code = 502

    def __init__(self, source: str, message: str = "Upstream request failed", details: Optional[Dict[str, Any]] = None):
        self.source = source
        super().__init__("UPSTREAM_FAILURE", f"{source}: {message}", details)


class UpstreamTimeout(UpstreamFailure):
    """An upstream producer did not settle within its timeout."""

    status_code = 504

    def __init__(self, source: str, timeout: float, details: Optional[Dict[str, Any]] = None):
        super().__init__(source, f"timed out after {timeout:g}s", details)
        self.code = "UPSTREAM_TIMEOUT"
        self.timeout = timeout


class UnknownSource(HotlistError):
    """Dispatch to a source key with no registered handler."""

    status_code = 404

    def __init__(self, source: str):
        self.source = source
        super().__init__("UNKNOWN_SOURCE", f"Unknown source: {source}", {"source": source})


class MalformedUpstreamPayload(HotlistError):
    """An upstream payload could not be parsed into list items."""

    status_code = 502

    def __init__(self, source: str, message: str = "Malformed upstream payload", details: Optional[Dict[str, Any]] = None):
        self.source = source
        super().__init__("MALFORMED_UPSTREAM_PAYLOAD", f"{source}: {message}", details)


class InvalidRequest(HotlistError):
    """Client supplied an invalid request body or parameter."""

    status_code = 400

    def __init__(self, message: str = "Invalid request", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_REQUEST", message, details)


class ServiceUnavailable(HotlistError):
    """A helper service is disabled or not configured."""

    status_code = 503

    def __init__(self, message: str = "Service unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_UNAVAILABLE", message, details)
