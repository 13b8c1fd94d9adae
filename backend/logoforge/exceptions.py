"""
LogoForge Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for the error scenarios of the logo API.
Why:   Services raise typed errors; global handlers in main.py turn each type
       into a status code and a structured JSON body. No handler ever needs to
       inspect a message string to decide what happened.
How:   Each exception carries a user-safe message and an optional context dict.

Exception Hierarchy:
    LogoForgeError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── OutOfRangeError          → 400 Bad Request (reorder target outside [0, N))
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict (re-read and retry)
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── DatabaseError            → 500 Internal Server Error
    ├── UpstreamMediaError       → 502 Bad Gateway (media host failed)
    ├── CircuitBreakerOpenError  → 503 Service Unavailable (media circuit open)
    └── RenderTimeoutError       → 504 Gateway Timeout (render deadline passed)
"""

from typing import Any, Dict, Optional


class LogoForgeError(Exception):
    """
    Base exception for all LogoForge application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for 4xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(LogoForgeError):
    """
    Raised when client input fails a business rule.

    When:    Out-of-range normalized field, kind/payload mismatch, z_index
             collision, unsorted gradient stops, bad upload.
    HTTP:    400 Bad Request

    Pydantic schema failures on request bodies still surface as FastAPI's 422;
    this error covers the rules checked by the services and the layer model.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class OutOfRangeError(LogoForgeError):
    """
    Raised when a reorder target index falls outside [0, N).

    The z-order maintainer never clamps; callers must send a valid index.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        index: int,
        size: int,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"Target index {index} is outside the valid range [0, {size})"
        ctx = context or {}
        ctx.update({"index": index, "size": size})
        super().__init__(message=message, context=ctx)
        self.index = index
        self.size = size


class NotFoundError(LogoForgeError):
    """
    Raised when a referenced logo/layer/asset/font/template does not exist.

    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(LogoForgeError):
    """
    Raised when a concurrent mutation would break the z_index invariant.

    What:    The layer set of a logo changed under us (or was already gapped),
             so applying the requested move would produce duplicate or missing
             indices.
    HTTP:    409 Conflict. The client re-reads the logo and retries.
    """

    def __init__(
        self,
        message: str = "The layer order changed concurrently. Reload and try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamMediaError(LogoForgeError):
    """
    Raised when the media host fails an upload, delete or transform call.

    When:    After tenacity retries are exhausted, or on a non-retryable 4xx.
    HTTP:    502 Bad Gateway

    Asset rows are never committed for a failed upload. A failed upstream
    delete is logged and does not block removal of the local record.
    """

    def __init__(
        self,
        message: str = "The media host is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(LogoForgeError):
    """
    Raised when the media host circuit breaker is OPEN.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for M seconds)
        → After M seconds → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED; if it fails → OPEN again
    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"The media host is unavailable due to repeated failures. "
            f"Retrying in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class RenderTimeoutError(LogoForgeError):
    """
    Raised when a render or snapshot passes its caller-supplied deadline.

    Rendering is pure, so aborting leaves no partial state behind.
    HTTP:    504 Gateway Timeout
    """

    def __init__(
        self,
        message: str = "Rendering took too long and was cancelled",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(LogoForgeError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error. The client always gets a generic
             message; the context is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(LogoForgeError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests (with Retry-After header)
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
