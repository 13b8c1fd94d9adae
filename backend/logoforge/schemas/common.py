"""
LogoForge Backend — Shared Response Schemas
=============================================

What:  Error envelope, health report and the pagination wrapper used by every
       list endpoint.
Why:   Clients parse one error shape and one page shape across the whole API.
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "out_of_range",
            "message": "Target index 7 is outside the valid range [0, 4)",
            "details": {"index": 7, "size": 4},
            "request_id": "1f0c2d9a"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class Page(BaseModel, Generic[T]):
    """
    Cursor-paginated list.

    How cursor works:
        - next_cursor: created_at (ISO 8601) of the last item on this page
        - the client sends it back as `cursor` to get the next (older) page
        - the server filters WHERE created_at < :cursor
    """
    items: List[T] = Field(description="Items on this page, newest first")
    total_count: int = Field(description="Total number of items matching the filters")
    next_cursor: Optional[str] = Field(default=None, description="Cursor for the next page")
    has_more: bool = Field(description="Whether more pages are available")


class HealthResponse(BaseModel):
    """
    Health check response showing service and dependency status.

    status: healthy (all up), degraded (media host down), unhealthy (database down)
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    media: str = Field(description="Media host status: available, unavailable, circuit_open")
    media_backend: str = Field(description="Configured media backend")
    uptime_seconds: float = Field(description="Seconds since service started")
