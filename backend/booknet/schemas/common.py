"""
BookNet Backend — Shared Response Schemas
==========================================

What:  Page wrapper, error body and health body shared by every router.
Why:   Clients parse one pagination shape and one error shape everywhere.
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PageResponse(BaseModel, Generic[T]):
    """
    What:  One page of a page-number based listing.

    Pagination strategy:
        Page-number pagination (page 0 is the first page), sorted by
        creation time with the id as tie-breaker so that the order is total
        and a row never appears twice on the same page. Pages are not
        guaranteed consistent with each other under concurrent writes.
    """
    content: List[T] = Field(description="Items on this page")
    number: int = Field(description="Zero-based page index")
    size: int = Field(description="Requested page size")
    total_elements: int = Field(description="Items matching the query across all pages")
    total_pages: int = Field(description="Number of pages for this page size")
    first: bool = Field(description="Whether this is the first page")
    last: bool = Field(description="Whether this is the last page")


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "operation_not_permitted",
            "message": "The requested book is already borrowed",
            "details": {"reason": "already_borrowed", "book_id": 7},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
