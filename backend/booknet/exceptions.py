"""
BookNet Backend — Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for the lending engine and its collaborators.
Why:   Typed failures let the HTTP layer map each rule violation to the right
       status code without the services knowing anything about HTTP.
How:   Each exception carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and the catalog store; caught by global handlers.

Exception Hierarchy:
    BookNetError (base)
    ├── ValidationError              → 400 Bad Request (client can fix)
    ├── AuthenticationError          → 401 Unauthorized (no usable identity)
    ├── OperationNotPermittedError   → 403 Forbidden (lending rule violated)
    ├── NotFoundError                → 404 Not Found
    ├── ConflictError                → 409 Conflict (concurrent write raced)
    ├── StoreUnavailableError        → 503 Service Unavailable
    └── DatabaseError                → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class BookNetError(Exception):
    """
    Base exception for all BookNet application errors.

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


class ValidationError(BookNetError):
    """
    Raised when client input fails a business validation rule.

    HTTP: 400 Bad Request
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


class AuthenticationError(BookNetError):
    """
    Raised when the request carries no verified identity.

    The authenticating gateway injects the caller's user id; a request
    without one never reaches the lending engine.
    HTTP: 401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class OperationNotPermittedError(BookNetError):
    """
    Raised when a lending invariant would be violated.

    What:    Ownership, archived/shareable state, duplicate borrow, missing
             loan, or an outstanding loan blocking an archive.
    HTTP:    403 Forbidden

    The `reason` code distinguishes the rule that was violated so clients
    can react without parsing the message:

        not_shareable     book is archived or not shareable
        own_book          requester owns the book they tried to borrow/return
        already_borrowed  requester already holds an outstanding loan
        not_borrowed      requester holds no outstanding loan on the book
        already_returned  borrower already marked the loan returned
        not_owner         only the owner may perform this operation
        no_loan_to_approve  no outstanding loan on the owner's book
        not_returned_yet  approval requires the borrower to return first
        loan_outstanding  archive blocked by an unapproved loan

    Never retried.
    """

    def __init__(
        self,
        message: str,
        reason: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["reason"] = reason
        super().__init__(message=message, context=ctx)
        self.reason = reason


class NotFoundError(BookNetError):
    """
    Raised when a requested resource does not exist.

    HTTP: 404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"No {resource} found with the id {resource_id}"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(BookNetError):
    """
    Raised when a concurrent write raced with this operation.

    What:    A uniqueness constraint, stale row version, or serialization
             failure rejected our write.
    HTTP:    409 Conflict

    Recovery:
        The lending engine rolls back and retries the validate-write step
        once against fresh state; a second conflict is surfaced.
    """

    def __init__(
        self,
        message: str = "The resource was modified concurrently. Please retry.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StoreUnavailableError(BookNetError):
    """
    Raised when the persistence layer cannot be reached.

    HTTP: 503 Service Unavailable
    Surfaced without retry; retry policy belongs to the caller.
    """

    def __init__(
        self,
        message: str = "The catalog store is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(BookNetError):
    """
    Raised when database operations fail unexpectedly.

    HTTP: 500 Internal Server Error

    Security Note:
        The message returned to the client is always generic.
        Detailed error info is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
