"""
BookNet Backend — Book Request/Response Schemas
================================================

What:  Pydantic models for the book and loan API contracts.
Why:   Response projections are read-only views of the ORM entities; the
       derived flags (is_borrowed, rate) are computed by the presentation
       mapper and never persisted.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class BookRequest(BaseModel):
    """Payload for listing a new book. The owner is always the caller."""
    title: str = Field(min_length=1, max_length=255, description="Book title")
    author_name: str = Field(min_length=1, max_length=255, description="Author's name")
    isbn: str = Field(min_length=1, max_length=32, description="ISBN")
    synopsis: str = Field(default="", description="Short synopsis")
    shareable: bool = Field(default=False, description="Whether other users may borrow it")

    @field_validator("title", "author_name", "isbn")
    @classmethod
    def not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class BookResponse(BaseModel):
    """
    What:  Book summary shown in listings and on the detail page.

    Derived fields:
        - rate: mean of the book's feedback notes
        - is_borrowed: True while any loan on the book awaits return approval
    """
    id: int
    title: str
    author_name: str
    isbn: str
    owner: str = Field(description="Owner's full name")
    synopsis: str
    cover: Optional[str] = Field(default=None, description="Cover storage reference")
    rate: float = Field(description="Average feedback note (0.0 without feedback)")
    archived: bool
    shareable: bool
    is_borrowed: bool = Field(description="Whether an unapproved loan exists on this book")


class BorrowedBookResponse(BaseModel):
    """
    What:  One loan seen from either side (borrowed, returned or lent views).
    Why:   `id` is the book id so clients can call the lending endpoints
           directly; the loan itself is identified by transaction_id.
    """
    id: int = Field(description="Book id")
    transaction_id: int
    title: str
    author_name: str
    isbn: str
    rate: float
    borrower_name: str
    owner_name: str
    returned: bool
    return_approved: bool
