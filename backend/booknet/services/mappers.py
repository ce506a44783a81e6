"""
BookNet Backend — Presentation Mapper
======================================

What:  Pure functions turning ORM entities into read-only response projections.
Why:   Derived flags are computed here at read time and never stored, so
       they cannot drift from the loan and feedback rows they summarize.
Who:   Used by the book and feedback services for every listing/detail call.

Entities must arrive with the relationships the projection reads already
loaded (the catalog store's with_details / page queries do this).
"""

from typing import Callable, TypeVar

from booknet.models import Book, Feedback, LendingTransaction
from booknet.schemas.book import BookRequest, BookResponse, BorrowedBookResponse
from booknet.schemas.common import PageResponse
from booknet.schemas.feedback import FeedbackRequest, FeedbackResponse
from booknet.services.catalog_store import Page

E = TypeVar("E")
R = TypeVar("R")


def is_borrowed(book: Book) -> bool:
    """True while any loan on the book is still waiting for return approval."""
    return any(not history.return_approved for history in book.histories)


def to_book(request: BookRequest, owner_id: int) -> Book:
    return Book(
        title=request.title,
        author_name=request.author_name,
        isbn=request.isbn,
        synopsis=request.synopsis,
        shareable=request.shareable,
        archived=False,
        owner_id=owner_id,
    )


def to_book_response(book: Book) -> BookResponse:
    return BookResponse(
        id=book.id,
        title=book.title,
        author_name=book.author_name,
        isbn=book.isbn,
        owner=book.owner.full_name,
        synopsis=book.synopsis,
        cover=book.cover,
        rate=book.rate,
        archived=book.archived,
        shareable=book.shareable,
        is_borrowed=is_borrowed(book),
    )


def to_borrowed_book_response(transaction: LendingTransaction) -> BorrowedBookResponse:
    book = transaction.book
    return BorrowedBookResponse(
        id=book.id,
        transaction_id=transaction.id,
        title=book.title,
        author_name=book.author_name,
        isbn=book.isbn,
        rate=book.rate,
        borrower_name=transaction.user.full_name,
        owner_name=book.owner.full_name,
        returned=transaction.returned,
        return_approved=transaction.return_approved,
    )


def to_feedback(request: FeedbackRequest, author_id: int) -> Feedback:
    return Feedback(
        note=request.note,
        comment=request.comment,
        book_id=request.book_id,
        created_by=author_id,
    )


def to_feedback_response(feedback: Feedback, requester_id: int) -> FeedbackResponse:
    return FeedbackResponse(
        note=feedback.note,
        comment=feedback.comment,
        own_feedback=feedback.created_by == requester_id,
    )


def to_page_response(page: Page[E], mapper: Callable[[E], R]) -> PageResponse[R]:
    return PageResponse(
        content=[mapper(item) for item in page.items],
        number=page.number,
        size=page.size,
        total_elements=page.total_elements,
        total_pages=page.total_pages,
        first=page.first,
        last=page.last,
    )
