"""
BookNet Backend — Book & Lending Route Handlers
================================================

What:  Book listing/creation endpoints and the five lending operations.
How:   Extracts the acting user id and path/query params, delegates to the
       book service or the lending engine, returns JSON.

Route order matters: the fixed paths (/books/owner, /books/borrowed, ...)
are declared before /books/{book_id}.

Lending endpoints return the bare identifier the engine produced:
    POST  /api/books/borrow/{id}                → loan id
    PATCH /api/books/borrow/return/{id}         → loan id
    PATCH /api/books/borrow/return/approve/{id} → loan id
    PATCH /api/books/shareable/{id}             → book id
    PATCH /api/books/archived/{id}              → book id
"""

import logging

from fastapi import APIRouter, Depends, Query, Response

from booknet.config import settings
from booknet.dependencies import get_catalog_store, get_current_user_id
from booknet.schemas.book import BookRequest, BookResponse, BorrowedBookResponse
from booknet.schemas.common import ErrorResponse, PageResponse
from booknet.services.book_service import book_service
from booknet.services.catalog_store import CatalogStore
from booknet.services.lending_service import lending_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/books", tags=["Books"])

LENDING_ERRORS = {
    403: {"description": "Lending rule violated", "model": ErrorResponse},
    404: {"description": "Book not found", "model": ErrorResponse},
    409: {"description": "Concurrent modification", "model": ErrorResponse},
}

PAGE_QUERY = Query(default=0, ge=0, description="Zero-based page index")
SIZE_QUERY = Query(
    default=settings.default_page_size, ge=1, le=settings.max_page_size, description="Items per page"
)
SORT_QUERY = Query(
    default="created_at_desc",
    description="Sort order: 'created_at_desc' (newest first) or 'created_at_asc'",
)


def _total_count_header(response: Response, page: PageResponse) -> None:
    response.headers["X-Total-Count"] = str(page.total_elements)


# ══════════════════════════════════════════════════════════════════════════
# Books
# ══════════════════════════════════════════════════════════════════════════


@router.post("", status_code=201, response_model=int, summary="List a new book")
async def save_book(
    request: BookRequest,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> int:
    return await book_service.create_book(store, user_id, request)


@router.get(
    "",
    response_model=PageResponse[BookResponse],
    summary="Books the caller can borrow",
    description=(
        "Shareable, non-archived books owned by someone else that the caller "
        "does not currently hold an unapproved loan on."
    ),
)
async def find_all_books(
    response: Response,
    page: int = PAGE_QUERY,
    size: int = SIZE_QUERY,
    sort: str = SORT_QUERY,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> PageResponse[BookResponse]:
    result = await book_service.find_displayable_books(store, user_id, page, size, sort)
    _total_count_header(response, result)
    return result


@router.get("/owner", response_model=PageResponse[BookResponse], summary="The caller's own books")
async def find_all_books_by_owner(
    response: Response,
    page: int = PAGE_QUERY,
    size: int = SIZE_QUERY,
    sort: str = SORT_QUERY,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> PageResponse[BookResponse]:
    result = await book_service.find_books_by_owner(store, user_id, page, size, sort)
    _total_count_header(response, result)
    return result


@router.get(
    "/borrowed",
    response_model=PageResponse[BorrowedBookResponse],
    summary="Loans the caller took",
)
async def find_all_borrowed_books(
    response: Response,
    page: int = PAGE_QUERY,
    size: int = SIZE_QUERY,
    sort: str = SORT_QUERY,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> PageResponse[BorrowedBookResponse]:
    result = await book_service.find_borrowed_books(store, user_id, page, size, sort)
    _total_count_header(response, result)
    return result


@router.get(
    "/returned",
    response_model=PageResponse[BorrowedBookResponse],
    summary="Returned loans awaiting or past the caller's approval",
)
async def find_all_returned_books(
    response: Response,
    page: int = PAGE_QUERY,
    size: int = SIZE_QUERY,
    sort: str = SORT_QUERY,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> PageResponse[BorrowedBookResponse]:
    result = await book_service.find_returned_books(store, user_id, page, size, sort)
    _total_count_header(response, result)
    return result


@router.get(
    "/lent",
    response_model=PageResponse[BorrowedBookResponse],
    summary="Every loan on the caller's books",
)
async def find_all_lent_books(
    response: Response,
    page: int = PAGE_QUERY,
    size: int = SIZE_QUERY,
    sort: str = SORT_QUERY,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> PageResponse[BorrowedBookResponse]:
    result = await book_service.find_lent_books(store, user_id, page, size, sort)
    _total_count_header(response, result)
    return result


@router.get(
    "/{book_id}",
    response_model=BookResponse,
    responses={404: {"description": "Book not found", "model": ErrorResponse}},
    summary="Get a single book",
)
async def find_book_by_id(
    book_id: int,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> BookResponse:
    return await book_service.get_book(store, book_id)


# ══════════════════════════════════════════════════════════════════════════
# Lending operations
# ══════════════════════════════════════════════════════════════════════════


@router.patch(
    "/shareable/{book_id}", response_model=int, responses=LENDING_ERRORS,
    summary="Toggle whether the book can be borrowed",
)
async def update_shareable_status(
    book_id: int,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> int:
    return await lending_service.toggle_shareable(store, book_id, user_id)


@router.patch(
    "/archived/{book_id}", response_model=int, responses=LENDING_ERRORS,
    summary="Toggle the archived flag (refused while a loan is outstanding)",
)
async def update_archived_status(
    book_id: int,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> int:
    return await lending_service.toggle_archived(store, book_id, user_id)


@router.post(
    "/borrow/{book_id}", response_model=int, responses=LENDING_ERRORS,
    summary="Borrow a book",
)
async def borrow_book(
    book_id: int,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> int:
    return await lending_service.borrow(store, book_id, user_id)


@router.patch(
    "/borrow/return/{book_id}", response_model=int, responses=LENDING_ERRORS,
    summary="Mark a borrowed book as returned",
)
async def return_borrowed_book(
    book_id: int,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> int:
    return await lending_service.return_book(store, book_id, user_id)


@router.patch(
    "/borrow/return/approve/{book_id}", response_model=int, responses=LENDING_ERRORS,
    summary="Approve the return of a lent book",
)
async def approve_return_borrowed_book(
    book_id: int,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> int:
    return await lending_service.approve_return(store, book_id, user_id)
