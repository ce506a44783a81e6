"""
BookNet Backend — Book Service
===============================

What:  Book creation, single-book lookup and every listing view.
Why:   Keeps read-side concerns (visibility, pagination, projection) out of
       the lending engine, which only mutates state.
How:   Delegates queries to the CatalogStore and projects entities through
       the presentation mapper.

Listing views:
    - displayable: books the requester could borrow now (visibility filter)
    - owner:       the requester's own books, any state
    - borrowed:    loans where the requester is the borrower
    - returned:    loans on the requester's books marked returned
    - lent:        every loan on the requester's books
"""

import logging

from booknet.config import settings
from booknet.exceptions import NotFoundError, ValidationError
from booknet.schemas.book import BookRequest, BookResponse, BorrowedBookResponse
from booknet.schemas.common import PageResponse
from booknet.services import mappers
from booknet.services.catalog_store import VALID_SORTS, CatalogStore, SORT_NEWEST_FIRST

logger = logging.getLogger(__name__)


def validate_paging(page: int, size: int, sort: str) -> None:
    """Reject paging parameters the store should never see."""
    if page < 0:
        raise ValidationError("Page index must not be negative", field="page")
    if size < 1 or size > settings.max_page_size:
        raise ValidationError(
            f"Page size must be between 1 and {settings.max_page_size}", field="size"
        )
    if sort not in VALID_SORTS:
        raise ValidationError(
            f"Invalid sort '{sort}'. Must be one of: {sorted(VALID_SORTS)}", field="sort"
        )


class BookService:
    """Stateless; receives the CatalogStore for each call."""

    async def create_book(self, store: CatalogStore, owner_id: int, request: BookRequest) -> int:
        """
        List a new book owned by the requester.

        Raises:
            NotFoundError: the requester has no user record
        """
        owner = await store.get_user(owner_id)
        if owner is None:
            raise NotFoundError(resource="user", resource_id=str(owner_id))

        book = await store.save_book(mappers.to_book(request, owner_id))
        await store.commit()
        logger.info("Book %s created by user %s", book.id, owner_id)
        return book.id

    async def get_book(self, store: CatalogStore, book_id: int) -> BookResponse:
        book = await store.get_book(book_id, with_details=True)
        if book is None:
            raise NotFoundError(resource="book", resource_id=str(book_id))
        return mappers.to_book_response(book)

    async def find_displayable_books(
        self,
        store: CatalogStore,
        requester_id: int,
        page: int = 0,
        size: int = 10,
        sort: str = SORT_NEWEST_FIRST,
    ) -> PageResponse[BookResponse]:
        validate_paging(page, size, sort)
        books = await store.find_displayable_books(requester_id, page, size, sort)
        return mappers.to_page_response(books, mappers.to_book_response)

    async def find_books_by_owner(
        self,
        store: CatalogStore,
        owner_id: int,
        page: int = 0,
        size: int = 10,
        sort: str = SORT_NEWEST_FIRST,
    ) -> PageResponse[BookResponse]:
        validate_paging(page, size, sort)
        books = await store.find_books_by_owner(owner_id, page, size, sort)
        return mappers.to_page_response(books, mappers.to_book_response)

    async def find_borrowed_books(
        self,
        store: CatalogStore,
        borrower_id: int,
        page: int = 0,
        size: int = 10,
        sort: str = SORT_NEWEST_FIRST,
    ) -> PageResponse[BorrowedBookResponse]:
        validate_paging(page, size, sort)
        loans = await store.find_borrowed_transactions(borrower_id, page, size, sort)
        return mappers.to_page_response(loans, mappers.to_borrowed_book_response)

    async def find_returned_books(
        self,
        store: CatalogStore,
        owner_id: int,
        page: int = 0,
        size: int = 10,
        sort: str = SORT_NEWEST_FIRST,
    ) -> PageResponse[BorrowedBookResponse]:
        validate_paging(page, size, sort)
        loans = await store.find_returned_transactions(owner_id, page, size, sort)
        return mappers.to_page_response(loans, mappers.to_borrowed_book_response)

    async def find_lent_books(
        self,
        store: CatalogStore,
        owner_id: int,
        page: int = 0,
        size: int = 10,
        sort: str = SORT_NEWEST_FIRST,
    ) -> PageResponse[BorrowedBookResponse]:
        validate_paging(page, size, sort)
        loans = await store.find_lent_transactions(owner_id, page, size, sort)
        return mappers.to_page_response(loans, mappers.to_borrowed_book_response)


book_service = BookService()
