"""
BookNet Backend — Feedback Service
===================================

What:  Leave feedback on a book and page through a book's feedback.
Why:   Feedback drives each book's derived average rating.

Rules (same standing checks as borrowing):
    - the book must exist, be shareable and not archived
    - owners can't rate their own books
"""

import logging

from booknet.exceptions import NotFoundError, OperationNotPermittedError
from booknet.schemas.common import PageResponse
from booknet.schemas.feedback import FeedbackRequest, FeedbackResponse
from booknet.services import mappers
from booknet.services.book_service import validate_paging
from booknet.services.catalog_store import CatalogStore, SORT_NEWEST_FIRST

logger = logging.getLogger(__name__)


class FeedbackService:

    async def save_feedback(
        self, store: CatalogStore, requester_id: int, request: FeedbackRequest
    ) -> int:
        book = await store.get_book(request.book_id)
        if book is None:
            raise NotFoundError(resource="book", resource_id=str(request.book_id))
        if not book.lendable:
            raise OperationNotPermittedError(
                "You can't give feedback for this book as it is either archived or not shareable",
                reason="not_shareable",
                context={"book_id": book.id},
            )
        if book.owner_id == requester_id:
            raise OperationNotPermittedError(
                "You can't give feedback to your own book", reason="own_book",
                context={"book_id": book.id},
            )

        feedback = await store.save_feedback(mappers.to_feedback(request, requester_id))
        await store.commit()
        logger.info("Feedback %s left on book %s by user %s", feedback.id, book.id, requester_id)
        return feedback.id

    async def find_feedbacks_by_book(
        self,
        store: CatalogStore,
        book_id: int,
        requester_id: int,
        page: int = 0,
        size: int = 10,
        sort: str = SORT_NEWEST_FIRST,
    ) -> PageResponse[FeedbackResponse]:
        validate_paging(page, size, sort)
        feedbacks = await store.find_feedbacks_by_book(book_id, page, size, sort)
        return mappers.to_page_response(
            feedbacks, lambda f: mappers.to_feedback_response(f, requester_id)
        )


feedback_service = FeedbackService()
