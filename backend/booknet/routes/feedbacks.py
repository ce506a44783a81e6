"""
BookNet Backend — Feedback Route Handlers
==========================================
"""

import logging

from fastapi import APIRouter, Depends, Query, Response

from booknet.config import settings
from booknet.dependencies import get_catalog_store, get_current_user_id
from booknet.schemas.common import ErrorResponse, PageResponse
from booknet.schemas.feedback import FeedbackRequest, FeedbackResponse
from booknet.services.catalog_store import CatalogStore
from booknet.services.feedback_service import feedback_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/feedbacks", tags=["Feedbacks"])


@router.post(
    "",
    status_code=201,
    response_model=int,
    responses={
        403: {"description": "Feedback not allowed on this book", "model": ErrorResponse},
        404: {"description": "Book not found", "model": ErrorResponse},
    },
    summary="Leave feedback on a book",
)
async def save_feedback(
    request: FeedbackRequest,
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> int:
    return await feedback_service.save_feedback(store, user_id, request)


@router.get(
    "/book/{book_id}",
    response_model=PageResponse[FeedbackResponse],
    summary="Feedback left on a book, newest first",
)
async def find_all_feedbacks_by_book(
    book_id: int,
    response: Response,
    page: int = Query(default=0, ge=0),
    size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    user_id: int = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_catalog_store),
) -> PageResponse[FeedbackResponse]:
    result = await feedback_service.find_feedbacks_by_book(store, book_id, user_id, page, size)
    response.headers["X-Total-Count"] = str(result.total_elements)
    return result
