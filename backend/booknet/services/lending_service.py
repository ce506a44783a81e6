"""
BookNet Backend — Lending Service (the lending transaction engine)
===================================================================

What:  Enforces ownership and state rules for borrow, return, approve-return,
       toggle-shareable and toggle-archived.
Why:   These are the only operations with real invariants; every one of them
       must hold under concurrent requests against shared state.
How:   Each operation is one read-validate-write against the CatalogStore:

    ┌────────────────┐    ┌──────────────┐    ┌──────────────┐    ┌─────────┐
    │ Load book      │───▶│  Validate    │───▶│  Write loan  │───▶│ Return  │
    │ (FOR UPDATE)   │    │  invariants  │    │  or book     │    │  id     │
    └────────────────┘    └──────────────┘    └──────────────┘    └─────────┘
            ▲                                        │
            └──────── ConflictError: rollback, retry once ─────────┘

Authorization:
    The acting identity is an explicit parameter on every call, resolved by
    the request layer from a verified credential. Ownership and borrower
    standing are re-derived from the persisted rows each time; nothing the
    caller sends can claim standing over a book.

Concurrency:
    - The book row is locked for the whole read-validate-write, so two
      operations on the same book serialize; different books run in parallel
    - The partial unique index on outstanding loans backs up the
      "already borrowed" check if two borrows ever slip past the lock
    - A ConflictError rolls the unit of work back and the operation is
      retried once against fresh state; a repeated conflict is surfaced
    - StoreUnavailableError is never retried here

No operation partially applies: every precondition is checked before the
first write, and any raised error leaves the session to be rolled back.
Each operation commits before it returns, so the row lock is released and
the id handed back is durable by the time the response is built.
"""

import logging
from typing import Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from booknet.config import settings
from booknet.exceptions import ConflictError, NotFoundError, OperationNotPermittedError
from booknet.models import Book, LendingTransaction
from booknet.services.catalog_store import CatalogStore

logger = logging.getLogger(__name__)


class LendingService:
    """
    The lending transaction engine.

    Stateless: receives the CatalogStore for each call and caches no book or
    loan state between calls.

    Every method returns a bare identifier (loan id for borrow/return/approve,
    book id for the toggles) or raises:
        NotFoundError               book does not exist
        OperationNotPermittedError  a lending rule is violated (see reason)
        ConflictError               a concurrent write won twice in a row
        StoreUnavailableError       the store could not be reached
    """

    def __init__(
        self,
        require_return_before_approval: Optional[bool] = None,
        conflict_retry_attempts: Optional[int] = None,
    ):
        if require_return_before_approval is None:
            require_return_before_approval = settings.require_return_before_approval
        if conflict_retry_attempts is None:
            conflict_retry_attempts = settings.conflict_retry_attempts
        self.require_return_before_approval = require_return_before_approval
        self.conflict_retry_attempts = conflict_retry_attempts

    # ══════════════════════════════════════════════════════════════════════
    # Borrower operations
    # ══════════════════════════════════════════════════════════════════════

    async def borrow(self, store: CatalogStore, book_id: int, requester_id: int) -> int:
        """
        Create an outstanding loan of book_id to requester_id.

        Preconditions:
            - book is shareable and not archived
            - requester is not the owner
            - requester holds no outstanding loan on this book
        """

        async def attempt() -> int:
            book = await self._load_book(store, book_id)
            self._ensure_lendable(book)
            if book.owner_id == requester_id:
                raise OperationNotPermittedError(
                    "You can't borrow your own book", reason="own_book",
                    context={"book_id": book_id},
                )
            existing = await store.find_outstanding_by_book_and_borrower(book_id, requester_id)
            if existing is not None:
                raise OperationNotPermittedError(
                    "The requested book is already borrowed", reason="already_borrowed",
                    context={"book_id": book_id, "transaction_id": existing.id},
                )

            transaction = await store.save_transaction(
                LendingTransaction(
                    book_id=book.id,
                    user_id=requester_id,
                    returned=False,
                    return_approved=False,
                )
            )
            logger.info(
                "Book %s borrowed by user %s (transaction %s)",
                book_id, requester_id, transaction.id,
            )
            return transaction.id

        return await self._with_conflict_retry(store, "borrow", attempt)

    async def return_book(self, store: CatalogStore, book_id: int, requester_id: int) -> int:
        """
        Mark the requester's outstanding loan on book_id as returned.

        The shareable/archived check is applied again at return time.
        """

        async def attempt() -> int:
            book = await self._load_book(store, book_id)
            self._ensure_lendable(book)
            if book.owner_id == requester_id:
                raise OperationNotPermittedError(
                    "You can't borrow or return your own book", reason="own_book",
                    context={"book_id": book_id},
                )
            transaction = await store.find_outstanding_by_book_and_borrower(book_id, requester_id)
            if transaction is None:
                raise OperationNotPermittedError(
                    "You didn't borrow this book, so you can't return it",
                    reason="not_borrowed",
                    context={"book_id": book_id},
                )

            transaction.mark_returned()
            transaction = await store.save_transaction(transaction)
            logger.info(
                "Book %s returned by user %s (transaction %s)",
                book_id, requester_id, transaction.id,
            )
            return transaction.id

        return await self._with_conflict_retry(store, "return", attempt)

    # ══════════════════════════════════════════════════════════════════════
    # Owner operations
    # ══════════════════════════════════════════════════════════════════════

    async def approve_return(self, store: CatalogStore, book_id: int, requester_id: int) -> int:
        """
        Approve the return of an outstanding loan on the requester's book.

        Terminal: once approved the loan can no longer be returned or
        approved again. With require_return_before_approval (the default)
        only a loan the borrower marked returned can be approved.
        """

        async def attempt() -> int:
            book = await self._load_book(store, book_id)
            self._ensure_lendable(book)
            if book.owner_id != requester_id:
                raise OperationNotPermittedError(
                    "You can't approve the return of a book you don't own",
                    reason="not_owner",
                    context={"book_id": book_id},
                )
            transaction = await store.find_outstanding_by_book_and_owner(book_id, requester_id)
            if transaction is None:
                raise OperationNotPermittedError(
                    "There is no outstanding loan on this book to approve",
                    reason="no_loan_to_approve",
                    context={"book_id": book_id},
                )
            if self.require_return_before_approval and not transaction.returned:
                raise OperationNotPermittedError(
                    "The book is not returned yet, so its return can't be approved",
                    reason="not_returned_yet",
                    context={"book_id": book_id, "transaction_id": transaction.id},
                )

            transaction.approve()
            transaction = await store.save_transaction(transaction)
            logger.info(
                "Return of book %s approved by owner %s (transaction %s)",
                book_id, requester_id, transaction.id,
            )
            return transaction.id

        return await self._with_conflict_retry(store, "approve_return", attempt)

    async def toggle_shareable(self, store: CatalogStore, book_id: int, requester_id: int) -> int:
        """Flip the shareable flag. Outstanding loans are not affected."""

        async def attempt() -> int:
            book = await self._load_book(store, book_id)
            self._ensure_owner(book, requester_id, "shareable status")
            book.shareable = not book.shareable
            await store.save_book(book)
            logger.info("Book %s shareable set to %s", book_id, book.shareable)
            return book.id

        return await self._with_conflict_retry(store, "toggle_shareable", attempt)

    async def toggle_archived(self, store: CatalogStore, book_id: int, requester_id: int) -> int:
        """
        Flip the archived flag.

        Archiving is refused while any loan on the book awaits return
        approval; unarchiving is always allowed for the owner.
        """

        async def attempt() -> int:
            book = await self._load_book(store, book_id)
            self._ensure_owner(book, requester_id, "archived status")
            archive = not book.archived
            if archive and await store.has_any_outstanding_for_book(book_id):
                raise OperationNotPermittedError(
                    "You can't archive the book, it is not yet returned",
                    reason="loan_outstanding",
                    context={"book_id": book_id},
                )
            book.archived = archive
            await store.save_book(book)
            logger.info("Book %s archived set to %s", book_id, book.archived)
            return book.id

        return await self._with_conflict_retry(store, "toggle_archived", attempt)

    # ══════════════════════════════════════════════════════════════════════
    # Internals
    # ══════════════════════════════════════════════════════════════════════

    @staticmethod
    async def _load_book(store: CatalogStore, book_id: int) -> Book:
        book = await store.get_book(book_id, for_update=True)
        if book is None:
            raise NotFoundError(resource="book", resource_id=str(book_id))
        return book

    @staticmethod
    def _ensure_lendable(book: Book) -> None:
        if not book.lendable:
            raise OperationNotPermittedError(
                "The requested book can't be borrowed as it is either archived or not shareable",
                reason="not_shareable",
                context={"book_id": book.id},
            )

    @staticmethod
    def _ensure_owner(book: Book, requester_id: int, what: str) -> None:
        if book.owner_id != requester_id:
            raise OperationNotPermittedError(
                f"You are not the owner of this book, you can't update its {what}",
                reason="not_owner",
                context={"book_id": book.id},
            )

    async def _with_conflict_retry(
        self,
        store: CatalogStore,
        operation: str,
        attempt: Callable[[], Awaitable[int]],
    ) -> int:
        """
        Run one read-validate-write and commit it, retrying on ConflictError.

        The commit is part of the attempt: a serialization failure raised at
        COMMIT is retried like one raised at flush. The unit of work is
        rolled back before each retry so the next attempt re-reads current
        state. Rule violations and store outages propagate immediately.
        """

        async def rolled_back_on_conflict() -> int:
            try:
                result = await attempt()
                await store.commit()
                return result
            except ConflictError:
                await store.rollback()
                raise

        try:
            async for retry_state in AsyncRetrying(
                stop=stop_after_attempt(self.conflict_retry_attempts),
                retry=retry_if_exception_type(ConflictError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with retry_state:
                    result = await rolled_back_on_conflict()
        except ConflictError:
            logger.warning("%s gave up after %d conflicting attempts", operation, self.conflict_retry_attempts)
            raise
        except OperationNotPermittedError as e:
            logger.info("%s rejected: %s (%s)", operation, e.reason, e.context)
            raise
        return result


# ── Singleton Instance ────────────────────────────────────────────────────
# Stateless; the store is passed per call
lending_service = LendingService()
