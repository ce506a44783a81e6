"""
BookNet Backend — Catalog Store
================================

What:  The persistence contract for books, loans and feedback, and its
       SQLAlchemy implementation.
Why:   The lending engine never issues queries itself. It depends on the
       CatalogStore interface only, so the storage backend can be replaced
       (or mocked in tests) without touching lending rules.
How:   SqlAlchemyCatalogStore wraps one AsyncSession (one request, one
       database transaction) and translates driver failures into the
       application's typed errors:

           IntegrityError, StaleDataError,
           serialization failure / deadlock      → ConflictError
           OperationalError, InterfaceError,
           invalidated connection, OSError       → StoreUnavailableError
           any other DBAPIError                  → DatabaseError

Freshness:
    Every SELECT runs with populate_existing, so an entity already in the
    session identity map is overwritten with the row as the database has it
    now. Nothing is cached across calls.

Displayable-books query plan:
    SELECT books.* FROM books
    WHERE archived = false AND shareable = true AND owner_id != :requester
      AND NOT EXISTS (SELECT 1 FROM book_transaction_history t
                      WHERE t.book_id = books.id AND t.user_id = :requester
                        AND t.return_approved = false)
    ORDER BY created_at DESC, id DESC LIMIT :size OFFSET :page * :size
"""

import logging
import math
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Generic, List, Optional, Sequence, TypeVar

from sqlalchemy import asc, desc, exists, func, select
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from booknet.exceptions import ConflictError, DatabaseError, StoreUnavailableError
from booknet.models import Book, Feedback, LendingTransaction, User

logger = logging.getLogger(__name__)

T = TypeVar("T")

SORT_NEWEST_FIRST = "created_at_desc"
SORT_OLDEST_FIRST = "created_at_asc"
VALID_SORTS = {SORT_NEWEST_FIRST, SORT_OLDEST_FIRST}

# SQLSTATE codes PostgreSQL uses for transactions that lost a race
_CONFLICT_SQLSTATES = {"40001", "40P01"}


@dataclass
class Page(Generic[T]):
    """A page of entities plus the totals needed to render pagination."""

    items: List[T]
    number: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.size) if self.size else 0

    @property
    def first(self) -> bool:
        return self.number == 0

    @property
    def last(self) -> bool:
        return self.number >= self.total_pages - 1


class CatalogStore(ABC):
    """
    Persistence contract consumed by the lending engine and the book and
    feedback services.

    Contract:
        - Lookups return None when nothing matches; they never raise NotFound
        - Writes flush immediately so constraint violations surface inside
          the calling operation (as ConflictError), not at commit time
        - commit() ends the unit of work before the response is built, so a
          failed COMMIT reaches the caller as ConflictError or
          StoreUnavailableError instead of a false success
        - rollback() discards the current unit of work; the engine calls it
          before retrying after a conflict
    """

    # ── Point lookups ─────────────────────────────────────────────────────

    @abstractmethod
    async def get_book(
        self, book_id: int, for_update: bool = False, with_details: bool = False
    ) -> Optional[Book]:
        """
        Load a book by id.

        for_update locks the row until the transaction ends, serializing
        every mutating operation on the same book. with_details eagerly loads
        owner, loans and feedback for the presentation mapper.
        """
        ...

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]:
        ...

    @abstractmethod
    async def find_outstanding_by_book_and_borrower(
        self, book_id: int, borrower_id: int
    ) -> Optional[LendingTransaction]:
        """The borrower's unapproved loan on the book, if any (at most one)."""
        ...

    @abstractmethod
    async def find_outstanding_by_book_and_owner(
        self, book_id: int, owner_id: int
    ) -> Optional[LendingTransaction]:
        """
        An unapproved loan on a book owned by owner_id.

        When several borrowers hold loans, loans already marked returned come
        first, then the oldest.
        """
        ...

    @abstractmethod
    async def has_any_outstanding_for_book(self, book_id: int) -> bool:
        ...

    # ── Writes ────────────────────────────────────────────────────────────

    @abstractmethod
    async def save_book(self, book: Book) -> Book:
        ...

    @abstractmethod
    async def save_transaction(self, transaction: LendingTransaction) -> LendingTransaction:
        ...

    @abstractmethod
    async def save_feedback(self, feedback: Feedback) -> Feedback:
        ...

    @abstractmethod
    async def commit(self) -> None:
        """Make the current unit of work durable; failures surface as typed errors."""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...

    # ── Page queries ──────────────────────────────────────────────────────

    @abstractmethod
    async def find_displayable_books(
        self, requester_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[Book]:
        """Books the requester could borrow right now (see module docstring)."""
        ...

    @abstractmethod
    async def find_books_by_owner(
        self, owner_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[Book]:
        """Every book the owner listed, whatever its archived/shareable state."""
        ...

    @abstractmethod
    async def find_borrowed_transactions(
        self, borrower_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[LendingTransaction]:
        ...

    @abstractmethod
    async def find_returned_transactions(
        self, owner_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[LendingTransaction]:
        """Loans on the owner's books that the borrower has marked returned."""
        ...

    @abstractmethod
    async def find_lent_transactions(
        self, owner_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[LendingTransaction]:
        ...

    @abstractmethod
    async def find_feedbacks_by_book(
        self, book_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[Feedback]:
        ...


@asynccontextmanager
async def _translate_errors(operation: str) -> AsyncIterator[None]:
    """Map driver and ORM failures onto the store's typed errors."""
    try:
        yield
    except (IntegrityError, StaleDataError) as e:
        logger.info("Write conflict during %s: %s", operation, type(e).__name__)
        raise ConflictError(context={"operation": operation}) from e
    except (OperationalError, InterfaceError) as e:
        logger.error("Catalog store unreachable during %s: %s", operation, str(e))
        raise StoreUnavailableError(context={"operation": operation}) from e
    except DBAPIError as e:
        sqlstate = getattr(e.orig, "sqlstate", None) or getattr(e.orig, "pgcode", None)
        if sqlstate in _CONFLICT_SQLSTATES:
            logger.info("Serialization conflict during %s (sqlstate=%s)", operation, sqlstate)
            raise ConflictError(context={"operation": operation}) from e
        if e.connection_invalidated:
            logger.error("Connection lost during %s", operation)
            raise StoreUnavailableError(context={"operation": operation}) from e
        logger.error("Database error during %s: %s", operation, str(e), exc_info=True)
        raise DatabaseError(context={"operation": operation}) from e
    except OSError as e:
        logger.error("Catalog store unreachable during %s: %s", operation, str(e))
        raise StoreUnavailableError(context={"operation": operation}) from e


class SqlAlchemyCatalogStore(CatalogStore):
    """
    CatalogStore backed by an async SQLAlchemy session.

    One instance per request; it holds no state besides the session.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _book_details():
        return (
            selectinload(Book.owner),
            selectinload(Book.histories),
            selectinload(Book.feedbacks),
        )

    @staticmethod
    def _transaction_details():
        return (
            selectinload(LendingTransaction.book).selectinload(Book.owner),
            selectinload(LendingTransaction.book).selectinload(Book.feedbacks),
            selectinload(LendingTransaction.user),
        )

    @staticmethod
    def _ordering(created_at, id_column, sort: str):
        if sort == SORT_OLDEST_FIRST:
            return asc(created_at), asc(id_column)
        return desc(created_at), desc(id_column)

    async def _page(
        self,
        entity,
        conditions: Sequence,
        page: int,
        size: int,
        sort: str,
        options: Sequence = (),
        join=None,
        operation: str = "page query",
    ) -> Page:
        """
        Run the count and the page query inside the current transaction.

        Ordering includes the primary key so the row order is total; LIMIT /
        OFFSET over a total order cannot repeat a row within one page.
        """
        query = select(entity)
        count_query = select(func.count(entity.id)).select_from(entity)
        if join is not None:
            query = query.join(join)
            count_query = count_query.join(join)
        query = (
            query.where(*conditions)
            .order_by(*self._ordering(entity.created_at, entity.id, sort))
            .offset(page * size)
            .limit(size)
            .options(*options)
            .execution_options(populate_existing=True)
        )
        count_query = count_query.where(*conditions)

        async with _translate_errors(operation):
            total = (await self.session.execute(count_query)).scalar() or 0
            result = await self.session.execute(query)
            items = list(result.scalars().all())

        return Page(items=items, number=page, size=size, total_elements=total)

    async def _flush(self, operation: str) -> None:
        async with _translate_errors(operation):
            await self.session.flush()

    # ── Point lookups ─────────────────────────────────────────────────────

    async def get_book(
        self, book_id: int, for_update: bool = False, with_details: bool = False
    ) -> Optional[Book]:
        query = (
            select(Book)
            .where(Book.id == book_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        if with_details:
            query = query.options(*self._book_details())
        async with _translate_errors("get_book"):
            result = await self.session.execute(query)
            return result.scalar_one_or_none()

    async def get_user(self, user_id: int) -> Optional[User]:
        async with _translate_errors("get_user"):
            result = await self.session.execute(
                select(User).where(User.id == user_id)
            )
            return result.scalar_one_or_none()

    async def find_outstanding_by_book_and_borrower(
        self, book_id: int, borrower_id: int
    ) -> Optional[LendingTransaction]:
        query = (
            select(LendingTransaction)
            .where(
                LendingTransaction.book_id == book_id,
                LendingTransaction.user_id == borrower_id,
                LendingTransaction.return_approved.is_(False),
            )
            .execution_options(populate_existing=True)
        )
        async with _translate_errors("find_outstanding_by_book_and_borrower"):
            result = await self.session.execute(query)
            return result.scalar_one_or_none()

    async def find_outstanding_by_book_and_owner(
        self, book_id: int, owner_id: int
    ) -> Optional[LendingTransaction]:
        query = (
            select(LendingTransaction)
            .join(Book, LendingTransaction.book_id == Book.id)
            .where(
                LendingTransaction.book_id == book_id,
                Book.owner_id == owner_id,
                LendingTransaction.return_approved.is_(False),
            )
            .order_by(
                desc(LendingTransaction.returned),
                asc(LendingTransaction.created_at),
                asc(LendingTransaction.id),
            )
            .limit(1)
            .execution_options(populate_existing=True)
        )
        async with _translate_errors("find_outstanding_by_book_and_owner"):
            result = await self.session.execute(query)
            return result.scalars().first()

    async def has_any_outstanding_for_book(self, book_id: int) -> bool:
        query = select(
            exists().where(
                LendingTransaction.book_id == book_id,
                LendingTransaction.return_approved.is_(False),
            )
        )
        async with _translate_errors("has_any_outstanding_for_book"):
            result = await self.session.execute(query)
            return bool(result.scalar())

    # ── Writes ────────────────────────────────────────────────────────────

    async def save_book(self, book: Book) -> Book:
        self.session.add(book)
        await self._flush("save_book")
        return book

    async def save_transaction(self, transaction: LendingTransaction) -> LendingTransaction:
        self.session.add(transaction)
        await self._flush("save_transaction")
        return transaction

    async def save_feedback(self, feedback: Feedback) -> Feedback:
        self.session.add(feedback)
        await self._flush("save_feedback")
        return feedback

    async def commit(self) -> None:
        async with _translate_errors("commit"):
            await self.session.commit()

    async def rollback(self) -> None:
        async with _translate_errors("rollback"):
            await self.session.rollback()

    # ── Page queries ──────────────────────────────────────────────────────

    async def find_displayable_books(
        self, requester_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[Book]:
        outstanding_for_requester = (
            select(LendingTransaction.id)
            .where(
                LendingTransaction.book_id == Book.id,
                LendingTransaction.user_id == requester_id,
                LendingTransaction.return_approved.is_(False),
            )
            .exists()
        )
        conditions = [
            Book.archived.is_(False),
            Book.shareable.is_(True),
            Book.owner_id != requester_id,
            ~outstanding_for_requester,
        ]
        return await self._page(
            Book, conditions, page, size, sort,
            options=self._book_details(), operation="find_displayable_books",
        )

    async def find_books_by_owner(
        self, owner_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[Book]:
        return await self._page(
            Book, [Book.owner_id == owner_id], page, size, sort,
            options=self._book_details(), operation="find_books_by_owner",
        )

    async def find_borrowed_transactions(
        self, borrower_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[LendingTransaction]:
        return await self._page(
            LendingTransaction, [LendingTransaction.user_id == borrower_id], page, size, sort,
            options=self._transaction_details(), operation="find_borrowed_transactions",
        )

    async def find_returned_transactions(
        self, owner_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[LendingTransaction]:
        conditions = [
            Book.owner_id == owner_id,
            LendingTransaction.returned.is_(True),
        ]
        return await self._page(
            LendingTransaction, conditions, page, size, sort,
            options=self._transaction_details(),
            join=LendingTransaction.book,
            operation="find_returned_transactions",
        )

    async def find_lent_transactions(
        self, owner_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[LendingTransaction]:
        return await self._page(
            LendingTransaction, [Book.owner_id == owner_id], page, size, sort,
            options=self._transaction_details(),
            join=LendingTransaction.book,
            operation="find_lent_transactions",
        )

    async def find_feedbacks_by_book(
        self, book_id: int, page: int, size: int, sort: str = SORT_NEWEST_FIRST
    ) -> Page[Feedback]:
        return await self._page(
            Feedback, [Feedback.book_id == book_id], page, size, sort,
            operation="find_feedbacks_by_book",
        )
