"""
BookNet Backend — Catalog Store Tests
======================================

What:  Tests for SqlAlchemyCatalogStore queries and error translation.
How:   Queries run against in-memory SQLite; driver failures are injected
       through a mocked AsyncSession.

What we test:
    ✅ Visibility filter for borrower, third party and owner
    ✅ Loan listings (borrowed / returned / lent) and pagination totals
    ✅ Driver errors mapped to ConflictError / StoreUnavailableError / DatabaseError
"""

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from booknet.exceptions import ConflictError, DatabaseError, StoreUnavailableError
from booknet.models import Book, LendingTransaction
from booknet.services.catalog_store import (
    SORT_OLDEST_FIRST,
    Page,
    SqlAlchemyCatalogStore,
)
from booknet.services.lending_service import LendingService


def _ids(page: Page) -> list:
    return [item.id for item in page.items]


class TestVisibilityFilter:

    def setup_method(self):
        self.lending = LendingService(require_return_before_approval=True, conflict_retry_attempts=2)

    @pytest.mark.asyncio
    async def test_outstanding_loan_hides_book_from_borrower_only(self, store, db_session, seed):
        owner = await seed.user("Olivia")
        borrower = await seed.user("Victor")
        other = await seed.user("Wendy")
        book_id = await seed.book(owner)
        await self.lending.borrow(store, book_id, borrower)
        await db_session.commit()

        assert book_id not in _ids(await store.find_displayable_books(borrower, 0, 10))
        assert book_id in _ids(await store.find_displayable_books(other, 0, 10))
        assert book_id not in _ids(await store.find_displayable_books(owner, 0, 10))

    @pytest.mark.asyncio
    async def test_book_visible_again_after_approval(self, store, db_session, seed):
        owner = await seed.user("Olivia")
        borrower = await seed.user("Victor")
        book_id = await seed.book(owner)
        await self.lending.borrow(store, book_id, borrower)
        await self.lending.return_book(store, book_id, borrower)
        await db_session.commit()

        assert book_id not in _ids(await store.find_displayable_books(borrower, 0, 10))

        await self.lending.approve_return(store, book_id, owner)
        await db_session.commit()

        assert book_id in _ids(await store.find_displayable_books(borrower, 0, 10))

    @pytest.mark.asyncio
    async def test_archived_and_private_books_hidden(self, store, seed):
        owner = await seed.user("Olivia")
        reader = await seed.user("Wendy")
        visible = await seed.book(owner, title="Visible")
        archived = await seed.book(owner, title="Archived", archived=True)
        private = await seed.book(owner, title="Private", shareable=False)

        page = await store.find_displayable_books(reader, 0, 10)

        assert _ids(page) == [visible]
        assert archived not in _ids(page)
        assert private not in _ids(page)
        assert page.total_elements == 1


class TestPageQueries:

    def setup_method(self):
        self.lending = LendingService(require_return_before_approval=True, conflict_retry_attempts=2)

    @pytest.mark.asyncio
    async def test_owner_books_paginated_newest_first(self, store, seed):
        owner = await seed.user("Olivia")
        ids = [await seed.book(owner, title=f"Volume {n}", shareable=n % 2 == 0) for n in range(5)]

        first = await store.find_books_by_owner(owner, 0, 2)
        last = await store.find_books_by_owner(owner, 2, 2)

        assert _ids(first) == [ids[4], ids[3]]
        assert first.total_elements == 5
        assert first.total_pages == 3
        assert first.first is True and first.last is False
        assert _ids(last) == [ids[0]]
        assert last.last is True

    @pytest.mark.asyncio
    async def test_oldest_first_ordering(self, store, seed):
        owner = await seed.user("Olivia")
        ids = [await seed.book(owner, title=f"Volume {n}") for n in range(3)]

        page = await store.find_books_by_owner(owner, 0, 10, SORT_OLDEST_FIRST)

        assert _ids(page) == ids

    @pytest.mark.asyncio
    async def test_loan_listings(self, store, db_session, seed):
        owner = await seed.user("Olivia")
        victor = await seed.user("Victor")
        wendy = await seed.user("Wendy")
        book_a = await seed.book(owner, title="A")
        book_b = await seed.book(owner, title="B")
        loan_a = await self.lending.borrow(store, book_a, victor)
        loan_b = await self.lending.borrow(store, book_b, wendy)
        await self.lending.return_book(store, book_a, victor)
        await db_session.commit()

        borrowed = await store.find_borrowed_transactions(victor, 0, 10)
        returned = await store.find_returned_transactions(owner, 0, 10)
        lent = await store.find_lent_transactions(owner, 0, 10)

        assert _ids(borrowed) == [loan_a]
        assert _ids(returned) == [loan_a]
        assert set(_ids(lent)) == {loan_a, loan_b}
        assert lent.total_elements == 2
        assert (await store.find_lent_transactions(victor, 0, 10)).total_elements == 0

    @pytest.mark.asyncio
    async def test_owner_lookup_returns_none_without_loans(self, store, seed):
        owner = await seed.user("Olivia")
        book_id = await seed.book(owner)

        assert await store.find_outstanding_by_book_and_owner(book_id, owner) is None
        assert await store.has_any_outstanding_for_book(book_id) is False

    @pytest.mark.asyncio
    async def test_owner_lookup_ignores_other_owners(self, store, db_session, seed):
        owner = await seed.user("Olivia")
        borrower = await seed.user("Victor")
        book_id = await seed.book(owner)
        await self.lending.borrow(store, book_id, borrower)
        await db_session.commit()

        assert await store.find_outstanding_by_book_and_owner(book_id, borrower) is None
        assert await store.find_outstanding_by_book_and_owner(book_id, owner) is not None

    @pytest.mark.asyncio
    async def test_get_book_with_details(self, store, db_session, seed):
        owner = await seed.user("Olivia", "Owens")
        borrower = await seed.user("Victor")
        book_id = await seed.book(owner)
        await self.lending.borrow(store, book_id, borrower)
        await db_session.commit()

        book = await store.get_book(book_id, with_details=True)

        assert book.owner.full_name == "Olivia Owens"
        assert len(book.histories) == 1
        assert book.feedbacks == []
        assert await store.get_book(12345) is None


class TestErrorTranslation:
    """Driver failures must surface as the store's typed errors."""

    @staticmethod
    def _transaction() -> LendingTransaction:
        return LendingTransaction(book_id=1, user_id=2)

    @pytest.mark.asyncio
    async def test_integrity_error_becomes_conflict(self, mock_db_session):
        mock_db_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("unique"))
        store = SqlAlchemyCatalogStore(mock_db_session)

        with pytest.raises(ConflictError) as exc_info:
            await store.save_transaction(self._transaction())
        assert exc_info.value.context["operation"] == "save_transaction"

    @pytest.mark.asyncio
    async def test_stale_row_becomes_conflict(self, mock_db_session):
        mock_db_session.flush.side_effect = StaleDataError("version mismatch")
        store = SqlAlchemyCatalogStore(mock_db_session)

        with pytest.raises(ConflictError):
            await store.save_book(Book(title="Dune", author_name="Frank Herbert", isbn="1", owner_id=1))

    @pytest.mark.asyncio
    async def test_serialization_failure_becomes_conflict(self, mock_db_session):
        class SerializationFailure(Exception):
            sqlstate = "40001"

        mock_db_session.flush.side_effect = DBAPIError("UPDATE", {}, SerializationFailure())
        store = SqlAlchemyCatalogStore(mock_db_session)

        with pytest.raises(ConflictError):
            await store.save_transaction(self._transaction())

    @pytest.mark.asyncio
    async def test_failed_commit_becomes_conflict(self, mock_db_session):
        class SerializationFailure(Exception):
            sqlstate = "40001"

        mock_db_session.commit.side_effect = DBAPIError("COMMIT", {}, SerializationFailure())
        store = SqlAlchemyCatalogStore(mock_db_session)

        with pytest.raises(ConflictError) as exc_info:
            await store.commit()
        assert exc_info.value.context["operation"] == "commit"

    @pytest.mark.asyncio
    async def test_lost_connection_at_commit_becomes_store_unavailable(self, mock_db_session):
        mock_db_session.commit.side_effect = OperationalError("COMMIT", {}, Exception("server closed the connection"))
        store = SqlAlchemyCatalogStore(mock_db_session)

        with pytest.raises(StoreUnavailableError):
            await store.commit()

    @pytest.mark.asyncio
    async def test_operational_error_becomes_store_unavailable(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
        store = SqlAlchemyCatalogStore(mock_db_session)

        with pytest.raises(StoreUnavailableError):
            await store.get_book(1, for_update=True)

    @pytest.mark.asyncio
    async def test_os_error_becomes_store_unavailable(self, mock_db_session):
        mock_db_session.execute.side_effect = ConnectionRefusedError("refused")
        store = SqlAlchemyCatalogStore(mock_db_session)

        with pytest.raises(StoreUnavailableError):
            await store.has_any_outstanding_for_book(1)

    @pytest.mark.asyncio
    async def test_other_dbapi_error_becomes_database_error(self, mock_db_session):
        mock_db_session.execute.side_effect = DBAPIError("SELECT", {}, Exception("syntax error"))
        store = SqlAlchemyCatalogStore(mock_db_session)

        with pytest.raises(DatabaseError):
            await store.find_books_by_owner(1, 0, 10)
