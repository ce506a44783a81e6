"""
BookNet Backend — Lending Transaction SQLAlchemy Model
=======================================================

What:  ORM model for `book_transaction_history`, one row per loan.
Why:   The loan record is the only mutable state the lending engine owns;
       every borrow creates one and every return/approval advances one.

State Machine:
    CREATED   (returned=False, return_approved=False)
        → RETURNED  (returned=True,  return_approved=False)   borrower action
        → APPROVED  (return_approved=True)                    owner action, terminal

    Both flags only move False → True. Once return_approved is True the row
    is terminal: mark_returned() and approve() refuse to touch it.

Concurrency Guards:
    - uq_outstanding_loan: a partial unique index on (book_id, user_id)
      restricted to rows with return_approved = false. Two racing borrows by
      the same user for the same book cannot both insert an outstanding row.
    - version: optimistic version counter; a stale UPDATE raises
      StaleDataError instead of silently overwriting a newer state.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, false, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booknet.database import Base
from booknet.exceptions import OperationNotPermittedError

if TYPE_CHECKING:
    from booknet.models.book import Book
    from booknet.models.user import User


class LendingTransaction(Base):
    """
    A single loan of a book to a borrower.

    The owner is reached through book.owner; a transaction whose borrower
    equals the book owner is never created.
    """

    __tablename__ = "book_transaction_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    returned: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    return_approved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    book_id: Mapped[int] = mapped_column(ForeignKey("books.id"), nullable=False)

    # The borrower
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    book: Mapped["Book"] = relationship(back_populates="histories")
    user: Mapped["User"] = relationship()

    __table_args__ = (
        Index(
            "uq_outstanding_loan",
            "book_id",
            "user_id",
            unique=True,
            postgresql_where=text("return_approved = false"),
            sqlite_where=text("return_approved = 0"),
        ),
        Index("idx_transactions_user_created_at", "user_id", "created_at"),
        Index("idx_transactions_book", "book_id"),
    )
    __mapper_args__ = {"version_id_col": version}

    @property
    def outstanding(self) -> bool:
        return not self.return_approved

    def mark_returned(self) -> None:
        """Borrower action: CREATED → RETURNED."""
        if self.return_approved:
            raise OperationNotPermittedError(
                "This loan is already closed", reason="not_borrowed",
                context={"transaction_id": self.id},
            )
        if self.returned:
            raise OperationNotPermittedError(
                "You already returned this book", reason="already_returned",
                context={"transaction_id": self.id},
            )
        self.returned = True

    def approve(self) -> None:
        """Owner action: any outstanding state → APPROVED (terminal)."""
        if self.return_approved:
            raise OperationNotPermittedError(
                "The return of this book is already approved", reason="no_loan_to_approve",
                context={"transaction_id": self.id},
            )
        self.return_approved = True

    def __repr__(self) -> str:
        return (
            f"<LendingTransaction(id={self.id}, book_id={self.book_id}, user_id={self.user_id}, "
            f"returned={self.returned}, return_approved={self.return_approved})>"
        )
