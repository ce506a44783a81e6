"""
BookNet Backend — Book SQLAlchemy Model
========================================

What:  ORM model representing the `books` table.
How:   Owned by exactly one user; the owner never changes after creation.
       Books are never deleted, only archived.

Table Design Rationale:
    - cover: opaque storage reference (path or object key), never a blob
    - archived / shareable: the two owner-controlled flags the lending
      rules read on every borrow, return and approval
    - version: bumped on every update; a stale write raises StaleDataError,
      which the catalog store reports as a ConflictError
    - The average rating is NOT a column; it is derived from feedback at
      read time (see rate below) so it can never go stale

    Index on (owner_id, created_at):
        Serves the owner's "my books" page, newest first.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, false, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booknet.database import Base

if TYPE_CHECKING:
    from booknet.models.feedback import Feedback
    from booknet.models.lending_transaction import LendingTransaction
    from booknet.models.user import User


class Book(Base):
    """
    A book listed on the network by its owner.

    Lifecycle:
        1. Created by its owner (archived = False)
        2. Owner toggles shareable / archived; archiving is refused while
           any loan on the book is still waiting for return approval
        3. Never physically deleted
    """

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    author_name: Mapped[str] = mapped_column(String(255), nullable=False)
    isbn: Mapped[str] = mapped_column(String(32), nullable=False)
    synopsis: Mapped[str] = mapped_column(Text, nullable=False, default="")

    cover: Mapped[Optional[str]] = mapped_column(
        String(512),
        nullable=True,
        default=None,
        comment="Opaque reference to the cover image in file storage",
    )

    archived: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    shareable: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    owner: Mapped["User"] = relationship(back_populates="books")
    histories: Mapped[List["LendingTransaction"]] = relationship(
        back_populates="book", order_by="LendingTransaction.id"
    )
    feedbacks: Mapped[List["Feedback"]] = relationship(
        back_populates="book", order_by="Feedback.id"
    )

    __table_args__ = (
        Index("idx_books_owner_created_at", "owner_id", "created_at"),
    )
    __mapper_args__ = {"version_id_col": version}

    @property
    def lendable(self) -> bool:
        return not self.archived and self.shareable

    @property
    def rate(self) -> float:
        """Mean feedback note rounded to one decimal; 0.0 without feedback."""
        if not self.feedbacks:
            return 0.0
        average = sum(f.note for f in self.feedbacks) / len(self.feedbacks)
        return round(average, 1)

    def __repr__(self) -> str:
        return (
            f"<Book(id={self.id}, title='{self.title}', owner_id={self.owner_id}, "
            f"archived={self.archived}, shareable={self.shareable})>"
        )
