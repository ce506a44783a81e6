"""
BookNet Backend — Feedback SQLAlchemy Model
============================================

What:  A reader's rating (0-5) and comment on a book.
Why:   Feedback notes are the source of a book's average rating, which is
       computed at read time rather than stored on the book.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booknet.database import Base

if TYPE_CHECKING:
    from booknet.models.book import Book


class Feedback(Base):
    __tablename__ = "feedbacks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    note: Mapped[float] = mapped_column(Float, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)

    book_id: Mapped[int] = mapped_column(ForeignKey("books.id"), nullable=False)

    # Author of the feedback; drives the derived own_feedback flag
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    book: Mapped["Book"] = relationship(back_populates="feedbacks")

    __table_args__ = (
        Index("idx_feedbacks_book_created_at", "book_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Feedback(id={self.id}, book_id={self.book_id}, note={self.note})>"
