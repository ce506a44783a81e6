"""Create users, books, book_transaction_history and feedbacks tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the initial lending schema.
How:   The partial unique index uq_outstanding_loan allows at most one
       unapproved loan per (book, borrower); approved loans are history and
       may repeat freely.

Rollback: downgrade() drops every table (destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("firstname", sa.String(100), nullable=False),
        sa.Column("lastname", sa.String(100), nullable=False),
        sa.Column(
            "email",
            sa.String(255),
            nullable=False,
            comment="Login e-mail, unique across users",
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "books",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("author_name", sa.String(255), nullable=False),
        sa.Column("isbn", sa.String(32), nullable=False),
        sa.Column("synopsis", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "cover",
            sa.String(512),
            nullable=True,
            comment="Opaque reference to the cover image in file storage",
        ),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("shareable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        _created_at(),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_books_owner_created_at", "books", ["owner_id", "created_at"])

    op.create_table(
        "book_transaction_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("returned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("return_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("book_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _created_at(),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_outstanding_loan",
        "book_transaction_history",
        ["book_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("return_approved = false"),
        sqlite_where=sa.text("return_approved = 0"),
    )
    op.create_index(
        "idx_transactions_user_created_at",
        "book_transaction_history",
        ["user_id", "created_at"],
    )
    op.create_index("idx_transactions_book", "book_transaction_history", ["book_id"])

    op.create_table(
        "feedbacks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("note", sa.Float(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("book_id", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_feedbacks_book_created_at", "feedbacks", ["book_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_feedbacks_book_created_at", table_name="feedbacks")
    op.drop_table("feedbacks")
    op.drop_index("idx_transactions_book", table_name="book_transaction_history")
    op.drop_index("idx_transactions_user_created_at", table_name="book_transaction_history")
    op.drop_index("uq_outstanding_loan", table_name="book_transaction_history")
    op.drop_table("book_transaction_history")
    op.drop_index("idx_books_owner_created_at", table_name="books")
    op.drop_table("books")
    op.drop_table("users")
