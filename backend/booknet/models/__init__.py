# Importing every model registers it with Base.metadata (Alembic, create_all)
from booknet.models.user import User
from booknet.models.book import Book
from booknet.models.lending_transaction import LendingTransaction
from booknet.models.feedback import Feedback

__all__ = ["User", "Book", "LendingTransaction", "Feedback"]
