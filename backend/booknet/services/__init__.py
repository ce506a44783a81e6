# Services package init
"""
BookNet Backend — Services Layer
=================================

What:  Business logic layer sitting between routes (HTTP) and database (persistence).
Why:   Routes handle HTTP, services handle lending rules and read models.

Service Inventory:
    - CatalogStore (abstract): persistence contract for books, loans, feedback
    - SqlAlchemyCatalogStore: CatalogStore over an async SQLAlchemy session
    - LendingService: borrow / return / approve / toggle rules (the engine)
    - BookService: create, fetch and list books and loans
    - FeedbackService: leave and list feedback
    - mappers: entity → response projections with derived flags
"""
