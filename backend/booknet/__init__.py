"""
BookNet Backend — Application Package Initializer
==================================================

What: Marks the `booknet` directory as a Python package.
Who:  Used by the import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend follows the same layered layout as our other services:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Lending Engine, Books)  │  ← Invariants, authorization
    ├─────────────────────────────────────┤
    │         Catalog Store               │  ← The only code issuing queries
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The lending engine only talks to the catalog store contract, so the
    storage backend can be swapped without touching lending rules.
"""

__version__ = "1.0.0"
