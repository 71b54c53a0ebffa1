"""
SubDesk Backend — Application Package Initializer
==================================================

What: Marks the `subdesk` directory as a Python package.
Why:  Enables module imports like `from subdesk.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend follows the same layered layout throughout:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Lifecycle rules, orchestration
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The subscription lifecycle engine (services/lifecycle.py) sits below the
    services as a set of pure functions with no I/O. Every other service
    calls into it instead of re-deriving due dates on its own.
"""

__version__ = "1.0.0"
