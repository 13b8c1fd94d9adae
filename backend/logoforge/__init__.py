"""
LogoForge Backend — Application Package Initializer
===================================================

What: Marks the `logoforge` directory as a Python package.
Why:  Enables module imports like `from logoforge.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend keeps a layered layout around a small pure core:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Orchestration, Media)   │  ← transactions, upstream calls
    ├─────────────────────────────────────┤
    │  Core: z-order, renderer, snapshot  │  ← pure, synchronous, no I/O
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The core modules never open sessions or talk to the media host. Services
    read rows, hand plain values to the core and write the results back.
"""

__version__ = "1.0.0"
