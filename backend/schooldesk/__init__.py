"""
SchoolDesk Backend — Application Package Initializer
====================================================

What: Marks the `schooldesk` directory as a Python package.
Why:  Enables module imports like `from schooldesk.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is layered so that storage choices never leak into business rules:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   SchoolService (Business Logic)    │  ← Validation, image/record sync
    ├──────────────────┬──────────────────┤
    │  Repositories    │  Image Stores    │  ← SQL | Mongo   /   Local | S3
    ├──────────────────┴──────────────────┤
    │     Database / Disk / Object Store  │
    └─────────────────────────────────────┘

    Exactly one repository and one image store are active per deployment.
    They are chosen from configuration at startup and injected into the
    service, so the same orchestration code runs against every combination.
"""

__version__ = "1.0.0"
