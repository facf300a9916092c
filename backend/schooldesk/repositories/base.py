"""
SchoolDesk Backend — Abstract School Repository Interface
===========================================================

What:  Abstract base class defining the persistence contract for schools.
Why:   The service is written once against this interface; the relational
       and document implementations are picked from configuration at startup.
How:   Concrete repositories inherit from SchoolRepository and implement
       every abstract method. All methods that touch the database are async.

Contract:
    - Ids are opaque strings; `is_valid_id` tells the service whether a
      string could be an id for this backend at all.
    - Missing records are signalled with None (get/update) or False (delete),
      never with an exception.
    - A unique-email violation raises DuplicateKeyError. Any other driver
      exception propagates unchanged; the service wraps it.
    - `create` and `update` store the fields and image reference given;
      timestamps are the repository's job.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from schooldesk.schemas.school import SchoolFields, SchoolRecord


class DuplicateKeyError(Exception):
    """A unique constraint was violated on insert or update."""

    def __init__(self, field: str = "email_id", value: Optional[str] = None):
        self.field = field
        self.value = value
        super().__init__(f"Duplicate value for unique field '{field}'")


class SchoolRepository(ABC):
    """Persistence abstraction for SchoolRecord CRUD and search."""

    async def initialize(self) -> None:
        """Prepare the backing store (tables, indexes). Called once at startup."""

    async def close(self) -> None:
        """Release connections. Called once at shutdown."""

    @abstractmethod
    def is_valid_id(self, school_id: str) -> bool:
        """True if `school_id` is syntactically a valid id for this backend."""
        ...

    @abstractmethod
    async def create(self, fields: SchoolFields, image: str) -> SchoolRecord:
        """Insert a new school. Raises DuplicateKeyError on a taken email."""
        ...

    @abstractmethod
    async def get(self, school_id: str) -> Optional[SchoolRecord]:
        """Fetch one school, or None."""
        ...

    @abstractmethod
    async def list_all(self) -> List[SchoolRecord]:
        """Every school, newest first."""
        ...

    @abstractmethod
    async def search(self, term: str) -> List[SchoolRecord]:
        """
        Case-insensitive literal substring match of `term` against name,
        city, state and address (any field may match), newest first.
        """
        ...

    @abstractmethod
    async def update(
        self, school_id: str, fields: SchoolFields, image: str
    ) -> Optional[SchoolRecord]:
        """
        Replace all text fields and the image reference.

        Returns None if the school no longer exists. Raises DuplicateKeyError
        if the new email belongs to another school.
        """
        ...

    @abstractmethod
    async def delete(self, school_id: str) -> bool:
        """Delete one school. Returns False if it did not exist."""
        ...
