"""
SchoolDesk Backend — School SQLAlchemy Model
==============================================

What:  ORM model representing the `schools` table.
Why:   Maps Python objects to database rows for the relational repository.
How:   Inherits from the shared DeclarativeBase; Alembic reads this for migrations.
Who:   Used by SQLSchoolRepository and by Alembic for schema management.

Table Design Rationale:
    - UUID primary key: non-sequential and generated in Python, so the same
      model works on PostgreSQL and on SQLite in tests
    - email_id UNIQUE: the database is the arbiter of duplicate emails; the
      repository translates the IntegrityError into DuplicateKeyError
    - image: stored reference only (local filename or full remote URL);
      URLs for local files are built per request, never stored
    - created_at / updated_at: UTC, set by the application on insert/update

    Index on created_at DESC:
        Listing and search both return newest first.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from schooldesk.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class School(Base):
    """
    A school record.

    Lifecycle:
        1. Inserted by the add-school use case together with its image
        2. Text fields replaced wholesale on update; image only when a new
           one is uploaded
        3. Deleted together with its image
    """

    __tablename__ = "schools"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Unbounded: the validator sets minimum lengths only
    name: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False)

    # Ten digits; validated before it reaches the database
    contact: Mapped[str] = mapped_column(String(20), nullable=False)

    email_id: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
        comment="Contact email; unique across schools",
    )

    image: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        comment="Stored image reference: local filename or remote URL",
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_schools_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<School(id={self.id}, name='{self.name}', email_id='{self.email_id}')>"
