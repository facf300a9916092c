"""
SchoolDesk Backend — Relational School Repository
===================================================

What:  SchoolRepository backed by the `schools` table via async SQLAlchemy.
Why:   Default persistence for deployments running PostgreSQL (asyncpg);
       the same code runs on SQLite (aiosqlite) in tests.
How:   One session per operation through `session_scope` (commit on success,
       rollback on error). IntegrityError on the email unique constraint is
       translated into DuplicateKeyError.

Query plans:
    get:       SELECT ... WHERE id = :uuid                   (primary key)
    list_all:  SELECT ... ORDER BY created_at DESC           (idx_schools_created_at)
    search:    SELECT ... WHERE name ILIKE :p OR city ILIKE :p
                            OR state ILIKE :p OR address ILIKE :p
               ORDER BY created_at DESC
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, desc, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from schooldesk.database import create_tables, dispose_engine, session_scope
from schooldesk.models.school import School
from schooldesk.repositories.base import DuplicateKeyError, SchoolRepository
from schooldesk.schemas.school import SchoolFields, SchoolRecord

logger = logging.getLogger(__name__)

# Escape character for LIKE patterns; user input is matched literally
LIKE_ESCAPE = "\\"


def _like_pattern(term: str) -> str:
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def _to_record(school: School) -> SchoolRecord:
    return SchoolRecord(
        id=str(school.id),
        name=school.name,
        address=school.address,
        city=school.city,
        state=school.state,
        contact=school.contact,
        email_id=school.email_id,
        image=school.image,
        created_at=school.created_at,
        updated_at=school.updated_at,
    )


class SQLSchoolRepository(SchoolRepository):
    """
    Relational implementation of SchoolRepository.

    Args:
        session_factory: Built once at startup from the process-wide engine.
        engine: Optional; when given, `initialize` can create tables and
                `close` disposes it.
        auto_create: Create the table at startup (SQLite / development).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine=None,
        auto_create: bool = False,
    ):
        self._session_factory = session_factory
        self._engine = engine
        self._auto_create = auto_create

    async def initialize(self) -> None:
        if self._auto_create and self._engine is not None:
            await create_tables(self._engine)
            logger.info("Ensured table '%s' exists", School.__tablename__)

    async def close(self) -> None:
        if self._engine is not None:
            await dispose_engine(self._engine)

    def is_valid_id(self, school_id: str) -> bool:
        return self._parse_id(school_id) is not None

    @staticmethod
    def _parse_id(school_id: str) -> Optional[uuid.UUID]:
        try:
            return uuid.UUID(str(school_id))
        except (ValueError, TypeError):
            return None

    async def create(self, fields: SchoolFields, image: str) -> SchoolRecord:
        school = School(**fields.model_dump(), image=image)
        try:
            async with session_scope(self._session_factory) as session:
                session.add(school)
                # Flush inside the scope so constraint violations surface here
                await session.flush()
        except IntegrityError as e:
            logger.info("Insert rejected by unique constraint: %s", e.orig)
            raise DuplicateKeyError("email_id", fields.email_id) from e
        return _to_record(school)

    async def get(self, school_id: str) -> Optional[SchoolRecord]:
        pk = self._parse_id(school_id)
        if pk is None:
            return None
        async with session_scope(self._session_factory) as session:
            school = await session.get(School, pk)
            return _to_record(school) if school else None

    async def list_all(self) -> List[SchoolRecord]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(School).order_by(desc(School.created_at))
            )
            return [_to_record(s) for s in result.scalars().all()]

    async def search(self, term: str) -> List[SchoolRecord]:
        pattern = _like_pattern(term)
        query = (
            select(School)
            .where(
                or_(
                    School.name.ilike(pattern, escape=LIKE_ESCAPE),
                    School.city.ilike(pattern, escape=LIKE_ESCAPE),
                    School.state.ilike(pattern, escape=LIKE_ESCAPE),
                    School.address.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
            .order_by(desc(School.created_at))
        )
        async with session_scope(self._session_factory) as session:
            result = await session.execute(query)
            return [_to_record(s) for s in result.scalars().all()]

    async def update(
        self, school_id: str, fields: SchoolFields, image: str
    ) -> Optional[SchoolRecord]:
        pk = self._parse_id(school_id)
        if pk is None:
            return None
        try:
            async with session_scope(self._session_factory) as session:
                school = await session.get(School, pk)
                if school is None:
                    return None
                for key, value in fields.model_dump().items():
                    setattr(school, key, value)
                school.image = image
                await session.flush()
                # Reload so updated_at reflects the row as written
                await session.refresh(school)
        except IntegrityError as e:
            logger.info("Update of %s rejected by unique constraint: %s", school_id, e.orig)
            raise DuplicateKeyError("email_id", fields.email_id) from e
        return _to_record(school)

    async def delete(self, school_id: str) -> bool:
        pk = self._parse_id(school_id)
        if pk is None:
            return False
        async with session_scope(self._session_factory) as session:
            result = await session.execute(delete(School).where(School.id == pk))
            return result.rowcount > 0
