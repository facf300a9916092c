"""
SchoolDesk Backend — SQL Repository Tests
===========================================

What:  Tests SQLSchoolRepository against a real SQLite database (aiosqlite)
       in a temporary file.
Why:   Ordering, unique-email enforcement and LIKE escaping are database
       behavior; mocks cannot vouch for them.
"""

import asyncio
import uuid

import pytest
import pytest_asyncio
from sqlalchemy import Text

from schooldesk.database import create_engine, create_session_factory
from schooldesk.models.school import School
from schooldesk.repositories.base import DuplicateKeyError
from schooldesk.repositories.sql import SQLSchoolRepository
from schooldesk.schemas.school import SchoolFields


@pytest_asyncio.fixture
async def sql_repository(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'schools.db'}")
    repo = SQLSchoolRepository(create_session_factory(engine), engine=engine, auto_create=True)
    await repo.initialize()
    yield repo
    await repo.close()


def make_fields(sample_school_data, **overrides):
    return SchoolFields(**{**sample_school_data, **overrides})


class TestSQLSchoolRepository:

    @pytest.mark.asyncio
    async def test_create_and_get(self, sql_repository, sample_school_data):
        created = await sql_repository.create(make_fields(sample_school_data), "school-1-2.png")

        assert uuid.UUID(created.id)
        assert created.image == "school-1-2.png"
        assert created.created_at is not None

        fetched = await sql_repository.get(created.id)
        assert fetched is not None
        assert fetched.id == created.id
        assert fetched.email_id == "info@dps.example.com"

    @pytest.mark.asyncio
    async def test_get_missing_or_malformed(self, sql_repository):
        assert await sql_repository.get(str(uuid.uuid4())) is None
        assert await sql_repository.get("not-a-uuid") is None

    @pytest.mark.asyncio
    async def test_is_valid_id(self, sql_repository):
        assert sql_repository.is_valid_id(str(uuid.uuid4()))
        assert not sql_repository.is_valid_id("507f1f77bcf86cd799439011")
        assert not sql_repository.is_valid_id("")

    @pytest.mark.asyncio
    async def test_duplicate_email_on_create(self, sql_repository, sample_school_data):
        await sql_repository.create(make_fields(sample_school_data), "a.png")

        with pytest.raises(DuplicateKeyError):
            await sql_repository.create(make_fields(sample_school_data, name="Other School"), "b.png")

        assert len(await sql_repository.list_all()) == 1

    @pytest.mark.asyncio
    async def test_list_newest_first(self, sql_repository, sample_school_data):
        ids = []
        for i in range(3):
            record = await sql_repository.create(
                make_fields(sample_school_data, email_id=f"school{i}@example.com"), f"{i}.png"
            )
            ids.append(record.id)
            await asyncio.sleep(0.01)

        assert [r.id for r in await sql_repository.list_all()] == list(reversed(ids))

    @pytest.mark.asyncio
    async def test_search(self, sql_repository, sample_school_data):
        await sql_repository.create(
            make_fields(sample_school_data, name="Sunrise Academy", city="Pune", email_id="a@example.com"), "a.png"
        )
        await asyncio.sleep(0.01)
        await sql_repository.create(
            make_fields(sample_school_data, name="Lakeview High", address="Near 50% Discount Mall, MG Road", email_id="b@example.com"), "b.png"
        )

        assert [r.name for r in await sql_repository.search("pUNe")] == ["Sunrise Academy"]
        assert [r.name for r in await sql_repository.search("50%")] == ["Lakeview High"]
        # Wildcards in the term are literal
        assert await sql_repository.search("_%") == []
        # Matches across every searchable field, newest first
        assert [r.name for r in await sql_repository.search("delhi")] == ["Lakeview High", "Sunrise Academy"]

    @pytest.mark.asyncio
    async def test_update(self, sql_repository, sample_school_data):
        created = await sql_repository.create(make_fields(sample_school_data), "old.png")

        updated = await sql_repository.update(
            created.id, make_fields(sample_school_data, city="Noida", state="Uttar Pradesh"), "new.png"
        )

        assert updated.city == "Noida"
        assert updated.state == "Uttar Pradesh"
        assert updated.image == "new.png"
        assert updated.updated_at >= updated.created_at
        assert (await sql_repository.get(created.id)).image == "new.png"

    @pytest.mark.asyncio
    async def test_update_missing(self, sql_repository, sample_school_data):
        assert await sql_repository.update(str(uuid.uuid4()), make_fields(sample_school_data), "x.png") is None

    @pytest.mark.asyncio
    async def test_update_duplicate_email(self, sql_repository, sample_school_data):
        await sql_repository.create(make_fields(sample_school_data), "a.png")
        other = await sql_repository.create(make_fields(sample_school_data, email_id="other@example.com"), "b.png")

        with pytest.raises(DuplicateKeyError):
            await sql_repository.update(other.id, make_fields(sample_school_data), "b.png")

        assert (await sql_repository.get(other.id)).email_id == "other@example.com"

    @pytest.mark.asyncio
    async def test_delete(self, sql_repository, sample_school_data):
        created = await sql_repository.create(make_fields(sample_school_data), "a.png")

        assert await sql_repository.delete(created.id) is True
        assert await sql_repository.get(created.id) is None
        assert await sql_repository.delete(created.id) is False

    @pytest.mark.asyncio
    async def test_long_text_fields_round_trip(self, sql_repository, sample_school_data):
        fields = make_fields(
            sample_school_data,
            name="N" * 400,
            city="C" * 150,
            state="S" * 150,
            email_id="a" * 300 + "@example.com",
        )

        created = await sql_repository.create(fields, "a.png")

        fetched = await sql_repository.get(created.id)
        assert fetched.name == "N" * 400
        assert fetched.city == "C" * 150
        assert fetched.email_id.startswith("a" * 300)


class TestSchoolTable:

    @pytest.mark.parametrize("column", ["name", "address", "city", "state", "email_id"])
    def test_free_text_columns_have_no_length_limit(self, column):
        # The validator only enforces minimum lengths; a VARCHAR(n) would turn
        # long valid input into a database error on PostgreSQL
        column_type = School.__table__.c[column].type
        assert isinstance(column_type, Text)
        assert column_type.length is None
