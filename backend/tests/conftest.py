"""
SchoolDesk Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Service and route tests run against in-memory fakes of the repository
       and image store, so no database, disk or S3 is needed unless a test
       asks for one explicitly.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── sample_school_data:  Valid form fields for one school
    ├── sample_image_bytes:  Minimal PNG bytes for uploads
    ├── sample_upload:       ImageUpload wrapping those bytes
    ├── repository:          InMemorySchoolRepository
    ├── image_store:         InMemoryImageStore
    ├── school_service:      SchoolService over the two fakes
    ├── images_dir:          Temporary directory for LocalImageStore
    └── test_client:         HTTPX AsyncClient with the service overridden
"""

import itertools
import logging
import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Must run before any schooldesk import: settings are read at import time
os.environ["DATABASE_BACKEND"] = "sql"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["IMAGE_STORAGE"] = "local"
os.environ["IMAGES_DIR"] = tempfile.mkdtemp(prefix="schooldesk_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from schooldesk.exceptions import FileStorageError  # noqa: E402
from schooldesk.repositories.base import DuplicateKeyError, SchoolRepository  # noqa: E402
from schooldesk.schemas.school import (  # noqa: E402
    ImageUpload,
    SchoolFields,
    SchoolInput,
    SchoolRecord,
)
from schooldesk.services.image_store import ImageStore, generate_image_name  # noqa: E402
from schooldesk.services.school_service import SchoolService  # noqa: E402

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# In-Memory Fakes
# ══════════════════════════════════════════════════════════════════════════


class InMemorySchoolRepository(SchoolRepository):
    """
    Dict-backed repository honouring the SchoolRepository contract.

    `fail_with`: exception raised by create/update/delete/list when set,
    to simulate a broken database.
    """

    _BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __init__(self):
        self.records: Dict[str, SchoolRecord] = {}
        self.fail_with: Optional[Exception] = None
        self._seq = itertools.count(1)

    def _now(self) -> datetime:
        # Strictly increasing, so "newest first" is deterministic
        return self._BASE_TIME + timedelta(seconds=next(self._seq))

    def _check_failure(self):
        if self.fail_with is not None:
            raise self.fail_with

    def _check_email(self, email_id: str, exclude_id: Optional[str] = None):
        for record in self.records.values():
            if record.email_id == email_id and record.id != exclude_id:
                raise DuplicateKeyError("email_id", email_id)

    def is_valid_id(self, school_id: str) -> bool:
        try:
            uuid.UUID(school_id)
        except (ValueError, TypeError):
            return False
        return True

    async def create(self, fields: SchoolFields, image: str) -> SchoolRecord:
        self._check_failure()
        self._check_email(fields.email_id)
        now = self._now()
        record = SchoolRecord(
            id=str(uuid.uuid4()),
            image=image,
            created_at=now,
            updated_at=now,
            **fields.model_dump(),
        )
        self.records[record.id] = record
        return record

    async def get(self, school_id: str) -> Optional[SchoolRecord]:
        return self.records.get(school_id)

    def _newest_first(self, records) -> List[SchoolRecord]:
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def list_all(self) -> List[SchoolRecord]:
        self._check_failure()
        return self._newest_first(self.records.values())

    async def search(self, term: str) -> List[SchoolRecord]:
        self._check_failure()
        needle = term.lower()
        return self._newest_first(
            r for r in self.records.values()
            if any(needle in getattr(r, f).lower() for f in ("name", "city", "state", "address"))
        )

    async def update(self, school_id: str, fields: SchoolFields, image: str) -> Optional[SchoolRecord]:
        self._check_failure()
        current = self.records.get(school_id)
        if current is None:
            return None
        self._check_email(fields.email_id, exclude_id=school_id)
        record = current.model_copy(
            update={**fields.model_dump(), "image": image, "updated_at": self._now()}
        )
        self.records[school_id] = record
        return record

    async def delete(self, school_id: str) -> bool:
        self._check_failure()
        return self.records.pop(school_id, None) is not None


class InMemoryImageStore(ImageStore):
    """
    Keeps stored images in a dict and records every delete call.

    `fail_store`:  store() raises FileStorageError.
    `fail_delete`: delete() hits an error, which it logs and swallows like
                   the real stores.
    """

    def __init__(self, max_file_size: int = 5_242_880):
        super().__init__(max_file_size)
        self.images: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.fail_store = False
        self.fail_delete = False

    async def store(self, upload: ImageUpload) -> str:
        if self.fail_store:
            raise FileStorageError(context={"reason": "simulated"})
        reference = generate_image_name(os.path.splitext(upload.filename)[1].lower())
        self.images[reference] = upload.content
        return reference

    async def delete(self, reference: Optional[str]) -> None:
        if not reference:
            return
        self.deleted.append(reference)
        if self.fail_delete:
            logger.warning("Failed to delete image %s: simulated", reference)
            return
        self.images.pop(reference, None)

    def resolve_url(self, reference: str, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/schoolImages/{reference}"


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def sample_school_data():
    """Form fields that pass every validation rule."""
    return {
        "name": "Delhi Public School",
        "address": "Mathura Road, Sector 3",
        "city": "New Delhi",
        "state": "Delhi",
        "contact": "9876543210",
        "email_id": "info@dps.example.com",
    }


@pytest.fixture
def sample_school_input(sample_school_data):
    return SchoolInput(**sample_school_data)


@pytest.fixture
def sample_image_bytes():
    """
    Minimal PNG: signature + IHDR chunk header. Not a decodable image, but
    uploads are checked by size, extension and content type only.
    """
    return b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"


@pytest.fixture
def sample_upload(sample_image_bytes):
    return ImageUpload(filename="campus.png", content=sample_image_bytes, content_type="image/png")


@pytest.fixture
def repository():
    return InMemorySchoolRepository()


@pytest.fixture
def image_store():
    return InMemoryImageStore()


@pytest.fixture
def school_service(repository, image_store):
    return SchoolService(repository, image_store)


@pytest.fixture
def images_dir(tmp_path):
    """Fresh directory for LocalImageStore tests (cleaned up by pytest)."""
    path = tmp_path / "schoolImages"
    path.mkdir()
    return path


@pytest_asyncio.fixture
async def test_client(repository, images_dir):
    """
    HTTPX AsyncClient talking to a fresh app.

    The app's SchoolService is replaced by one over the in-memory repository
    and a LocalImageStore in a temporary directory, so uploads land on disk
    and can be fetched back through /schoolImages.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/api/health")
            assert response.status_code == 200
    """
    from schooldesk.dependencies import get_school_service
    from schooldesk.main import create_app
    from schooldesk.services.image_store import LocalImageStore

    app = create_app(serve_local_images=True)
    service = SchoolService(repository, LocalImageStore(images_dir=str(images_dir)))
    app.dependency_overrides[get_school_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
