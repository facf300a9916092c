"""
SchoolDesk Backend — School Service (Business Logic Orchestrator)
===================================================================

What:  Central orchestrator coordinating validate → store image → persist for
       every school use case.
Why:   Encapsulates the business rules (field validation, record/image
       consistency) in one place, independent of HTTP and of which database
       or image backend is configured.
How:   Composes the validator, one ImageStore and one SchoolRepository,
       all injected by the composition root.
Who:   Called by route handlers in schooldesk.routes.schools.

Orchestration Flow (POST /api/schools):
    ┌──────────┐    ┌────────────┐    ┌────────────┐    ┌──────────────┐
    │  Fields  │───▶│  Validate  │───▶│   Store    │───▶│   Insert     │
    │  + Image │    │  (rules)   │    │   image    │    │  (repository)│
    └──────────┘    └────────────┘    └────────────┘    └──────────────┘

    On insert failure the just-stored image is deleted before the error
    propagates, so no image outlives a failed request.

Record/Image Invariant:
    A persisted record always references a live image. On update the new
    image is stored first, the record repointed, and only then is the old
    image deleted. Deletions are best-effort: a failure is logged and the
    request still succeeds.
    The old image is deleted last on purpose: a failed upload or write leaves
    the record on its old, still-present image.
"""

import logging
from typing import List, Optional

from schooldesk.exceptions import (
    DatabaseError,
    DuplicateEmailError,
    NotFoundError,
    SchoolDeskError,
    ValidationError,
)
from schooldesk.repositories.base import DuplicateKeyError, SchoolRepository
from schooldesk.schemas.school import ImageUpload, SchoolFields, SchoolInput, SchoolRecord
from schooldesk.services.image_store import ImageStore
from schooldesk.validators import missing_required_fields, validate_school_data

logger = logging.getLogger(__name__)

ALL_FIELDS_REQUIRED = "All fields are required"
IMAGE_REQUIRED = "School image is required"
INVALID_ID = "Invalid school ID"


class SchoolService:
    """
    Business logic layer for school operations.

    Responsibilities:
        - add_school / update_school / delete_school: mutations that keep
          the record and its image in step
        - get_school / list_schools / search_schools: reads with image
          references resolved to URLs for the requesting client

    Error Handling Strategy:
        Application exceptions (ValidationError, NotFoundError, ...) propagate
        as-is. DuplicateKeyError from a repository becomes DuplicateEmailError.
        Anything else raised by a repository is wrapped in DatabaseError, so
        driver details never reach the client.
    """

    def __init__(self, repository: SchoolRepository, image_store: ImageStore):
        self.repository = repository
        self.image_store = image_store

    # ── Helpers ───────────────────────────────────────────────────────────

    def _resolve(self, record: SchoolRecord, base_url: str) -> SchoolRecord:
        return record.model_copy(
            update={"image": self.image_store.resolve_url(record.image, base_url)}
        )

    @staticmethod
    def _check_fields(data: SchoolInput) -> None:
        result = validate_school_data(data.model_dump())
        if not result.is_valid:
            raise ValidationError(message=", ".join(result.errors), errors=result.errors)

    def _check_id(self, school_id: str) -> None:
        if not self.repository.is_valid_id(school_id):
            raise ValidationError(message=INVALID_ID, field="id", context={"school_id": school_id})

    @staticmethod
    def _database_error(operation: str, error: Exception) -> DatabaseError:
        logger.error("Repository error during %s: %s", operation, error, exc_info=True)
        return DatabaseError(context={"operation": operation, "original_error": type(error).__name__})

    async def _fetch(self, school_id: str) -> SchoolRecord:
        self._check_id(school_id)
        try:
            record = await self.repository.get(school_id)
        except Exception as e:
            raise self._database_error("get", e) from e
        if record is None:
            raise NotFoundError(resource="School", resource_id=school_id)
        return record

    # ── Mutations ─────────────────────────────────────────────────────────

    async def add_school(
        self,
        data: SchoolInput,
        image: Optional[ImageUpload],
        base_url: str,
    ) -> SchoolRecord:
        """
        Create a school together with its image.

        Check order (first failure wins):
            1. Any field missing or blank  → "All fields are required"
            2. Field rules                 → comma-joined rule messages
            3. No image uploaded           → "School image is required"
            4. Upload checks (size, type)  → ValidationError

        Raises:
            ValidationError:     any of the checks above (400)
            DuplicateEmailError: email_id already taken (400)
            FileStorageError:    image could not be stored (500)
            DatabaseError:       insert failed (500)
        """
        if missing_required_fields(data.model_dump()):
            raise ValidationError(message=ALL_FIELDS_REQUIRED)

        self._check_fields(data)

        if image is None:
            raise ValidationError(message=IMAGE_REQUIRED, field="image")

        self.image_store.validate_upload(image)
        fields = SchoolFields.from_input(data)

        # Image must be stored before the record can reference it
        reference = await self.image_store.store(image)

        try:
            record = await self.repository.create(fields, reference)
        except DuplicateKeyError as e:
            await self.image_store.delete(reference)
            raise DuplicateEmailError(email=fields.email_id) from e
        except Exception as e:
            await self.image_store.delete(reference)
            raise self._database_error("create", e) from e

        logger.info("School created: %s (%s)", record.id, record.email_id)
        return self._resolve(record, base_url)

    async def update_school(
        self,
        school_id: str,
        data: SchoolInput,
        image: Optional[ImageUpload],
        base_url: str,
    ) -> SchoolRecord:
        """
        Replace all six text fields, and the image when a new one is given.

        Raises:
            ValidationError:     field rules, malformed id, bad upload (400)
            NotFoundError:       no school with this id (404)
            DuplicateEmailError: email_id belongs to another school (400)
            FileStorageError / DatabaseError (500)
        """
        self._check_fields(data)
        current = await self._fetch(school_id)

        if image is not None:
            self.image_store.validate_upload(image)
        fields = SchoolFields.from_input(data)

        new_reference = await self.image_store.store(image) if image is not None else None
        reference = new_reference or current.image

        try:
            record = await self.repository.update(school_id, fields, reference)
        except DuplicateKeyError as e:
            await self.image_store.delete(new_reference)
            raise DuplicateEmailError(email=fields.email_id) from e
        except Exception as e:
            await self.image_store.delete(new_reference)
            raise self._database_error("update", e) from e

        if record is None:
            # Deleted between the read and the write
            await self.image_store.delete(new_reference)
            raise NotFoundError(resource="School", resource_id=school_id)

        if new_reference and current.image and current.image != new_reference:
            await self.image_store.delete(current.image)

        logger.info("School updated: %s (image %s)", school_id, "replaced" if new_reference else "kept")
        return self._resolve(record, base_url)

    async def delete_school(self, school_id: str) -> None:
        """
        Delete a school, then its image (best-effort).

        Raises:
            ValidationError: malformed id (400)
            NotFoundError:   no school with this id (404)
            DatabaseError:   delete failed (500)
        """
        current = await self._fetch(school_id)

        try:
            deleted = await self.repository.delete(school_id)
        except Exception as e:
            raise self._database_error("delete", e) from e

        if not deleted:
            raise NotFoundError(resource="School", resource_id=school_id)

        await self.image_store.delete(current.image)
        logger.info("School deleted: %s", school_id)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_school(self, school_id: str, base_url: str) -> SchoolRecord:
        """One school by id. ValidationError if malformed, NotFoundError if absent."""
        return self._resolve(await self._fetch(school_id), base_url)

    async def list_schools(self, base_url: str) -> List[SchoolRecord]:
        try:
            records = await self.repository.list_all()
        except SchoolDeskError:
            raise
        except Exception as e:
            raise self._database_error("list", e) from e
        return [self._resolve(r, base_url) for r in records]

    async def search_schools(self, term: str, base_url: str) -> List[SchoolRecord]:
        """
        Literal, case-insensitive substring search over name, city, state and
        address. A blank term matches every school.
        """
        term = (term or "").strip()
        if not term:
            return await self.list_schools(base_url)

        try:
            records = await self.repository.search(term)
        except SchoolDeskError:
            raise
        except Exception as e:
            raise self._database_error("search", e) from e
        return [self._resolve(r, base_url) for r in records]
