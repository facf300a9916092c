"""
SchoolDesk Backend — Document School Repository
=================================================

What:  SchoolRepository backed by a MongoDB collection via pymongo.
Why:   Lets deployments that already run MongoDB keep their school documents
       there; ids are ObjectId hex strings.
How:   pymongo is synchronous, so every collection call runs in Starlette's
       threadpool. Documents use camelCase timestamps (createdAt/updatedAt)
       alongside the snake_case school fields.

Document Shape:
    {
        "_id": ObjectId, "name": str, "address": str, "city": str,
        "state": str, "contact": str, "email_id": str, "image": str,
        "createdAt": datetime, "updatedAt": datetime
    }

Indexes (created by `initialize`):
    email_id   unique  → duplicate emails raise DuplicateKeyError
    createdAt  desc    → listing and search order
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError
from starlette.concurrency import run_in_threadpool

from schooldesk.repositories.base import DuplicateKeyError, SchoolRepository
from schooldesk.schemas.school import SchoolFields, SchoolRecord

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "city", "state", "address")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_record(doc: Dict[str, Any]) -> SchoolRecord:
    return SchoolRecord(
        id=str(doc["_id"]),
        name=doc["name"],
        address=doc["address"],
        city=doc["city"],
        state=doc["state"],
        contact=doc["contact"],
        email_id=doc["email_id"],
        image=doc.get("image") or "",
        created_at=doc["createdAt"],
        updated_at=doc["updatedAt"],
    )


class MongoSchoolRepository(SchoolRepository):
    """
    Document implementation of SchoolRepository.

    Args:
        collection: pymongo Collection holding school documents.
        client:     Owning MongoClient; closed on shutdown when given.
    """

    def __init__(self, collection, client=None):
        self.collection = collection
        self._client = client

    async def initialize(self) -> None:
        await run_in_threadpool(self.collection.create_index, "email_id", unique=True)
        await run_in_threadpool(self.collection.create_index, [("createdAt", DESCENDING)])
        logger.info("Ensured indexes on collection '%s'", self.collection.name)

    async def close(self) -> None:
        if self._client is not None:
            await run_in_threadpool(self._client.close)

    def is_valid_id(self, school_id: str) -> bool:
        return ObjectId.is_valid(school_id)

    async def create(self, fields: SchoolFields, image: str) -> SchoolRecord:
        now = _utcnow()
        doc = {**fields.model_dump(), "image": image, "createdAt": now, "updatedAt": now}
        try:
            result = await run_in_threadpool(self.collection.insert_one, doc)
        except MongoDuplicateKeyError as e:
            logger.info("Insert rejected by unique index: %s", e)
            raise DuplicateKeyError("email_id", fields.email_id) from e
        doc["_id"] = result.inserted_id
        return _to_record(doc)

    async def get(self, school_id: str) -> Optional[SchoolRecord]:
        if not self.is_valid_id(school_id):
            return None
        doc = await run_in_threadpool(self.collection.find_one, {"_id": ObjectId(school_id)})
        return _to_record(doc) if doc else None

    async def _find_sorted(self, query: Dict[str, Any]) -> List[SchoolRecord]:
        def _run():
            return list(self.collection.find(query).sort("createdAt", DESCENDING))

        docs = await run_in_threadpool(_run)
        return [_to_record(d) for d in docs]

    async def list_all(self) -> List[SchoolRecord]:
        return await self._find_sorted({})

    async def search(self, term: str) -> List[SchoolRecord]:
        # Escaped so user input is matched literally, never as a pattern
        pattern = {"$regex": re.escape(term), "$options": "i"}
        return await self._find_sorted({"$or": [{field: pattern} for field in SEARCH_FIELDS]})

    async def update(
        self, school_id: str, fields: SchoolFields, image: str
    ) -> Optional[SchoolRecord]:
        if not self.is_valid_id(school_id):
            return None
        changes = {**fields.model_dump(), "image": image, "updatedAt": _utcnow()}
        try:
            doc = await run_in_threadpool(
                self.collection.find_one_and_update,
                {"_id": ObjectId(school_id)},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except MongoDuplicateKeyError as e:
            logger.info("Update of %s rejected by unique index: %s", school_id, e)
            raise DuplicateKeyError("email_id", fields.email_id) from e
        return _to_record(doc) if doc else None

    async def delete(self, school_id: str) -> bool:
        if not self.is_valid_id(school_id):
            return False
        result = await run_in_threadpool(self.collection.delete_one, {"_id": ObjectId(school_id)})
        return result.deleted_count > 0
