"""
SchoolDesk Backend — Composition Root & FastAPI Dependencies
==============================================================

What:  Builds the repository, image store and SchoolService from settings,
       and exposes the service to route handlers.
Why:   Backend choice (SQL vs Mongo, local disk vs S3) is made exactly once,
       at startup. Routes and the service never look at configuration.
How:   The lifespan handler calls `build_school_service()`, awaits
       `initialize()`, stores the service on `app.state.school_service`,
       and closes it at shutdown. Routes depend on `get_school_service`;
       tests replace it through `app.dependency_overrides`.
"""

import logging
from typing import Optional

from fastapi import Request

from schooldesk.config import Settings, settings as default_settings
from schooldesk.repositories.base import SchoolRepository
from schooldesk.services.image_store import (
    ImageStore,
    LocalImageStore,
    S3ImageStore,
    default_public_base_url,
)
from schooldesk.services.school_service import SchoolService

logger = logging.getLogger(__name__)


def build_repository(config: Optional[Settings] = None) -> SchoolRepository:
    """Repository for DATABASE_BACKEND. Driver imports stay local to the branch taken."""
    config = config or default_settings

    if config.database_backend == "mongo":
        from pymongo import MongoClient

        from schooldesk.repositories.mongo import MongoSchoolRepository

        # tz_aware: timestamps come back as aware UTC datetimes, like the SQL backend
        client = MongoClient(config.mongo_uri, tz_aware=True)
        collection = client[config.mongo_db_name][config.mongo_collection]
        logger.info("Using MongoDB repository: %s.%s", config.mongo_db_name, config.mongo_collection)
        return MongoSchoolRepository(collection, client=client)

    from schooldesk.database import create_engine, create_session_factory
    from schooldesk.repositories.sql import SQLSchoolRepository

    engine = create_engine(config=config)
    logger.info("Using SQL repository: %s", engine.url.render_as_string(hide_password=True))
    return SQLSchoolRepository(
        create_session_factory(engine),
        engine=engine,
        auto_create=config.db_auto_create,
    )


def build_image_store(config: Optional[Settings] = None) -> ImageStore:
    """Image store for IMAGE_STORAGE."""
    config = config or default_settings

    if config.image_storage == "s3":
        import boto3

        client_kwargs = {"region_name": config.s3_region}
        if config.s3_endpoint_url:
            client_kwargs["endpoint_url"] = config.s3_endpoint_url
        # Empty credentials fall through to boto3's default chain (env, profile, IAM role)
        if config.aws_access_key_id and config.aws_secret_access_key:
            client_kwargs["aws_access_key_id"] = config.aws_access_key_id
            client_kwargs["aws_secret_access_key"] = config.aws_secret_access_key

        return S3ImageStore(
            boto3.client("s3", **client_kwargs),
            bucket=config.s3_bucket,
            folder=config.s3_folder,
            public_base_url=config.s3_public_base_url
            or default_public_base_url(config.s3_bucket, config.s3_region, config.s3_endpoint_url),
            max_file_size=config.max_file_size,
            max_attempts=config.retry_max_attempts,
            min_wait=config.retry_min_wait,
            max_wait=config.retry_max_wait,
        )

    return LocalImageStore(
        images_dir=config.images_dir,
        url_path=config.images_url_path,
        max_file_size=config.max_file_size,
    )


def build_school_service(config: Optional[Settings] = None) -> SchoolService:
    return SchoolService(build_repository(config), build_image_store(config))


async def close_school_service(service: SchoolService) -> None:
    """Release the repository's and image store's connections."""
    await service.repository.close()
    await service.image_store.close()


def get_school_service(request: Request) -> SchoolService:
    """FastAPI dependency: the SchoolService built at startup."""
    return request.app.state.school_service
