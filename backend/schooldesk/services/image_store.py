"""
SchoolDesk Backend — Image Store Adapters
===========================================

What:  Stores, deletes and builds public URLs for uploaded school images.
Why:   SchoolService needs one interface over two very different backends:
       files on local disk served by this app, and objects in an S3 bucket
       served by S3 (or a CDN in front of it).
How:   `ImageStore` holds the upload checks shared by both; each subclass
       implements `store`, `delete` and `resolve_url`.
Who:   Built once by the composition root (schooldesk.dependencies) and
       called only by SchoolService.

Stored References:
    LocalImageStore:  the generated filename, e.g. "school-1718000000000-42.png".
                      The URL depends on the host the client used, so it is
                      built per request from the request's base URL.
    S3ImageStore:     the full public object URL. The object key is
                      "<folder>/school-<epoch-ms>-<random>", with no extension,
                      so the key can be re-derived from the URL on delete.

Failure Model:
    store():   raises FileStorageError (500) when the write/upload fails
    delete():  best-effort; logs and returns, never raises
"""

import logging
import os
import random
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiofiles
from starlette.concurrency import run_in_threadpool
from tenacity import before_sleep_log, retry, stop_after_attempt, wait_exponential_jitter

from schooldesk.config import settings
from schooldesk.exceptions import FileStorageError, ValidationError
from schooldesk.schemas.school import ImageUpload

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

IMAGE_NAME_PREFIX = "school"


def generate_image_name(extension: str = "") -> str:
    """
    Unique image name: "school-<epoch milliseconds>-<random 0..1e9><extension>".

    The random suffix keeps names distinct for uploads in the same millisecond.
    """
    millis = int(time.time() * 1000)
    return f"{IMAGE_NAME_PREFIX}-{millis}-{random.randint(0, 10**9)}{extension}"


class ImageStore(ABC):
    """
    Base class for image storage backends.

    Args:
        max_file_size: Largest accepted upload in bytes (defaults to settings).
    """

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size or settings.max_file_size

    def validate_upload(self, upload: ImageUpload) -> str:
        """
        Check an upload before anything is written.

        Order: empty → size → extension → declared content type.

        Returns:
            Normalized extension (lowercase with dot).

        Raises:
            ValidationError (400) for each rejected case.
        """
        if upload.size == 0:
            raise ValidationError(
                message="Uploaded image is empty",
                field="image",
            )

        if upload.size > self.max_file_size:
            max_mb = self.max_file_size / (1024 * 1024)
            raise ValidationError(
                message=f"Image size exceeds maximum of {max_mb:.0f}MB",
                field="image",
                context={"max_size": self.max_file_size, "actual_size": upload.size},
            )

        ext = Path(upload.filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    "Only image files are allowed "
                    f"({', '.join(e.lstrip('.') for e in sorted(ALLOWED_EXTENSIONS))})"
                ),
                field="image",
                context={"extension": ext},
            )

        if upload.content_type and not upload.content_type.startswith("image/"):
            raise ValidationError(
                message="Only image files are allowed",
                field="image",
                context={"content_type": upload.content_type},
            )

        return ext

    async def close(self) -> None:
        """Release any client held by the store."""

    @abstractmethod
    async def store(self, upload: ImageUpload) -> str:
        """Persist the image and return its stored reference."""
        ...

    @abstractmethod
    async def delete(self, reference: Optional[str]) -> None:
        """Remove a stored image. Never raises."""
        ...

    @abstractmethod
    def resolve_url(self, reference: str, base_url: str) -> str:
        """Public URL for a stored reference."""
        ...


# ══════════════════════════════════════════════════════════════════════════
# Local Disk
# ══════════════════════════════════════════════════════════════════════════


class LocalImageStore(ImageStore):
    """
    Images as flat files under one directory, served at `url_path`.

    Directory Structure:
        schoolImages/
        ├── school-1718000000000-123456789.jpg
        └── school-1718000000512-987654321.png
    """

    def __init__(
        self,
        images_dir: Optional[str] = None,
        url_path: Optional[str] = None,
        max_file_size: Optional[int] = None,
    ):
        super().__init__(max_file_size)
        self.images_dir = Path(images_dir or settings.images_dir).resolve()
        self.url_path = "/" + (url_path or settings.images_url_path).strip("/")
        self.images_dir.mkdir(parents=True, exist_ok=True)
        logger.info("LocalImageStore initialized with images_dir=%s", self.images_dir)

    def path_for(self, filename: str) -> Optional[Path]:
        """
        Absolute path of a stored image, or None if `filename` would escape
        the images directory.
        """
        candidate = (self.images_dir / filename).resolve()
        if candidate.parent != self.images_dir:
            return None
        return candidate

    async def store(self, upload: ImageUpload) -> str:
        ext = Path(upload.filename).suffix.lower()
        filename = generate_image_name(ext)
        path = self.images_dir / filename

        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(upload.content)
        except OSError as e:
            logger.error("Failed to write image %s: %s", path, e)
            raise FileStorageError(context={"path": str(path), "os_error": str(e)}) from e

        logger.info("Image stored: %s (%d bytes)", filename, upload.size)
        return filename

    async def delete(self, reference: Optional[str]) -> None:
        if not reference:
            return
        try:
            path = self.path_for(os.path.basename(reference))
            if path is not None and path.exists():
                os.remove(path)
                logger.info("Deleted image: %s", path.name)
            else:
                logger.debug("Image already gone: %s", reference)
        except Exception as e:
            logger.warning("Failed to delete image %s: %s", reference, e)

    def resolve_url(self, reference: str, base_url: str) -> str:
        if reference.startswith(("http://", "https://")):
            return reference
        return f"{base_url.rstrip('/')}{self.url_path}/{reference}"


# ══════════════════════════════════════════════════════════════════════════
# S3
# ══════════════════════════════════════════════════════════════════════════


class S3ImageStore(ImageStore):
    """
    Images as objects in an S3 (or S3-compatible) bucket.

    boto3 is synchronous; every client call runs in Starlette's threadpool
    so the event loop keeps serving other requests.

    Args:
        client:          A boto3 S3 client (built by the composition root).
        bucket:          Target bucket.
        folder:          Key prefix for all school images.
        public_base_url: URL prefix objects are reachable under.
        max_attempts / min_wait / max_wait: Upload retry policy.
    """

    def __init__(
        self,
        client,
        bucket: Optional[str] = None,
        folder: Optional[str] = None,
        public_base_url: Optional[str] = None,
        max_file_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
        min_wait: Optional[float] = None,
        max_wait: Optional[float] = None,
    ):
        super().__init__(max_file_size)
        self.client = client
        self.bucket = bucket or settings.s3_bucket
        self.folder = (folder or settings.s3_folder).strip("/")
        self.public_base_url = (
            public_base_url or default_public_base_url(self.bucket)
        ).rstrip("/")

        # What: put_object wrapped with exponential backoff + jitter
        # Why per instance: the policy comes from constructor arguments
        self._put_object = retry(
            stop=stop_after_attempt(max_attempts or settings.retry_max_attempts),
            wait=wait_exponential_jitter(
                initial=settings.retry_min_wait if min_wait is None else min_wait,
                max=settings.retry_max_wait if max_wait is None else max_wait,
                jitter=0 if max_wait == 0 else 1,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )(self._put_object_once)

        logger.info("S3ImageStore initialized for bucket=%s folder=%s", self.bucket, self.folder)

    async def _put_object_once(self, key: str, upload: ImageUpload) -> None:
        await run_in_threadpool(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=upload.content,
            ContentType=upload.content_type or "application/octet-stream",
        )

    def key_from_reference(self, reference: str) -> str:
        """
        Object key for a stored URL: last path segment, extension dropped,
        re-qualified with the folder.
        """
        last_segment = reference.rstrip("/").split("/")[-1]
        name = last_segment.split(".")[0]
        return f"{self.folder}/{name}"

    async def store(self, upload: ImageUpload) -> str:
        key = f"{self.folder}/{generate_image_name()}"
        try:
            await self._put_object(key, upload)
        except Exception as e:
            logger.error("Failed to upload image to s3://%s/%s: %s", self.bucket, key, e)
            raise FileStorageError(context={"bucket": self.bucket, "key": key, "error": str(e)}) from e

        logger.info("Image uploaded: s3://%s/%s (%d bytes)", self.bucket, key, upload.size)
        return f"{self.public_base_url}/{key}"

    async def delete(self, reference: Optional[str]) -> None:
        if not reference:
            return
        key = self.key_from_reference(reference)
        try:
            await run_in_threadpool(self.client.delete_object, Bucket=self.bucket, Key=key)
            logger.info("Deleted image: s3://%s/%s", self.bucket, key)
        except Exception as e:
            logger.warning("Failed to delete image s3://%s/%s: %s", self.bucket, key, e)

    def resolve_url(self, reference: str, base_url: str) -> str:
        return reference

    async def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            await run_in_threadpool(close)


def default_public_base_url(
    bucket: str,
    region: Optional[str] = None,
    endpoint_url: Optional[str] = None,
) -> str:
    """Virtual-hosted style bucket URL, or path style under a custom endpoint."""
    endpoint_url = settings.s3_endpoint_url if endpoint_url is None else endpoint_url
    if endpoint_url:
        return f"{endpoint_url.rstrip('/')}/{bucket}"
    return f"https://{bucket}.s3.{region or settings.s3_region}.amazonaws.com"
