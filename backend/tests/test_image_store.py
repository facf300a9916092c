"""
SchoolDesk Backend — Image Store Unit Tests
=============================================

What:  Tests for upload checks, LocalImageStore and S3ImageStore.
How:   LocalImageStore writes into pytest's tmp_path; S3ImageStore talks to a
       MagicMock standing in for the boto3 client.

What we test:
    ✅ Upload checks: empty, oversized, wrong extension, wrong content type
    ✅ Generated names: prefix, millisecond timestamp, extension
    ✅ Local: write, delete, missing-file delete, URL from request base URL
    ✅ Local: path traversal is refused
    ✅ S3: key layout, returned URL, retry on transient failure
    ✅ S3: key derived from URL on delete; delete errors swallowed
"""

import re
import time
from unittest.mock import MagicMock

import pytest

from schooldesk.exceptions import FileStorageError, ValidationError
from schooldesk.schemas.school import ImageUpload
from schooldesk.services.image_store import (
    LocalImageStore,
    S3ImageStore,
    generate_image_name,
)

NAME_PATTERN = re.compile(r"school-(\d{13})-(\d{1,10})(\.\w+)?")


class TestGenerateImageName:

    def test_format(self):
        before = int(time.time() * 1000)
        name = generate_image_name(".png")
        after = int(time.time() * 1000)

        match = NAME_PATTERN.fullmatch(name)
        assert match is not None
        assert before <= int(match.group(1)) <= after
        assert 0 <= int(match.group(2)) <= 10**9
        assert match.group(3) == ".png"

    def test_without_extension(self):
        assert NAME_PATTERN.fullmatch(generate_image_name()).group(3) is None


class TestValidateUpload:

    def setup_method(self):
        self.store = S3ImageStore(MagicMock(), bucket="b", public_base_url="https://cdn", max_file_size=1024)

    def test_accepts_image(self, sample_upload):
        assert self.store.validate_upload(sample_upload) == ".png"

    def test_extension_normalized(self):
        upload = ImageUpload(filename="PHOTO.JPEG", content=b"x", content_type="image/jpeg")
        assert self.store.validate_upload(upload) == ".jpeg"

    def test_missing_content_type_is_allowed(self):
        upload = ImageUpload(filename="a.webp", content=b"x")
        assert self.store.validate_upload(upload) == ".webp"

    def test_empty(self):
        with pytest.raises(ValidationError, match="empty"):
            self.store.validate_upload(ImageUpload(filename="a.png", content=b""))

    def test_too_large(self):
        upload = ImageUpload(filename="a.png", content=b"x" * 1025, content_type="image/png")
        with pytest.raises(ValidationError, match="exceeds maximum"):
            self.store.validate_upload(upload)

    def test_size_limit_is_inclusive(self):
        upload = ImageUpload(filename="a.png", content=b"x" * 1024, content_type="image/png")
        assert self.store.validate_upload(upload) == ".png"

    @pytest.mark.parametrize("filename", ["doc.pdf", "script.exe", "noextension", "image.png.txt"])
    def test_bad_extension(self, filename):
        with pytest.raises(ValidationError, match="Only image files"):
            self.store.validate_upload(ImageUpload(filename=filename, content=b"x"))

    def test_non_image_content_type(self):
        upload = ImageUpload(filename="a.png", content=b"x", content_type="text/html")
        with pytest.raises(ValidationError, match="Only image files"):
            self.store.validate_upload(upload)


class TestLocalImageStore:

    @pytest.mark.asyncio
    async def test_store_writes_file(self, images_dir, sample_upload, sample_image_bytes):
        store = LocalImageStore(images_dir=str(images_dir))

        reference = await store.store(sample_upload)

        assert NAME_PATTERN.fullmatch(reference)
        assert reference.endswith(".png")
        assert (images_dir / reference).read_bytes() == sample_image_bytes

    @pytest.mark.asyncio
    async def test_delete_removes_file(self, images_dir, sample_upload):
        store = LocalImageStore(images_dir=str(images_dir))
        reference = await store.store(sample_upload)

        await store.delete(reference)
        assert not (images_dir / reference).exists()

    @pytest.mark.asyncio
    async def test_delete_missing_file_is_silent(self, images_dir):
        store = LocalImageStore(images_dir=str(images_dir))
        await store.delete("school-1-2.png")
        await store.delete(None)

    @pytest.mark.asyncio
    async def test_delete_never_leaves_directory(self, tmp_path, images_dir):
        outside = tmp_path / "keep.txt"
        outside.write_text("important")
        store = LocalImageStore(images_dir=str(images_dir))

        await store.delete("../keep.txt")
        assert outside.exists()

    @pytest.mark.asyncio
    async def test_store_failure_raises(self, images_dir, sample_upload):
        store = LocalImageStore(images_dir=str(images_dir))
        images_dir.rmdir()

        with pytest.raises(FileStorageError):
            await store.store(sample_upload)

    def test_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "images"
        LocalImageStore(images_dir=str(target))
        assert target.is_dir()

    def test_resolve_url(self, images_dir):
        store = LocalImageStore(images_dir=str(images_dir), url_path="schoolImages/")
        assert store.resolve_url("school-1-2.png", "http://localhost:5000/") == (
            "http://localhost:5000/schoolImages/school-1-2.png"
        )

    def test_resolve_url_keeps_absolute_reference(self, images_dir):
        store = LocalImageStore(images_dir=str(images_dir))
        url = "https://cdn.example.com/school-images/school-1-2"
        assert store.resolve_url(url, "http://localhost:5000/") == url

    def test_path_for(self, images_dir):
        store = LocalImageStore(images_dir=str(images_dir))
        assert store.path_for("school-1-2.png") == images_dir.resolve() / "school-1-2.png"
        assert store.path_for("..") is None
        assert store.path_for("../etc/passwd") is None


class TestS3ImageStore:

    def make_store(self, client=None, **kwargs):
        options = {
            "bucket": "schools-bucket",
            "folder": "school-images",
            "public_base_url": "https://schools-bucket.s3.ap-south-1.amazonaws.com",
            "max_attempts": 3,
            "min_wait": 0,
            "max_wait": 0,
        }
        options.update(kwargs)
        return S3ImageStore(client or MagicMock(), **options)

    @pytest.mark.asyncio
    async def test_store_uploads_and_returns_url(self, sample_upload, sample_image_bytes):
        client = MagicMock()
        store = self.make_store(client)

        url = await store.store(sample_upload)

        client.put_object.assert_called_once()
        kwargs = client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "schools-bucket"
        assert kwargs["Body"] == sample_image_bytes
        assert kwargs["ContentType"] == "image/png"
        assert re.fullmatch(r"school-images/school-\d{13}-\d{1,10}", kwargs["Key"])
        assert url == f"https://schools-bucket.s3.ap-south-1.amazonaws.com/{kwargs['Key']}"

    @pytest.mark.asyncio
    async def test_store_retries_transient_failure(self, sample_upload):
        client = MagicMock()
        client.put_object.side_effect = [ConnectionError("reset"), {"ETag": "abc"}]
        store = self.make_store(client)

        url = await store.store(sample_upload)

        assert client.put_object.call_count == 2
        assert url.startswith("https://schools-bucket.s3.ap-south-1.amazonaws.com/school-images/")

    @pytest.mark.asyncio
    async def test_store_gives_up_after_max_attempts(self, sample_upload):
        client = MagicMock()
        client.put_object.side_effect = ConnectionError("down")
        store = self.make_store(client, max_attempts=2)

        with pytest.raises(FileStorageError):
            await store.store(sample_upload)
        assert client.put_object.call_count == 2

    def test_key_from_reference(self):
        store = self.make_store()
        url = "https://schools-bucket.s3.ap-south-1.amazonaws.com/school-images/school-1718000000000-42"
        assert store.key_from_reference(url) == "school-images/school-1718000000000-42"

    def test_key_from_reference_drops_extension(self):
        store = self.make_store()
        url = "https://res.example.com/image/upload/v1/school-images/school-1718000000000-42.jpg"
        assert store.key_from_reference(url) == "school-images/school-1718000000000-42"

    @pytest.mark.asyncio
    async def test_delete_uses_derived_key(self):
        client = MagicMock()
        store = self.make_store(client)

        await store.delete("https://cdn.example.com/school-images/school-1718000000000-42")

        client.delete_object.assert_called_once_with(
            Bucket="schools-bucket", Key="school-images/school-1718000000000-42"
        )

    @pytest.mark.asyncio
    async def test_delete_failure_is_swallowed(self):
        client = MagicMock()
        client.delete_object.side_effect = RuntimeError("AccessDenied")
        store = self.make_store(client)

        await store.delete("https://cdn.example.com/school-images/school-1-2")
        client.delete_object.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete_nothing(self):
        client = MagicMock()
        await self.make_store(client).delete("")
        client.delete_object.assert_not_called()

    def test_resolve_url_is_identity(self):
        url = "https://cdn.example.com/school-images/school-1-2"
        assert self.make_store().resolve_url(url, "http://localhost:5000/") == url

    @pytest.mark.asyncio
    async def test_close_closes_client(self):
        client = MagicMock()
        await self.make_store(client).close()
        client.close.assert_called_once()
