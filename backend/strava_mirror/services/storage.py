"""
Blob storage for uploaded photo binaries.
Local disk (served under /uploads) or S3-compatible storage, chosen by STORAGE_BACKEND.
Both hand back an absolute URL the frontend can render directly.
"""
import asyncio
import io
import logging
import mimetypes
import os
import uuid
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from strava_mirror.config import settings
from strava_mirror.core.errors import StorageWriteFailed

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/webp": ".webp",
}


def _unique_name(filename: str | None, content_type: str | None) -> str:
    ext = _EXTENSIONS.get(content_type or "")
    if not ext and filename:
        ext = os.path.splitext(filename)[1].lower() or None
    if not ext:
        ext = mimetypes.guess_extension(content_type or "") or ".bin"
    return f"{uuid.uuid4().hex}{ext}"


class BlobStorage:
    """put/delete/exists by URL. owns(url) is True when the URL points into this store."""

    async def put(self, data: bytes, filename: str | None = None, content_type: str | None = None) -> str:
        raise NotImplementedError

    async def delete(self, url: str) -> bool:
        raise NotImplementedError

    async def exists(self, url: str) -> bool:
        raise NotImplementedError

    def owns(self, url: str | None) -> bool:
        raise NotImplementedError


class LocalBlobStorage(BlobStorage):
    def __init__(self, root: str, url_prefix: str):
        self.root = Path(root).resolve()
        self.url_prefix = url_prefix if url_prefix.endswith("/") else url_prefix + "/"

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def owns(self, url: str | None) -> bool:
        return bool(url) and url.startswith(self.url_prefix)

    def _path_for(self, url: str) -> Path | None:
        """Filesystem path for a URL of ours, None if it is foreign or escapes the root."""
        if not self.owns(url):
            return None
        name = url[len(self.url_prefix):]
        path = (self.root / name).resolve()
        if path.parent != self.root:
            return None
        return path

    async def put(self, data: bytes, filename: str | None = None, content_type: str | None = None) -> str:
        name = _unique_name(filename, content_type)
        path = self.root / name

        def _write() -> None:
            self.ensure_root()
            with open(path, "xb") as f:
                f.write(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            logger.error("Local upload write failed for %s: %s", path, e)
            raise StorageWriteFailed() from e
        return f"{self.url_prefix}{name}"

    async def delete(self, url: str) -> bool:
        path = self._path_for(url)
        if path is None:
            return False
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        logger.info("Deleted local file: %s", path)
        return True

    async def exists(self, url: str) -> bool:
        path = self._path_for(url)
        return path is not None and await asyncio.to_thread(path.is_file)


def get_s3_client():
    return boto3.client(
        "s3",
        endpoint_url=settings.s3_endpoint_url,
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        config=Config(signature_version="s3v4"),
    )


class S3BlobStorage(BlobStorage):
    def __init__(self, bucket: str, public_url: str):
        self.bucket = bucket
        self.public_url = public_url.rstrip("/") + "/"
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    def owns(self, url: str | None) -> bool:
        return bool(url) and url.startswith(self.public_url)

    def _key_for(self, url: str) -> str | None:
        return url[len(self.public_url):] if self.owns(url) else None

    async def ensure_bucket_exists(self) -> None:
        def _create_if_missing() -> None:
            try:
                self.client.head_bucket(Bucket=self.bucket)
            except ClientError:
                self.client.create_bucket(Bucket=self.bucket)

        await asyncio.to_thread(_create_if_missing)

    async def put(self, data: bytes, filename: str | None = None, content_type: str | None = None) -> str:
        key = f"photos/{_unique_name(filename, content_type)}"

        def _upload() -> None:
            self.client.upload_fileobj(
                io.BytesIO(data),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type or "application/octet-stream"},
            )

        try:
            await self.ensure_bucket_exists()
            await asyncio.to_thread(_upload)
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 upload failed for %s: %s", key, e)
            raise StorageWriteFailed() from e
        return f"{self.public_url}{key}"

    async def delete(self, url: str) -> bool:
        key = self._key_for(url)
        if key is None:
            return False
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 delete failed for %s: %s", key, e)
            return False
        return True

    async def exists(self, url: str) -> bool:
        key = self._key_for(url)
        if key is None:
            return False
        try:
            await asyncio.to_thread(self.client.head_object, Bucket=self.bucket, Key=key)
        except ClientError:
            return False
        return True


_storage: BlobStorage | None = None


def get_storage() -> BlobStorage:
    """Process-wide storage backend built from settings on first use."""
    global _storage
    if _storage is None:
        if settings.storage_backend == "s3":
            public_url = settings.s3_public_url or f"{settings.s3_endpoint_url.rstrip('/')}/{settings.s3_bucket}"
            _storage = S3BlobStorage(settings.s3_bucket, public_url)
        else:
            _storage = LocalBlobStorage(settings.upload_dir, settings.uploads_url_prefix)
    return _storage
