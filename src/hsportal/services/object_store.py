"""Thumbnail uploads to an S3 bucket."""

from __future__ import annotations

import asyncio
import io
import threading
from typing import Any, Callable
from uuid import uuid4

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from hsportal.errors import UploadError
from hsportal.models import UploadFile
from hsportal.results import Failure, Success
from hsportal.settings import Settings

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[float], None]


class _ProgressTracker:
    """Accumulates boto3 byte callbacks into a 0..1 fraction."""

    def __init__(self, total: int, on_progress: ProgressCallback | None) -> None:
        self._total = total
        self._seen = 0
        self._on_progress = on_progress
        self._lock = threading.Lock()

    def __call__(self, transferred: int) -> None:
        with self._lock:
            self._seen += transferred
            fraction = min(self._seen / self._total, 1.0) if self._total else 1.0
        logger.debug("object_store.progress", percent=int(fraction * 100))
        if self._on_progress:
            self._on_progress(fraction)


class S3Uploader:
    """Uploads one blob per call under a random key and returns its public URL."""

    def __init__(
        self,
        bucket: str,
        region: str,
        access_key: str | None = None,
        secret_key: str | None = None,
        *,
        client: Any | None = None,
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3Uploader | None":
        if not settings.s3_bucket or not settings.s3_region:
            logger.debug("object_store.disabled", reason="missing_bucket_or_region")
            return None
        return cls(
            settings.s3_bucket,
            settings.s3_region,
            settings.s3_access_key,
            settings.s3_secret_key,
        )

    def public_url(self, key: str) -> str:
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    async def upload(
        self, blob: UploadFile, on_progress: ProgressCallback | None = None
    ) -> Success[str] | Failure[UploadError]:
        key = storage_key(blob)
        tracker = _ProgressTracker(blob.size, on_progress)
        logger.info("object_store.upload", bucket=self._bucket, key=key, size=blob.size)
        try:
            await asyncio.to_thread(self._put, key, blob, tracker)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            message = error.get("Message") or str(exc)
            logger.warning("object_store.upload_failed", key=key, status=status, error=message)
            return Failure(UploadError(f"S3 upload failed: {message}", status=status, operation="s3"))
        except BotoCoreError as exc:
            logger.warning("object_store.upload_failed", key=key, error=str(exc))
            return Failure(UploadError(f"S3 upload failed: {exc}", operation="s3"))
        return Success(self.public_url(key))

    def _put(self, key: str, blob: UploadFile, tracker: _ProgressTracker) -> None:
        self._client.upload_fileobj(
            io.BytesIO(blob.content),
            self._bucket,
            key,
            ExtraArgs={"ContentType": blob.content_type},
            Callback=tracker,
        )


def storage_key(blob: UploadFile) -> str:
    """Random object key keeping only the original extension."""
    ext = blob.extension
    return f"{uuid4()}.{ext}" if ext else str(uuid4())
