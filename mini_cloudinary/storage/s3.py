"""S3 bucket backend.

boto3 is blocking, so every call runs in the thread pool.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, AsyncIterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from mini_cloudinary.core.config import Settings
from mini_cloudinary.core.errors import (
    RemoteDeleteFailed,
    RemoteReadFailed,
    RemoteReadNotFound,
    RemoteWriteFailed,
)
from mini_cloudinary.storage.base import RemoteStore

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3Store(RemoteStore):
    def __init__(self, bucket: str, cdn_base_url: str, client: Any = None, chunk_size: int = 64 * 1024) -> None:
        super().__init__(cdn_base_url)
        self.bucket = bucket
        self.chunk_size = chunk_size
        self._s3 = client or boto3.client("s3")

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3Store":
        s3 = boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
        )
        return cls(
            bucket=settings.aws_s3_bucket_name,
            cdn_base_url=settings.cdn_base_url,
            client=s3,
            chunk_size=settings.upload_chunk_size,
        )

    def _put_blocking(self, local_path: Path, key: str, content_type: str) -> None:
        with open(local_path, "rb") as body:
            self._s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type or "application/octet-stream",
            )

    async def put(self, local_path: Path, key: str, content_type: str) -> str:
        try:
            await run_in_threadpool(self._put_blocking, local_path, key, content_type)
        except (BotoCoreError, ClientError, OSError) as exc:
            logger.error("S3 put_object %s failed: %s", key, exc)
            raise RemoteWriteFailed(f"Upload to storage failed: {exc}", key=key) from exc
        logger.info("Stored %s in bucket %s", key, self.bucket)
        return key

    async def get(self, key: str) -> AsyncIterator[bytes]:
        try:
            obj = await run_in_threadpool(self._s3.get_object, Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                raise RemoteReadNotFound(f"Object not found: {key}", key=key, status=404) from exc
            logger.error("S3 get_object %s failed: %s", key, exc)
            raise RemoteReadFailed(f"Download from storage failed: {exc}", key=key) from exc
        except BotoCoreError as exc:
            logger.error("S3 get_object %s failed: %s", key, exc)
            raise RemoteReadFailed(f"Download from storage failed: {exc}", key=key) from exc

        body = obj["Body"]
        chunks = body.iter_chunks(self.chunk_size)
        try:
            while True:
                chunk = await run_in_threadpool(next, chunks, None)
                if chunk is None:
                    break
                yield chunk
        except (BotoCoreError, ClientError) as exc:
            raise RemoteReadFailed(f"Download from storage failed: {exc}", key=key) from exc
        finally:
            body.close()

    async def delete(self, key: str) -> None:
        try:
            await run_in_threadpool(self._s3.delete_object, Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                logger.info("S3 delete_object %s: already gone", key)
                return
            logger.error("S3 delete_object %s failed: %s", key, exc)
            raise RemoteDeleteFailed(f"Delete from storage failed: {exc}", key=key) from exc
        except BotoCoreError as exc:
            logger.error("S3 delete_object %s failed: %s", key, exc)
            raise RemoteDeleteFailed(f"Delete from storage failed: {exc}", key=key) from exc
        logger.info("Deleted %s from bucket %s", key, self.bucket)
