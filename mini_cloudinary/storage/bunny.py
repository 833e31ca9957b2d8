"""Bunny storage zone backend.

Endpoint: ``https://{host}/{zone}/{key}`` authenticated with the zone
password in the ``AccessKey`` header.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import AsyncIterator

import aiofiles
import httpx

from mini_cloudinary.core.config import Settings
from mini_cloudinary.core.errors import (
    RemoteDeleteFailed,
    RemoteReadFailed,
    RemoteReadNotFound,
    RemoteWriteFailed,
)
from mini_cloudinary.storage.base import RemoteStore

logger = logging.getLogger(__name__)


async def _file_chunks(path: Path, chunk_size: int) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(chunk_size)
            if not chunk:
                break
            yield chunk


class BunnyStore(RemoteStore):
    def __init__(
        self,
        host: str,
        zone: str,
        access_key: str,
        cdn_base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
        chunk_size: int = 64 * 1024,
    ) -> None:
        super().__init__(cdn_base_url)
        self.host = host
        self.zone = zone
        self.access_key = access_key
        self.chunk_size = chunk_size
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "BunnyStore":
        return cls(
            host=settings.bunny_storage_host,
            zone=settings.bunny_storage_zone_name,
            access_key=settings.bunny_storage_api_key,
            cdn_base_url=settings.cdn_base_url,
            timeout=settings.remote_timeout,
            chunk_size=settings.upload_chunk_size,
        )

    def _url(self, key: str) -> str:
        return f"https://{self.host}/{self.zone}/{key}"

    async def put(self, local_path: Path, key: str, content_type: str) -> str:
        headers = {
            "AccessKey": self.access_key,
            "Content-Type": "application/octet-stream",
            "Content-Length": str(os.path.getsize(local_path)),
        }
        try:
            response = await self._client.put(
                self._url(key),
                content=_file_chunks(local_path, self.chunk_size),
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.error("Bunny PUT %s failed: %s", key, exc)
            raise RemoteWriteFailed(f"Upload to storage failed: {exc}", key=key) from exc

        if not response.is_success:
            logger.error("Bunny PUT %s answered %s: %s", key, response.status_code, response.text)
            raise RemoteWriteFailed(
                f"Upload to storage failed. Status: {response.status_code}",
                key=key,
                status=response.status_code,
            )
        logger.info("Stored %s in zone %s", key, self.zone)
        return key

    async def get(self, key: str) -> AsyncIterator[bytes]:
        try:
            async with self._client.stream(
                "GET", self._url(key), headers={"AccessKey": self.access_key}
            ) as response:
                if response.status_code == 404:
                    raise RemoteReadNotFound(f"Object not found: {key}", key=key, status=404)
                if not response.is_success:
                    raise RemoteReadFailed(
                        f"Download from storage failed. Status: {response.status_code}",
                        key=key,
                        status=response.status_code,
                    )
                async for chunk in response.aiter_bytes(self.chunk_size):
                    yield chunk
        except httpx.HTTPError as exc:
            logger.error("Bunny GET %s failed: %s", key, exc)
            raise RemoteReadFailed(f"Download from storage failed: {exc}", key=key) from exc

    async def delete(self, key: str) -> None:
        try:
            response = await self._client.delete(
                self._url(key), headers={"AccessKey": self.access_key}
            )
        except httpx.HTTPError as exc:
            logger.error("Bunny DELETE %s failed: %s", key, exc)
            raise RemoteDeleteFailed(f"Delete from storage failed: {exc}", key=key) from exc

        if response.status_code == 404:
            logger.info("Bunny DELETE %s: already gone", key)
            return
        if not response.is_success:
            logger.error("Bunny DELETE %s answered %s: %s", key, response.status_code, response.text)
            raise RemoteDeleteFailed(
                f"Delete from storage failed. Status: {response.status_code}",
                key=key,
                status=response.status_code,
            )
        logger.info("Deleted %s from zone %s", key, self.zone)

    async def aclose(self) -> None:
        await self._client.aclose()
