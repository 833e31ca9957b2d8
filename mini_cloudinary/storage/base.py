"""Abstract base class for remote blob stores."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import AsyncIterator

import aiofiles

from mini_cloudinary.core.errors import RemoteReadFailed

logger = logging.getLogger(__name__)


class RemoteStore(ABC):
    """A PUT/GET/DELETE blob store addressed by ``<zone>/<key>``.

    Keys handed to the store are relative to its zone (or bucket); public
    URLs are ``<cdn_base_url>/<key>``.
    """

    def __init__(self, cdn_base_url: str) -> None:
        self.cdn_base_url = cdn_base_url.rstrip("/")

    @staticmethod
    def build_key(file_name: str, namespace: str | None = None) -> str:
        if namespace:
            return f"{namespace}/{file_name}"
        return file_name

    def public_url(self, key: str) -> str:
        return f"{self.cdn_base_url}/{key}"

    @abstractmethod
    async def put(self, local_path: Path, key: str, content_type: str) -> str:
        """Upload a local file under ``key``, streaming it from disk.

        Returns:
            The committed key.

        Raises:
            RemoteWriteFailed: On transport error or non-success status.
        """

    @abstractmethod
    def get(self, key: str) -> AsyncIterator[bytes]:
        """Stream the object stored under ``key``.

        Raises:
            RemoteReadNotFound: The key does not exist.
            RemoteReadFailed: Transport error or any other non-success status.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; an already absent object is not an error.

        Raises:
            RemoteDeleteFailed: On transport error or non-success status.
        """

    async def aclose(self) -> None:
        return None

    async def download(self, key: str, dest: Path) -> int:
        """Copy a remote object into a local file, returning the bytes written."""
        size = 0
        try:
            async with aiofiles.open(dest, "wb") as out:
                async for chunk in self.get(key):
                    await out.write(chunk)
                    size += len(chunk)
        except OSError as exc:
            raise RemoteReadFailed(f"Could not stage {key} locally: {exc}", key=key) from exc
        logger.debug("Downloaded %s (%d bytes) to %s", key, size, dest)
        return size
