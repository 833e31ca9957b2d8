"""Ingestion pipeline: staging -> optional transform -> remote PUT ->
local cleanup -> catalog record.

A catalog row is only written after the remote PUT succeeded, and every
staged or transformed temp file is removed on both success and failure.

Examples:
    >>> staged = await pipeline.stage(upload)
    >>> asset = await pipeline.ingest(staged, owner, folder_id=None, optimize=True)
    >>> asset.file_name
    'opt-holiday.jpg'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from mini_cloudinary.core.errors import (
    AuthorizationError,
    NotFoundError,
    PayloadTooLarge,
    RemoteStoreError,
    ValidationError,
)
from mini_cloudinary.core.naming import sanitize_file_name, sanitize_namespace
from mini_cloudinary.core.tempfiles import discard, new_staging_path
from mini_cloudinary.models.asset import Asset
from mini_cloudinary.models.user import CurrentUser
from mini_cloudinary.services.catalog import CatalogStore
from mini_cloudinary.services.transform import Transformed, TransformStage
from mini_cloudinary.storage.base import RemoteStore

logger = logging.getLogger(__name__)

ALLOWED_IMAGES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
ALLOWED_VIDEOS = {
    "video/mp4",
    "video/webm",
    "video/ogg",
    "video/quicktime",    # .mov
    "video/x-matroska",   # .mkv
}
ALLOWED_MIME_TYPES = ALLOWED_IMAGES | ALLOWED_VIDEOS


@dataclass
class StagedFile:
    path: Path
    original_name: str
    mime_type: str
    size: int


@dataclass
class IngestResult:
    original_name: str
    asset: Asset | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.asset is not None


class IngestionPipeline:
    def __init__(
        self,
        store: RemoteStore,
        catalog: CatalogStore,
        transform: TransformStage,
        temp_dir: Path,
        max_file_size: int = 50 * 1024 * 1024,
        max_bulk_files: int = 20,
        chunk_size: int = 64 * 1024,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.transform = transform
        self.temp_dir = Path(temp_dir)
        self.max_file_size = max_file_size
        self.max_bulk_files = max_bulk_files
        self.chunk_size = chunk_size

    # ---- staging ----

    async def stage(self, upload: UploadFile | None) -> StagedFile:
        """Stream an upload into the temp dir, enforcing type and size limits."""
        if upload is None or not upload.filename:
            raise ValidationError("No file was uploaded.")
        mime_type = upload.content_type or ""
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                "File must be an image (jpg, png, gif, webp) or a video (mp4, webm, ogg, mov, mkv)."
            )

        path = await new_staging_path(self.temp_dir, upload.filename)
        size = 0
        try:
            async with aiofiles.open(path, "wb") as out:
                while True:
                    chunk = await upload.read(self.chunk_size)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_file_size:
                        raise PayloadTooLarge(
                            f"{upload.filename} is larger than {self.max_file_size // (1024 * 1024)}MB."
                        )
                    await out.write(chunk)
        except BaseException:
            await discard(path)
            raise
        logger.debug("Staged %s as %s (%d bytes)", upload.filename, path.name, size)
        return StagedFile(path=path, original_name=upload.filename, mime_type=mime_type, size=size)

    async def stage_many(self, uploads: list[UploadFile]) -> list[StagedFile]:
        """Stage a whole bulk request; one invalid file rejects the request."""
        if not uploads:
            raise ValidationError("No file was uploaded.")
        if len(uploads) > self.max_bulk_files:
            raise ValidationError(f"At most {self.max_bulk_files} files per request.")
        staged: list[StagedFile] = []
        try:
            for upload in uploads:
                staged.append(await self.stage(upload))
        except BaseException:
            await discard(*(s.path for s in staged))
            raise
        return staged

    # ---- ingestion ----

    def _check_target_folder(self, owner: CurrentUser, folder_id: int | None) -> None:
        if folder_id is None:
            return
        folder = self.catalog.get_folder(folder_id)
        if folder is None:
            raise NotFoundError("Folder not found.")
        if folder.owner_id != owner.id:
            raise AuthorizationError("You do not own this folder.")

    async def ingest(
        self,
        staged: StagedFile,
        owner: CurrentUser,
        folder_id: int | None = None,
        optimize: bool = False,
    ) -> Asset:
        try:
            self._check_target_folder(owner, folder_id)
        except BaseException:
            await discard(staged.path)
            raise
        return await self._ingest_one(staged, owner, folder_id, optimize, persist=True)

    async def ingest_bulk(
        self,
        staged_files: list[StagedFile],
        owner: CurrentUser,
        folder_id: int | None = None,
        optimize: bool = False,
    ) -> list[IngestResult]:
        """Ingest files one after another, isolating failures per file.

        The catalog snapshot is written once after the batch.
        """
        try:
            self._check_target_folder(owner, folder_id)
        except BaseException:
            await discard(*(s.path for s in staged_files))
            raise

        results: list[IngestResult] = []
        committed = 0
        try:
            for i, staged in enumerate(staged_files):
                try:
                    asset = await self._ingest_one(staged, owner, folder_id, optimize, persist=False)
                except (RemoteStoreError, OSError) as exc:
                    logger.error("Bulk upload: %s failed: %s", staged.original_name, exc)
                    results.append(IngestResult(staged.original_name, error=str(exc)))
                except BaseException:
                    await discard(*(s.path for s in staged_files[i + 1:]))
                    raise
                else:
                    results.append(IngestResult(staged.original_name, asset=asset))
                    committed += 1
        finally:
            if committed:
                await self.catalog.persist()

        logger.info("Bulk upload by %s: %d/%d committed", owner.username, committed, len(staged_files))
        return results

    async def _ingest_one(
        self,
        staged: StagedFile,
        owner: CurrentUser,
        folder_id: int | None,
        optimize: bool,
        persist: bool,
    ) -> Asset:
        transformed_path: Path | None = None
        try:
            file_name = sanitize_file_name(staged.original_name)
            upload_path = staged.path
            mime_type = staged.mime_type
            optimized = False

            if optimize and mime_type.startswith("image/"):
                outcome = await self.transform.run(staged.path, file_name, mime_type)
                if isinstance(outcome, Transformed):
                    transformed_path = outcome.path
                    upload_path = outcome.path
                    file_name = outcome.file_name
                    mime_type = outcome.mime_type
                    optimized = True

            namespace = sanitize_namespace(owner.username)
            key = self.store.build_key(file_name, namespace)
            size = (await aiofiles.os.stat(upload_path)).st_size
            await self.store.put(upload_path, key, mime_type)
        finally:
            await discard(staged.path, transformed_path)

        asset = await self.catalog.add_asset(
            persist=persist,
            owner_id=owner.id,
            folder_id=folder_id,
            file_name=file_name,
            original_name=staged.original_name,
            namespace=namespace,
            url=self.store.public_url(key),
            mime_type=mime_type,
            size=size,
            optimized=optimized,
        )
        logger.info("Ingested %s as %s (asset %d)", staged.original_name, key, asset.id)
        return asset
