"""Asset lookups, delete and rename.

The remote store has no rename, so ``rename`` is a saga:

    GET old key -> PUT new key -> DELETE old key -> update catalog

Until the catalog update the asset keeps serving from its old key. When
the old key cannot be deleted, or the asset vanished from the catalog in
the meantime, the new key is deleted again as the compensating action.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mini_cloudinary.core.errors import (
    AuthorizationError,
    NotFoundError,
    RemoteDeleteFailed,
    RemoteStoreError,
    ValidationError,
)
from mini_cloudinary.core.naming import sanitize_file_name, split_extension
from mini_cloudinary.core.tempfiles import discard, new_staging_path
from mini_cloudinary.models.asset import Asset
from mini_cloudinary.models.user import CurrentUser
from mini_cloudinary.services.catalog import CatalogStore
from mini_cloudinary.storage.base import RemoteStore

logger = logging.getLogger(__name__)


class AssetService:
    def __init__(self, store: RemoteStore, catalog: CatalogStore, temp_dir: Path) -> None:
        self.store = store
        self.catalog = catalog
        self.temp_dir = Path(temp_dir)

    def get_owned(self, asset_id: int, requester: CurrentUser) -> Asset:
        # existence first, then ownership
        asset = self.catalog.get_asset(asset_id)
        if asset is None:
            raise NotFoundError("Asset not found.")
        if asset.owner_id != requester.id:
            raise AuthorizationError("You do not own this asset.")
        return asset

    async def delete_asset(self, asset_id: int, requester: CurrentUser) -> Asset:
        asset = self.get_owned(asset_id, requester)
        # remote first: a failed delete keeps the row
        await self.store.delete(asset.key)
        await self.catalog.remove_asset(asset.id)
        logger.info("Deleted asset %d (%s)", asset.id, asset.key)
        return asset

    def _target_name(self, asset: Asset, new_name: str) -> str:
        if not new_name or not new_name.strip():
            raise ValidationError("newName is required.")
        # the stored bytes and mime type are unchanged, so the extension is too
        stem, ext = split_extension(sanitize_file_name(new_name))
        _, current_ext = split_extension(asset.file_name)
        if ext and ext != current_ext:
            raise ValidationError(f"Rename cannot change the file extension ({current_ext or 'none'}).")
        return stem + current_ext

    async def rename(self, asset_id: int, requester: CurrentUser, new_name: str) -> Asset:
        asset = self.get_owned(asset_id, requester)
        new_file_name = self._target_name(asset, new_name)
        if new_file_name == asset.file_name:
            return asset

        old_key = asset.key
        new_key = self.store.build_key(new_file_name, asset.namespace)
        staging = await new_staging_path(self.temp_dir, new_file_name)
        try:
            await self.store.download(old_key, staging)
            await self.store.put(staging, new_key, asset.mime_type)
            try:
                await self.store.delete(old_key)
            except RemoteDeleteFailed:
                await self._compensate(new_key)
                raise
            try:
                updated = await self.catalog.update_asset(
                    asset.id,
                    file_name=new_file_name,
                    url=self.store.public_url(new_key),
                )
            except KeyError:
                # deleted by a concurrent request while the bytes were moving
                await self._compensate(new_key)
                raise NotFoundError("Asset not found.")
        finally:
            await discard(staging)

        logger.info("Renamed asset %d: %s -> %s", asset.id, old_key, new_key)
        return updated

    async def _compensate(self, new_key: str) -> None:
        try:
            await self.store.delete(new_key)
        except RemoteStoreError as exc:
            # both keys stay live; the catalog keeps pointing at the old one
            logger.error("Rename rollback failed, %s left behind: %s", new_key, exc)
        else:
            logger.warning("Rename rolled back, removed %s", new_key)
