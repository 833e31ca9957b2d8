from __future__ import annotations

import logging
from dataclasses import dataclass

from mini_cloudinary.core.errors import AuthorizationError, NotFoundError, ValidationError
from mini_cloudinary.models.asset import Asset
from mini_cloudinary.models.folder import Folder
from mini_cloudinary.models.user import CurrentUser
from mini_cloudinary.services.catalog import CatalogStore

logger = logging.getLogger(__name__)


@dataclass
class FolderListing:
    folders: list[Folder]
    assets: list[Asset]
    current_folder: Folder | None = None


class FolderService:
    """Per-user folder tree. Deleting a folder is shallow: only the assets
    directly inside it move to root, child folders are not touched.
    """

    def __init__(self, catalog: CatalogStore) -> None:
        self.catalog = catalog

    def get_owned(self, folder_id: int, requester: CurrentUser) -> Folder:
        folder = self.catalog.get_folder(folder_id)
        if folder is None:
            raise NotFoundError("Folder not found.")
        if folder.owner_id != requester.id:
            raise AuthorizationError("You do not own this folder.")
        return folder

    async def create_folder(self, owner: CurrentUser, name: str, parent_id: int | None = None) -> Folder:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Folder name is required.")
        if parent_id is not None:
            self.get_owned(parent_id, owner)
        folder = await self.catalog.add_folder(owner.id, name, parent_id)
        logger.info("Created folder %d %r for %s", folder.id, name, owner.username)
        return folder

    def list_children(self, owner: CurrentUser, folder_id: int | None = None) -> FolderListing:
        current = self.get_owned(folder_id, owner) if folder_id is not None else None
        return FolderListing(
            folders=self.catalog.list_folders(owner.id, folder_id),
            assets=self.catalog.list_assets(owner.id, folder_id),
            current_folder=current,
        )

    async def delete_folder(self, folder_id: int, requester: CurrentUser) -> int:
        self.get_owned(folder_id, requester)
        try:
            moved = await self.catalog.remove_folder(folder_id)
        except KeyError:
            # removed by a concurrent request after the ownership check
            raise NotFoundError("Folder not found.")
        logger.info("Deleted folder %d, %d assets moved to root", folder_id, moved)
        return moved
