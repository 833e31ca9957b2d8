# mini_cloudinary/models/folder.py
from datetime import datetime, timezone

from pydantic import Field

from mini_cloudinary.models.base import CatalogModel


class Folder(CatalogModel):
    id: int
    owner_id: int
    name: str
    parent_id: int | None = None      # None = root
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
