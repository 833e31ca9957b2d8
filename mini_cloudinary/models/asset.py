# mini_cloudinary/models/asset.py
from datetime import datetime, timezone

from pydantic import Field

from mini_cloudinary.models.base import CatalogModel


class Asset(CatalogModel):
    id: int
    owner_id: int
    folder_id: int | None = None      # None = root
    file_name: str                    # key leaf on the remote store
    original_name: str                # name the client uploaded
    namespace: str                    # owner token, first segment of the key
    url: str                          # public CDN url
    mime_type: str
    size: int = 0                     # bytes committed to the remote store
    optimized: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.file_name}" if self.namespace else self.file_name
