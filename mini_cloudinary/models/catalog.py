# mini_cloudinary/models/catalog.py
from pydantic import Field

from mini_cloudinary.models.asset import Asset
from mini_cloudinary.models.base import CatalogModel
from mini_cloudinary.models.folder import Folder
from mini_cloudinary.models.user import User

SCHEMA_VERSION = 2


class Counters(CatalogModel):
    """Last id handed out per table; ids are never reused."""

    user: int = 0
    asset: int = 0
    folder: int = 0


class CatalogSnapshot(CatalogModel):
    schema_version: int = SCHEMA_VERSION
    users: list[User] = Field(default_factory=list)
    assets: list[Asset] = Field(default_factory=list)
    folders: list[Folder] = Field(default_factory=list)
    counters: Counters = Field(default_factory=Counters)
