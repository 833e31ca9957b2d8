"""Metadata catalog: users, folders and assets kept in memory and
persisted as one JSON snapshot document.

Lifecycle:
    1. ``load()`` reads the snapshot once at startup. A missing file is
       initialized with defaults and written immediately; an older document
       is upgraded by ``migrate_document``.
    2. Mutations are discrete operations (``add_asset``, ``remove_asset``,
       ``remove_folder`` ...) applied under a single writer lock.
    3. Each mutation is followed by a full snapshot write under the same
       lock, unless the caller batches writes and calls ``persist()`` itself.

Examples:
    >>> store = CatalogStore(Path("data/db.json"))
    >>> await store.load()
    >>> asset = await store.add_asset(owner_id=1, file_name="cat.png", ...)
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from mini_cloudinary.core.errors import PersistenceError, ValidationError
from mini_cloudinary.core.naming import sanitize_namespace
from mini_cloudinary.core.security import api_keys_match, hash_password, new_api_key
from mini_cloudinary.models.asset import Asset
from mini_cloudinary.models.catalog import SCHEMA_VERSION, CatalogSnapshot
from mini_cloudinary.models.folder import Folder
from mini_cloudinary.models.user import User

logger = logging.getLogger(__name__)


def _migrate_v1(doc: dict[str, Any]) -> dict[str, Any]:
    """Version 1 is the flat document written by the first service:
    plaintext passwords, ``userId``/``folder`` on assets and
    ``lastUserId``-style counters at the top level.
    """
    users = []
    for user in doc.get("users", []):
        password_hash = user.get("passwordHash")
        if password_hash is None:
            password_hash = hash_password(str(user.get("password", "")))
        users.append({
            "id": user["id"],
            "username": user["username"],
            "passwordHash": password_hash,
            "apiKey": user.get("apiKey") or new_api_key(),
        })

    assets = []
    for asset in doc.get("assets", []):
        assets.append({
            "id": asset["id"],
            "ownerId": asset.get("ownerId", asset.get("userId")),
            "folderId": asset.get("folderId"),
            "fileName": asset["fileName"],
            "originalName": asset.get("originalName", asset["fileName"]),
            "namespace": asset.get("namespace", asset.get("folder", "")),
            "url": asset["url"],
            "mimeType": asset.get("mimeType", "application/octet-stream"),
            "size": asset.get("size", 0),
            "optimized": asset.get("optimized", False),
            **({"createdAt": asset["createdAt"]} if "createdAt" in asset else {}),
        })

    folders = []
    for folder in doc.get("folders", []):
        folders.append({
            "id": folder["id"],
            "ownerId": folder.get("ownerId", folder.get("userId")),
            "name": folder["name"],
            "parentId": folder.get("parentId"),
            **({"createdAt": folder["createdAt"]} if "createdAt" in folder else {}),
        })

    def last_id(rows: list[dict[str, Any]], explicit: Any) -> int:
        highest = max((row["id"] for row in rows), default=0)
        return max(int(explicit or 0), highest)

    return {
        "schemaVersion": 2,
        "users": users,
        "assets": assets,
        "folders": folders,
        "counters": {
            "user": last_id(users, doc.get("lastUserId")),
            "asset": last_id(assets, doc.get("lastAssetId")),
            "folder": last_id(folders, doc.get("lastFolderId")),
        },
    }


MIGRATIONS = {
    1: _migrate_v1,
}


def migrate_document(doc: dict[str, Any]) -> dict[str, Any]:
    """Upgrade a raw snapshot document to ``SCHEMA_VERSION``, one step at a time."""
    version = int(doc.get("schemaVersion", 1))
    if version > SCHEMA_VERSION:
        raise PersistenceError(
            f"Catalog schema version {version} is newer than supported ({SCHEMA_VERSION})"
        )
    while version < SCHEMA_VERSION:
        logger.info("Migrating catalog schema v%d -> v%d", version, version + 1)
        doc = MIGRATIONS[version](doc)
        version = int(doc["schemaVersion"])
    return doc


class CatalogStore:
    """Single-writer catalog store.

    Attributes:
        path: Location of the snapshot document.
    """

    def __init__(self, path: Path, snapshot: CatalogSnapshot | None = None) -> None:
        self.path = Path(path)
        self._snapshot = snapshot or CatalogSnapshot()
        self._lock = asyncio.Lock()

    # ---- lifecycle ----

    async def load(self, bootstrap_users: list[dict[str, str]] | None = None) -> None:
        if not await aiofiles.os.path.exists(self.path):
            logger.info("No catalog at %s, initializing a new one", self.path)
            await self.initialize(bootstrap_users or [])
            return

        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            raw = await f.read()
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Catalog {self.path} is not valid JSON: {exc}") from exc

        version = int(document.get("schemaVersion", 1))
        document = migrate_document(document)
        self._snapshot = CatalogSnapshot.model_validate(document)
        logger.info(
            "Catalog loaded: %d users, %d folders, %d assets",
            len(self._snapshot.users),
            len(self._snapshot.folders),
            len(self._snapshot.assets),
        )
        if version != SCHEMA_VERSION:
            await self.persist()

    async def initialize(self, bootstrap_users: list[dict[str, str]]) -> None:
        async with self._lock:
            self._snapshot = CatalogSnapshot()
            for entry in bootstrap_users:
                self._add_user_locked(**entry)
            await self._persist_locked()

    async def persist(self) -> bool:
        async with self._lock:
            return await self._persist_locked()

    async def _persist_locked(self) -> bool:
        """Write the full snapshot; failures are logged and the in-memory state stays authoritative."""
        try:
            await self._write_snapshot()
        except PersistenceError as exc:
            logger.error("Catalog snapshot not persisted: %s", exc)
            return False
        return True

    async def _write_snapshot(self) -> None:
        document = self._snapshot.model_dump_json(by_alias=True, indent=2)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(document)
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self.path}: {exc}") from exc

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    # ---- users ----

    def _add_user_locked(self, username: str, password: str, api_key: str | None = None) -> User:
        if self.user_by_username(username) is not None:
            raise ValidationError(f"Username already exists: {username}")
        namespace = sanitize_namespace(username)
        taken = next((u for u in self._snapshot.users if sanitize_namespace(u.username) == namespace), None)
        if taken is not None:
            # objects live under the namespace, two owners must never share one
            raise ValidationError(f"Username {username!r} maps to the same storage namespace as {taken.username!r}")
        api_key = api_key or new_api_key()
        if self.user_by_api_key(api_key) is not None:
            raise ValidationError("API key already in use")
        self._snapshot.counters.user += 1
        user = User(
            id=self._snapshot.counters.user,
            username=username,
            password_hash=hash_password(password),
            api_key=api_key,
        )
        self._snapshot.users.append(user)
        return user

    async def add_user(self, username: str, password: str, api_key: str | None = None) -> User:
        async with self._lock:
            user = self._add_user_locked(username, password, api_key)
            await self._persist_locked()
        logger.info("Provisioned user %s (id=%d)", user.username, user.id)
        return user

    def user_by_api_key(self, api_key: str) -> User | None:
        return next((u for u in self._snapshot.users if api_keys_match(u.api_key, api_key)), None)

    def user_by_username(self, username: str) -> User | None:
        return next((u for u in self._snapshot.users if u.username == username), None)

    # ---- assets ----

    def get_asset(self, asset_id: int) -> Asset | None:
        return next((a for a in self._snapshot.assets if a.id == asset_id), None)

    def list_assets(self, owner_id: int, folder_id: int | None = None) -> list[Asset]:
        return [
            a for a in self._snapshot.assets
            if a.owner_id == owner_id and a.folder_id == folder_id
        ]

    async def add_asset(self, persist: bool = True, **fields: Any) -> Asset:
        """Allocate the next asset id and append the record.

        A target folder deleted while the bytes were uploading is gone by
        now, so the asset lands at root like the ones reparented with it.
        """
        async with self._lock:
            folder_id = fields.get("folder_id")
            if folder_id is not None and self.get_folder(folder_id) is None:
                logger.warning("Folder %d vanished during upload of %s, storing at root",
                               folder_id, fields.get("file_name"))
                fields["folder_id"] = None
            self._snapshot.counters.asset += 1
            asset = Asset(id=self._snapshot.counters.asset, **fields)
            self._snapshot.assets.append(asset)
            if persist:
                await self._persist_locked()
        return asset

    async def update_asset(self, asset_id: int, **changes: Any) -> Asset:
        async with self._lock:
            for i, asset in enumerate(self._snapshot.assets):
                if asset.id == asset_id:
                    updated = asset.model_copy(update=changes)
                    self._snapshot.assets[i] = updated
                    await self._persist_locked()
                    return updated
        raise KeyError(asset_id)

    async def remove_asset(self, asset_id: int) -> Asset | None:
        async with self._lock:
            asset = self.get_asset(asset_id)
            if asset is None:
                return None
            self._snapshot.assets.remove(asset)
            await self._persist_locked()
        return asset

    # ---- folders ----

    def get_folder(self, folder_id: int) -> Folder | None:
        return next((f for f in self._snapshot.folders if f.id == folder_id), None)

    def list_folders(self, owner_id: int, parent_id: int | None = None) -> list[Folder]:
        return [
            f for f in self._snapshot.folders
            if f.owner_id == owner_id and f.parent_id == parent_id
        ]

    async def add_folder(self, owner_id: int, name: str, parent_id: int | None = None) -> Folder:
        async with self._lock:
            self._snapshot.counters.folder += 1
            folder = Folder(
                id=self._snapshot.counters.folder,
                owner_id=owner_id,
                name=name,
                parent_id=parent_id,
            )
            self._snapshot.folders.append(folder)
            await self._persist_locked()
        return folder

    async def remove_folder(self, folder_id: int) -> int:
        """Drop a folder and move the assets directly inside it to root.

        Child folders are left as they are.

        Returns:
            Number of assets moved to root.
        """
        async with self._lock:
            folder = self.get_folder(folder_id)
            if folder is None:
                raise KeyError(folder_id)
            moved = 0
            for i, asset in enumerate(self._snapshot.assets):
                if asset.folder_id == folder_id:
                    self._snapshot.assets[i] = asset.model_copy(update={"folder_id": None})
                    moved += 1
            self._snapshot.folders.remove(folder)
            await self._persist_locked()
        return moved
