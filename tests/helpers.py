"""Shared test doubles and builders."""
import io
from pathlib import Path

from PIL import Image
from starlette.datastructures import Headers, UploadFile

from mini_cloudinary.core.errors import (
    RemoteDeleteFailed,
    RemoteReadFailed,
    RemoteReadNotFound,
    RemoteWriteFailed,
)
from mini_cloudinary.core.security import hash_password
from mini_cloudinary.models.catalog import CatalogSnapshot, Counters
from mini_cloudinary.models.user import User
from mini_cloudinary.storage.base import RemoteStore

CDN = "https://cdn.test"


class FakeStore(RemoteStore):
    """In-memory RemoteStore recording every call."""

    def __init__(self):
        super().__init__(CDN)
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.fail_put: set[str] = set()
        self.fail_get: set[str] = set()
        self.fail_delete: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def put(self, local_path, key, content_type):
        self.calls.append(("put", key))
        if key in self.fail_put:
            raise RemoteWriteFailed("Upload to storage failed. Status: 500", key=key, status=500)
        self.objects[key] = Path(local_path).read_bytes()
        self.content_types[key] = content_type
        return key

    async def get(self, key):
        self.calls.append(("get", key))
        if key in self.fail_get:
            raise RemoteReadFailed("Download from storage failed. Status: 500", key=key, status=500)
        if key not in self.objects:
            raise RemoteReadNotFound(f"Object not found: {key}", key=key, status=404)
        data = self.objects[key]
        for i in range(0, len(data), 1024):
            yield data[i:i + 1024]

    async def delete(self, key):
        self.calls.append(("delete", key))
        if key in self.fail_delete:
            raise RemoteDeleteFailed("Delete from storage failed. Status: 500", key=key, status=500)
        self.objects.pop(key, None)

    async def aclose(self):
        self.closed = True


def make_image(fmt: str = "PNG", size: tuple[int, int] = (1600, 800), color=(200, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def make_upload(data: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def make_snapshot() -> CatalogSnapshot:
    return CatalogSnapshot(
        users=[
            User(id=1, username="alice", password_hash=hash_password("wonderland"), api_key="key-alice"),
            User(id=2, username="Bob Builder", password_hash=hash_password("canwefixit"), api_key="key-bob"),
        ],
        counters=Counters(user=2),
    )


