from mini_cloudinary.core.config import Settings
from mini_cloudinary.storage.base import RemoteStore
from mini_cloudinary.storage.bunny import BunnyStore
from mini_cloudinary.storage.s3 import S3Store


def create_store(settings: Settings) -> RemoteStore:
    if settings.storage_backend == "s3":
        return S3Store.from_settings(settings)
    return BunnyStore.from_settings(settings)
