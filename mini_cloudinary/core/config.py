# mini_cloudinary/core/config.py
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MB = 1024 * 1024


class Settings(BaseSettings):
    # which remote blob store to commit uploads to
    storage_backend: Literal["bunny", "s3"] = "bunny"

    # Bunny storage zone (HTTP PUT/GET/DELETE with an AccessKey header)
    bunny_storage_host: str = "storage.bunnycdn.com"
    bunny_storage_zone_name: str = ""
    bunny_storage_api_key: str = ""
    bunny_cdn_base_url: str = ""

    # S3 bucket, same credentials the drive used before
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_region: str = "us-east-1"
    aws_s3_bucket_name: str = ""
    s3_public_base_url: str = ""

    remote_timeout: float = 60.0

    # local state
    catalog_path: Path = Path("data/db.json")
    temp_dir: Path = Path("temp_uploads")

    # upload limits
    max_file_size: int = 50 * MB
    max_bulk_files: int = 20
    upload_chunk_size: int = 64 * 1024

    # image optimization
    optimize_max_width: int = Field(default=1000, gt=0)
    optimize_quality: int = Field(default=80, ge=1, le=100)
    optimize_prefix: str = "opt-"

    # optional user seeded into a brand new catalog
    bootstrap_username: str | None = None
    bootstrap_password: str | None = None
    bootstrap_api_key: str | None = None

    log_level: str = "INFO"

    # Tell pydantic-settings to load from .env at project root
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore any extra stuff in .env
    )

    @property
    def cdn_base_url(self) -> str:
        if self.storage_backend == "s3":
            if self.s3_public_base_url:
                return self.s3_public_base_url.rstrip("/")
            return f"https://{self.aws_s3_bucket_name}.s3.{self.aws_region}.amazonaws.com"
        return self.bunny_cdn_base_url.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
