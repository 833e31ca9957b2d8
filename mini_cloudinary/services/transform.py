"""Optional image optimization applied before an upload is committed.

``transform_image`` is a pure bytes-to-bytes function. ``TransformStage``
wraps it for staged files and never raises for a bad image: it answers
with a ``Fallback`` pointing back at the original file instead.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import aiofiles
from PIL import Image
from starlette.concurrency import run_in_threadpool

from mini_cloudinary.core.errors import TransformError
from mini_cloudinary.core.naming import split_extension

logger = logging.getLogger(__name__)

# formats re-encoded as themselves; every other image type becomes JPEG
NATIVE_FORMATS: dict[str, tuple[str, str]] = {
    "image/jpeg": ("JPEG", ".jpg"),
    "image/png": ("PNG", ".png"),
    "image/gif": ("GIF", ".gif"),
    "image/webp": ("WEBP", ".webp"),
}
FALLBACK_MIME = "image/jpeg"


def transform_image(data: bytes, mime_type: str, max_width: int, quality: int) -> tuple[bytes, str]:
    """Resize to at most ``max_width`` (never upscale) and re-encode.

    Returns:
        Tuple of (encoded bytes, resulting MIME type).

    Raises:
        TransformError: The bytes are not a decodable image or encoding failed.
    """
    out_mime = mime_type if mime_type in NATIVE_FORMATS else FALLBACK_MIME
    fmt, _ = NATIVE_FORMATS[out_mime]
    try:
        with Image.open(io.BytesIO(data)) as src:
            src.load()
            img = src
            if img.width > max_width:
                height = max(1, round(img.height * max_width / img.width))
                img = img.resize((max_width, height), Image.Resampling.LANCZOS)

            if fmt == "JPEG" and img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            elif fmt == "WEBP" and img.mode == "P":
                img = img.convert("RGBA")

            options: dict = {"optimize": True}
            if fmt == "JPEG":
                options.update(quality=quality, progressive=True)
            elif fmt == "WEBP":
                options = {"quality": quality}
            elif fmt == "PNG":
                options["compress_level"] = 9

            buf = io.BytesIO()
            img.save(buf, format=fmt, **options)
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise TransformError(f"Cannot transform {mime_type}: {exc}") from exc
    return buf.getvalue(), out_mime


@dataclass(frozen=True)
class Transformed:
    path: Path
    file_name: str
    mime_type: str


@dataclass(frozen=True)
class Fallback:
    path: Path
    file_name: str
    mime_type: str
    reason: str


TransformOutcome = Transformed | Fallback


class TransformStage:
    def __init__(
        self,
        max_width: int = 1000,
        quality: int = 80,
        prefix: str = "opt-",
        transform: Callable[[bytes, str, int, int], tuple[bytes, str]] = transform_image,
    ) -> None:
        self.max_width = max_width
        self.quality = quality
        self.prefix = prefix
        self.transform = transform

    async def run(self, staged_path: Path, file_name: str, mime_type: str) -> TransformOutcome:
        """Write an optimized copy next to ``staged_path``.

        The optimized copy is the caller's to clean up, like the staged file.
        """
        stem, ext = split_extension(file_name)
        out_path: Path | None = None
        try:
            async with aiofiles.open(staged_path, "rb") as f:
                data = await f.read()
            out, out_mime = await run_in_threadpool(
                self.transform, data, mime_type, self.max_width, self.quality
            )
            if out_mime != mime_type:
                ext = NATIVE_FORMATS[out_mime][1]
            out_path = staged_path.with_name(f"{staged_path.stem}-opt{ext}")
            async with aiofiles.open(out_path, "wb") as f:
                await f.write(out)
        except TransformError as exc:
            logger.warning("Optimization skipped for %s: %s", file_name, exc)
            return Fallback(staged_path, file_name, mime_type, reason=str(exc))
        except OSError as exc:
            logger.warning("Optimization skipped for %s, local I/O failed: %s", file_name, exc)
            if out_path is not None:
                out_path.unlink(missing_ok=True)
            return Fallback(staged_path, file_name, mime_type, reason=str(exc))

        logger.info("Optimized %s: %d -> %d bytes", file_name, len(data), len(out))
        return Transformed(out_path, f"{self.prefix}{stem}{ext}", out_mime)
