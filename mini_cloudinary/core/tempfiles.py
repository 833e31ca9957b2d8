import logging
from pathlib import Path

import aiofiles.os

from mini_cloudinary.core.naming import staging_name

logger = logging.getLogger(__name__)


async def new_staging_path(temp_dir: Path, original_name: str) -> Path:
    await aiofiles.os.makedirs(temp_dir, exist_ok=True)
    return temp_dir / staging_name(original_name)


async def discard(*paths: Path | None) -> None:
    """Remove local temp files; a failure is logged and never raised."""
    for path in paths:
        if path is None:
            continue
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove temp file %s: %s", path, exc)
