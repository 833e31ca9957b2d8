"""File name and namespace sanitization for remote keys.

Examples:
    >>> sanitize_file_name("My Holiday Photo (1).JPG")
    'My-Holiday-Photo-1.jpg'
    >>> sanitize_namespace("Budi Santoso")
    'budi-santoso'
"""

from __future__ import annotations

import re
import secrets
from pathlib import PurePosixPath

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")
_EXT_UNSAFE = re.compile(r"[^a-z0-9]")


def split_extension(name: str) -> tuple[str, str]:
    """Split ``name`` into (stem, extension) where extension keeps its dot.

    Only the last suffix counts, and a leading dot (``.env``) is not an extension.
    """
    # client filenames may carry a path (old browsers send C:\fakepath\...)
    base = PurePosixPath(name.replace("\\", "/")).name
    stem, dot, ext = base.rpartition(".")
    if not dot or not stem:
        return base, ""
    return stem, "." + ext


def sanitize_file_name(name: str, fallback: str = "file") -> str:
    """Make a display name safe to use as a filesystem path and URL segment.

    Rules:
        - Whitespace becomes ``-``
        - Strip everything outside ``[A-Za-z0-9._-]``
        - Collapse repeated separators, trim them at both ends
        - Extension is preserved and lowercased
        - Empty stem falls back to ``fallback``
    """
    stem, ext = split_extension(name.strip())
    stem = re.sub(r"\s+", "-", stem.strip())
    stem = _UNSAFE.sub("", stem)
    stem = re.sub(r"([._-])\1+", r"\1", stem)
    stem = stem.strip("._-")
    if not stem:
        stem = fallback
    ext = _EXT_UNSAFE.sub("", ext.lower())
    return f"{stem}.{ext}" if ext else stem


def sanitize_namespace(username: str) -> str:
    """Map a username to the folder token its objects live under remotely."""
    token = sanitize_file_name(username.replace(".", "-"), fallback="user").lower()
    return token


def staging_name(original_name: str) -> str:
    """Random local file name keeping the client extension, e.g. ``3f9a...c1.png``."""
    _, ext = split_extension(original_name)
    return secrets.token_hex(16) + ext.lower()
