from __future__ import annotations

import logging
import os
import secrets
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from ..config import settings

logger = logging.getLogger(__name__)

ALLOWED_WALLPAPER_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

MAX_WALLPAPER_BYTES = 10 * 1024 * 1024


class UploadRejected(ValueError):
    pass


def wallpaper_url(filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    return f"/uploads/wallpapers/{filename}"


def save_wallpaper(upload: UploadFile, slug: str) -> str:
    """
    Store an uploaded image under UPLOAD_DIR/wallpapers and return the generated filename.
    The client-supplied filename is never used on disk.
    """
    content_type = (upload.content_type or "").lower()
    ext = ALLOWED_WALLPAPER_TYPES.get(content_type)
    if not ext:
        raise UploadRejected(f"Unsupported wallpaper type: {content_type or 'unknown'}")

    data = upload.file.read(MAX_WALLPAPER_BYTES + 1)
    if not data:
        raise UploadRejected("Wallpaper file is empty")
    if len(data) > MAX_WALLPAPER_BYTES:
        raise UploadRejected("Wallpaper file is too large (max 10 MB)")

    folder = settings.wallpaper_dir
    folder.mkdir(parents=True, exist_ok=True)

    filename = f"{slug}-{secrets.token_hex(6)}{ext}"
    (folder / filename).write_bytes(data)
    return filename


def delete_wallpaper(filename: Optional[str]) -> None:
    if not filename:
        return
    # stored names never contain separators; refuse anything that would escape the folder
    if os.path.basename(filename) != filename:
        logger.warning("Refusing to delete suspicious wallpaper path %r", filename)
        return
    path: Path = settings.wallpaper_dir / filename
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError:
        logger.exception("Could not delete wallpaper %s", path)
