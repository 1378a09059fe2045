"""
Screenshot storage on the local filesystem

Files are written below `storage_dir` and served from `public_base_url`.
Uploads never raise: a failed write returns None.
"""
import asyncio
import os
import re
from typing import Optional

from core.config import get_settings
from core.logging import get_logger

logger = get_logger(__name__, domain="d0")

SAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._-]+")


def _safe(segment: str) -> str:
    return SAFE_SEGMENT.sub("_", segment).strip("._") or "file"


class LocalImageStorage:
    """Stores JPEG captures and returns a public URL per image"""

    def __init__(self, storage_dir: Optional[str] = None, public_base_url: Optional[str] = None):
        settings = get_settings()
        self.storage_dir = storage_dir or settings.storage_dir
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def _write(self, data: bytes, folder: str, name: str) -> str:
        relative_folder = "/".join(_safe(part) for part in folder.split("/") if part)
        directory = os.path.join(self.storage_dir, *relative_folder.split("/"))
        os.makedirs(directory, exist_ok=True)

        filename = f"{_safe(name)}.jpg"
        with open(os.path.join(directory, filename), "wb") as f:
            f.write(data)
        return f"{self.public_base_url}/{relative_folder}/{filename}"

    async def upload_image(self, data: Optional[bytes], folder: str, name: str) -> Optional[str]:
        """
        Store one image

        Args:
            data: JPEG bytes
            folder: Slash-separated folder, e.g. "audits/<site>/<run>"
            name: File name without extension

        Returns:
            Public URL, or None when there was nothing to store or the write failed
        """
        if not data:
            return None
        try:
            return await asyncio.to_thread(self._write, data, folder, name)
        except OSError as e:
            logger.error(f"Failed to store image {folder}/{name}: {e}")
            return None
