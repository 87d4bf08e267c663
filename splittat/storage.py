"""
Receipt image storage.

Uploaded images are written through an ``ImageStore``; the receipt keeps only
the public URL the store hands back. Serving the files is left to whatever
sits in front of the API.
"""

import mimetypes
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)


class ImageStore(ABC):
    """Abstract storage backend for receipt images."""

    @abstractmethod
    def save(self, data: bytes, filename: Optional[str], content_type: str) -> str:
        """
        Persist an image.

        Args:
            data: Raw image bytes
            filename: Client-supplied file name, used only for its extension
            content_type: MIME type of the upload

        Returns:
            Public URL of the stored image
        """

    @abstractmethod
    def delete(self, url: str) -> None:
        """Remove a stored image. Unknown URLs are ignored."""


class LocalImageStore(ImageStore):
    """Stores images on the local file system under ``UPLOAD_DIR``."""

    def __init__(self, root_dir: Optional[str] = None, url_prefix: Optional[str] = None):
        self.root = Path(root_dir or settings.UPLOAD_DIR)
        self.url_prefix = (url_prefix or settings.UPLOAD_URL_PREFIX).rstrip("/")

    def save(self, data: bytes, filename: Optional[str], content_type: str) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        name = f"{uuid.uuid4().hex}{_extension(filename, content_type)}"
        (self.root / name).write_bytes(data)
        logger.info("Stored receipt image", file=name, size=len(data))
        return f"{self.url_prefix}/{name}"

    def delete(self, url: str) -> None:
        if not url.startswith(f"{self.url_prefix}/"):
            return
        path = self.root / Path(url).name
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("Receipt image already gone", file=path.name)


def _extension(filename: Optional[str], content_type: str) -> str:
    if filename:
        suffix = Path(filename).suffix.lower()
        if suffix:
            return suffix
    return mimetypes.guess_extension(content_type) or ""
