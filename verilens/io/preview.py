"""Thumbnail previews owned by queue items."""

from __future__ import annotations

import io
import logging
from threading import Lock

from PIL import Image, UnidentifiedImageError

from .sources import ImageSource

logger = logging.getLogger(__name__)


class PreviewHandle:
    """A scoped preview resource, released exactly once through :meth:`dispose`."""

    def __init__(self, image: Image.Image | None = None) -> None:
        self._image = image
        self._lock = Lock()
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def png_bytes(self) -> bytes | None:
        """Render the thumbnail as PNG, or ``None`` when unavailable."""
        with self._lock:
            if self._released or self._image is None:
                return None
            buffer = io.BytesIO()
            self._image.save(buffer, format="PNG")
            return buffer.getvalue()

    def dispose(self) -> bool:
        """Release the thumbnail. Returns False if it was already released."""
        with self._lock:
            if self._released:
                return False
            self._released = True
            image, self._image = self._image, None
        if image is not None:
            image.close()
        return True


def make_preview(source: ImageSource, size: int = 256) -> PreviewHandle:
    """Decode ``source`` into a thumbnail no larger than ``size`` pixels."""
    try:
        with Image.open(io.BytesIO(source.data)) as img:
            img.thumbnail((size, size))
            thumbnail = img.convert("RGBA") if img.mode not in ("RGB", "RGBA") else img.copy()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        logger.info("No preview available for %s: %s", source.name, exc)
        return PreviewHandle()
    return PreviewHandle(thumbnail)
