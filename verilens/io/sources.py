"""Image sources accepted at the intake boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..utils.paths import guess_mime_type


class UnsupportedMediaError(ValueError):
    """Raised when a file is not an acceptable image type."""


@dataclass(frozen=True, slots=True)
class ImageSource:
    """Raw bytes of one uploaded image plus its declared media type."""

    name: str
    data: bytes = field(repr=False)
    mime_type: str
    path: Path | None = None

    def __post_init__(self) -> None:
        if not self.mime_type.startswith("image/"):
            raise UnsupportedMediaError(f"{self.name} is not an image ({self.mime_type}).")

    @property
    def size(self) -> int:
        return len(self.data)


def load_image_source(path: Path, *, mime_type: str | None = None) -> ImageSource:
    """Read ``path`` into an :class:`ImageSource`, declaring its MIME type."""
    declared = mime_type or guess_mime_type(path)
    if declared is None:
        raise UnsupportedMediaError(f"{path.name} does not have a supported image extension.")
    return ImageSource(name=path.name, data=path.read_bytes(), mime_type=declared, path=path)
