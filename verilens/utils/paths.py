"""Path helpers used across the application."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator, Sequence

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".gif": "image/gif",
    ".heic": "image/heic",
    ".heif": "image/heif",
}

IMAGE_EXTENSIONS = set(IMAGE_MIME_TYPES)


def is_image_file(path: Path, *, extensions: Iterable[str] | None = None) -> bool:
    """Return True if the given path has a supported image extension."""
    exts = {ext.lower() for ext in (extensions or IMAGE_EXTENSIONS)}
    return path.suffix.lower() in exts


def guess_mime_type(path: Path) -> str | None:
    """Return the image MIME type implied by the file extension, if any."""
    return IMAGE_MIME_TYPES.get(path.suffix.lower())


def resolve_image_paths(
    start: Path,
    *,
    recursive: bool = True,
    include_hidden: bool = False,
    extensions: Sequence[str] | None = None,
) -> list[Path]:
    """Collect image paths starting from ``start``.

    Parameters
    ----------
    start:
        File or directory to inspect.
    recursive:
        Whether to traverse sub-directories.
    include_hidden:
        Include files whose name starts with ``.`` when True.
    extensions:
        Optional whitelist of extensions to match.
    """

    start = start.expanduser()
    if not start.exists():
        raise FileNotFoundError(start)

    collected: list[Path] = []

    if start.is_file():
        if is_image_file(start, extensions=extensions):
            if include_hidden or not _is_hidden(start):
                collected.append(start)
        return collected

    walker: Iterator[Path]
    if recursive:
        walker = (path for path in start.rglob("*") if path.is_file())
    else:
        walker = (path for path in start.iterdir() if path.is_file())

    for path in walker:
        if not include_hidden and _is_hidden(path):
            continue
        if is_image_file(path, extensions=extensions):
            collected.append(path)

    collected.sort()
    return collected


def _is_hidden(path: Path) -> bool:
    return path.name.startswith(".")
