"""Intake, preview and report helpers."""

from .preview import PreviewHandle, make_preview
from .report import ReportWriter, item_summary
from .sources import ImageSource, UnsupportedMediaError, load_image_source

__all__ = [
    "ImageSource",
    "PreviewHandle",
    "ReportWriter",
    "UnsupportedMediaError",
    "item_summary",
    "load_image_source",
    "make_preview",
]
