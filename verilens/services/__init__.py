"""Service layer for queueing images and coordinating their analysis."""

from .analyzer import BatchAnalyzer, BatchReport
from .queue import AnalysisStatus, ImageItem, ImageQueue, ItemNotFoundError

__all__ = [
    "AnalysisStatus",
    "BatchAnalyzer",
    "BatchReport",
    "ImageItem",
    "ImageQueue",
    "ItemNotFoundError",
]
