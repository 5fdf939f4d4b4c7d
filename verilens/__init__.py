"""Top-level package for the VeriLens image authenticity checker."""

from .config import AppConfig
from .services.analyzer import BatchAnalyzer
from .services.queue import AnalysisStatus, ImageQueue
from .settings_store import SettingsStore

__all__ = ["AnalysisStatus", "AppConfig", "BatchAnalyzer", "ImageQueue", "SettingsStore"]
