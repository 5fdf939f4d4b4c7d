"""Utility helpers for the VeriLens library."""

from .paths import guess_mime_type, is_image_file, resolve_image_paths

__all__ = ["guess_mime_type", "is_image_file", "resolve_image_paths"]
