"""Qt user interface for VeriLens."""

from .app import run_app

__all__ = ["run_app"]
