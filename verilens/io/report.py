"""Write analysis reports to YAML or JSON files."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from ..services.queue import ImageItem


def item_summary(item: ImageItem) -> dict[str, Any]:
    """Flatten an item into primitive types for reports and CLI output."""
    result = item.result
    return {
        "id": item.id,
        "name": item.source.name,
        "path": str(item.source.path) if item.source.path else None,
        "mime_type": item.source.mime_type,
        "status": item.status.value,
        "verdict": result.verdict.value if result else None,
        "verdict_label": result.verdict.label if result else None,
        "confidence": result.confidence if result else None,
        "reasoning": result.reasoning if result else None,
        "indicators": list(result.indicators) if result else [],
        "error": item.error,
    }


class ReportWriter:
    """Generate a human-readable report for a set of analysed images."""

    def __init__(self, *, extension: str | None = None) -> None:
        self._format = (extension or "").lstrip(".").lower() or None

    def write(self, target_path: Path, items: Iterable[ImageItem]) -> Path:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        fmt = self._format or target_path.suffix.lstrip(".").lower() or "yaml"
        metadata = {"images": [item_summary(item) for item in items]}
        if fmt == "json":
            payload = json.dumps(metadata, indent=2, ensure_ascii=True) + "\n"
        else:
            payload = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=False)
        target_path.write_text(payload, encoding="utf-8")
        return target_path
