"""Detail view for the currently selected queue item."""

from __future__ import annotations

from PySide6.QtCore import Qt
from PySide6.QtGui import QPixmap
from PySide6.QtWidgets import QLabel, QListWidget, QProgressBar, QVBoxLayout, QWidget

from ...models.base import VerdictKind
from ...services.queue import AnalysisStatus, ImageItem

VERDICT_COLORS = {
    VerdictKind.ORIGINAL: "#22c55e",
    VerdictKind.AI_GENERATED: "#a855f7",
    VerdictKind.MODIFIED: "#f97316",
    VerdictKind.UNCERTAIN: "#94a3b8",
}


def confidence_color(confidence: int) -> str:
    if confidence > 80:
        return "#22c55e"
    if confidence > 50:
        return "#eab308"
    return "#ef4444"


class AnalysisPanel(QWidget):
    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(8)

        self._preview = QLabel()
        self._preview.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._preview.setMinimumHeight(160)

        self._title = QLabel()
        self._title.setWordWrap(True)

        self._verdict = QLabel()
        self._verdict.setTextFormat(Qt.TextFormat.RichText)

        self._confidence = QProgressBar()
        self._confidence.setRange(0, 100)
        self._confidence.setFormat("Confidence %p%")

        self._reasoning = QLabel()
        self._reasoning.setWordWrap(True)
        self._reasoning.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)

        self._indicators = QListWidget()

        for widget in (
            self._preview,
            self._title,
            self._verdict,
            self._confidence,
            self._reasoning,
            self._indicators,
        ):
            layout.addWidget(widget)
        layout.addStretch()
        self.show_item(None)

    def show_item(self, item: ImageItem | None) -> None:
        self._indicators.clear()
        self._confidence.setVisible(False)
        self._indicators.setVisible(False)
        self._verdict.clear()
        if item is None:
            self._preview.clear()
            self._title.setText("Select an image to see its analysis.")
            self._reasoning.clear()
            return

        self._title.setText(f"<b>{item.name}</b>")
        self._show_preview(item)

        if item.status == AnalysisStatus.IDLE:
            self._reasoning.setText("Ready to analyze.")
        elif item.status == AnalysisStatus.ANALYZING:
            self._reasoning.setText("Scanning for artifacts…")
        elif item.status == AnalysisStatus.ERROR:
            self._verdict.setText('<span style="color:#ef4444">Analysis Failed</span>')
            self._reasoning.setText(item.error or "")
        elif item.result is not None:
            result = item.result
            color = VERDICT_COLORS[result.verdict]
            self._verdict.setText(f'<span style="color:{color}"><b>{result.verdict.label}</b></span>')
            self._confidence.setValue(result.confidence)
            self._confidence.setStyleSheet(
                f"QProgressBar::chunk {{ background-color: {confidence_color(result.confidence)}; }}"
            )
            self._confidence.setVisible(True)
            self._reasoning.setText(result.reasoning)
            if result.indicators:
                self._indicators.addItems(result.indicators)
                self._indicators.setVisible(True)

    def _show_preview(self, item: ImageItem) -> None:
        data = item.preview.png_bytes() if item.preview is not None else None
        pixmap = QPixmap()
        if data and pixmap.loadFromData(data):
            self._preview.setPixmap(pixmap)
        else:
            self._preview.setText("No preview")
