"""Upload zone that accepts image files and folders via drag & drop."""

from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import (
    QColor,
    QDragEnterEvent,
    QDragLeaveEvent,
    QDropEvent,
    QMouseEvent,
    QPainter,
    QPaintEvent,
    QPen,
)
from PySide6.QtWidgets import QLabel, QVBoxLayout, QWidget


class DropTargetWidget(QWidget):
    files_dropped = Signal(object)
    clicked = Signal()

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setAcceptDrops(True)
        self.setObjectName("DropTarget")
        self.setMinimumHeight(120)
        self.setCursor(Qt.CursorShape.PointingHandCursor)
        self._active = False

        layout = QVBoxLayout(self)
        layout.setContentsMargins(24, 24, 24, 24)

        self._label = QLabel("Click to upload or drag and drop images here")
        self._label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._label.setWordWrap(True)
        self._label.setStyleSheet("color: #e2e8f0;")
        layout.addWidget(self._label)

        self.setToolTip("Drop image files or folders to add them to the queue.")

    def paintEvent(self, event: QPaintEvent | None = None) -> None:
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        rect = self.rect().adjusted(1, 1, -1, -1)
        painter.fillRect(rect, QColor(15, 23, 42, 230))

        border_color = QColor(71, 85, 105) if not self._active else QColor(59, 130, 246)
        pen = QPen(border_color, 2, Qt.PenStyle.DashLine)
        painter.setPen(pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRoundedRect(rect, 16, 16)

        super().paintEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self.clicked.emit()
        super().mouseReleaseEvent(event)

    def dragEnterEvent(self, event: QDragEnterEvent) -> None:
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
            self._active = True
            self.update()
        else:
            event.ignore()

    def dropEvent(self, event: QDropEvent) -> None:
        urls = [url for url in event.mimeData().urls() if url.isLocalFile()]
        if not urls:
            event.ignore()
            return
        paths = [Path(url.toLocalFile()) for url in urls]
        self.files_dropped.emit(paths)
        event.acceptProposedAction()
        self._active = False
        self.update()

    def dragLeaveEvent(self, event: QDragLeaveEvent) -> None:
        if self._active:
            self._active = False
            self.update()
