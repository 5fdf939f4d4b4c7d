"""Main Qt window implementing the user interface."""

from __future__ import annotations

import os
from collections.abc import Iterable
from functools import partial
from pathlib import Path

from PySide6 import QtCore
from PySide6.QtCore import QThreadPool
from PySide6.QtGui import QGuiApplication, QIcon, QPixmap
from PySide6.QtWidgets import (
    QApplication,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSplitter,
    QStatusBar,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ..config import API_KEY_ENV, AppConfig
from ..io.preview import make_preview
from ..io.sources import ImageSource, UnsupportedMediaError, load_image_source
from ..services.analyzer import BatchAnalyzer, BatchReport
from ..services.queue import AnalysisStatus, ImageItem, ImageQueue
from ..settings_store import SettingsStore
from ..utils.paths import is_image_file, resolve_image_paths
from .widgets.analysis_panel import AnalysisPanel
from .widgets.drop_target import DropTargetWidget
from .widgets.progress_panel import ProgressPanel
from .widgets.settings_form import SettingsDialog
from .workers import AnalysisWorker, QueueBridge

STATUS_TEXT = {
    AnalysisStatus.IDLE: "Ready",
    AnalysisStatus.ANALYZING: "Analyzing…",
    AnalysisStatus.COMPLETED: "Completed",
    AnalysisStatus.ERROR: "Failed",
}


class MainWindow(QMainWindow):
    """Primary application window."""

    def __init__(self, settings_store: SettingsStore | None = None) -> None:
        super().__init__()
        self.setWindowTitle("VeriLens")
        self.resize(1180, 760)

        self.settings_store = settings_store or SettingsStore()
        self.config: AppConfig = self.settings_store.load()
        self.queue = ImageQueue(preview_factory=partial(make_preview, size=self.config.preview_size))
        self.analyzer = self._build_analyzer()
        self.thread_pool = QThreadPool()
        self.bridge = QueueBridge(self.queue, self)
        self.bridge.item_changed.connect(self._on_item_changed)
        self._batch_worker: AnalysisWorker | None = None
        self._workers: set[AnalysisWorker] = set()
        self._rows: dict[str, QTreeWidgetItem] = {}
        self._cursor_busy = False

        self._build_ui()
        self._rebuild_status_bar()
        self._update_controls()

    def _build_analyzer(self) -> BatchAnalyzer:
        # The saved key is passed per request; the environment key is the fallback.
        ambient = self.config.model_copy(update={"api_key": os.getenv(API_KEY_ENV) or None})
        return BatchAnalyzer(self.queue, ambient)

    def _build_ui(self) -> None:
        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(12)
        self.setCentralWidget(central)

        self.info_label = QLabel(
            "Upload images to analyze them for signs of generative AI, Photoshop "
            "manipulation, or digital tampering."
        )
        self.info_label.setWordWrap(True)
        layout.addWidget(self.info_label)

        self.drop_target = DropTargetWidget()
        self.drop_target.files_dropped.connect(self._handle_dropped_paths)
        self.drop_target.clicked.connect(self._choose_files)
        layout.addWidget(self.drop_target)

        button_row = QHBoxLayout()
        button_row.setSpacing(8)

        self.count_label = QLabel()
        self.settings_btn = QPushButton("Settings…")
        self.settings_btn.clicked.connect(self._open_settings)

        self.analyze_selected_btn = QPushButton("Analyze")
        self.analyze_selected_btn.clicked.connect(self._analyze_selected)
        self.analyze_selected_btn.setToolTip("Analyze, retry or re-run the selected image.")

        self.remove_btn = QPushButton("Remove")
        self.remove_btn.clicked.connect(self._remove_selected)

        self.clear_btn = QPushButton("Clear All")
        self.clear_btn.clicked.connect(self._clear_all)

        self.analyze_all_btn = QPushButton("Analyze All")
        self.analyze_all_btn.clicked.connect(self._analyze_all)

        button_row.addWidget(self.count_label)
        button_row.addStretch()
        button_row.addWidget(self.settings_btn)
        button_row.addWidget(self.analyze_selected_btn)
        button_row.addWidget(self.remove_btn)
        button_row.addWidget(self.clear_btn)
        button_row.addWidget(self.analyze_all_btn)
        layout.addLayout(button_row)

        self.progress_panel = ProgressPanel()
        layout.addWidget(self.progress_panel)

        splitter = QSplitter()
        self.results_view = QTreeWidget()
        self.results_view.setColumnCount(4)
        self.results_view.setHeaderLabels(["Image", "Status", "Verdict", "Confidence"])
        self.results_view.setRootIsDecorated(False)
        self.results_view.setAlternatingRowColors(True)
        self.results_view.setIconSize(QtCore.QSize(48, 48))
        self.results_view.itemSelectionChanged.connect(self._on_selection_changed)
        splitter.addWidget(self.results_view)

        self.analysis_panel = AnalysisPanel()
        splitter.addWidget(self.analysis_panel)
        splitter.setStretchFactor(0, 3)
        splitter.setStretchFactor(1, 2)
        layout.addWidget(splitter, stretch=1)

        self.setStatusBar(QStatusBar())

    def _rebuild_status_bar(self) -> None:
        key_state = "key saved" if self.config.api_key else "no saved key"
        self.statusBar().showMessage(f"Model: {self.config.model_name} • {key_state}")

    # --- Intake ---------------------------------------------------------

    def _choose_files(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(
            self,
            "Select images",
            "",
            "Images (*.png *.jpg *.jpeg *.webp *.bmp *.gif *.tiff *.heic)",
        )
        if paths:
            self._queue_paths(Path(path) for path in paths)

    def _handle_dropped_paths(self, paths: list[Path]) -> None:
        self._queue_paths(paths)

    def _queue_paths(self, paths: Iterable[Path]) -> None:
        candidates: list[Path] = []
        for path in paths:
            if path.is_dir():
                try:
                    candidates.extend(
                        resolve_image_paths(
                            path,
                            recursive=self.config.recursive,
                            include_hidden=self.config.include_hidden,
                        )
                    )
                except FileNotFoundError:
                    continue
            elif path.is_file() and is_image_file(path):
                candidates.append(path)

        sources: list[ImageSource] = []
        for path in candidates:
            try:
                sources.append(load_image_source(path))
            except (OSError, UnsupportedMediaError):
                continue

        if not sources:
            QMessageBox.information(self, "No images found", "Nothing to analyze.")
            return
        self.queue.add(sources)

    # --- Analysis -------------------------------------------------------

    def _analyze_all(self) -> None:
        if self._batch_worker is not None:
            return
        worker = AnalysisWorker(self.analyzer, credential=self.config.api_key)
        worker.signals.progress.connect(self.progress_panel.update_progress)
        worker.signals.finished.connect(partial(self._on_batch_finished, worker))
        worker.signals.error.connect(partial(self._on_worker_error, worker))
        self._batch_worker = worker
        self.progress_panel.set_busy(True)
        self._set_busy_cursor(True)
        self._start(worker)

    def _analyze_selected(self) -> None:
        item = self._selected_item()
        if item is None or item.status == AnalysisStatus.ANALYZING:
            return
        worker = AnalysisWorker(self.analyzer, item_id=item.id, credential=self.config.api_key)
        worker.signals.finished.connect(partial(self._on_single_finished, worker))
        worker.signals.error.connect(partial(self._on_worker_error, worker))
        self._start(worker)

    def _start(self, worker: AnalysisWorker) -> None:
        self._workers.add(worker)
        self.thread_pool.start(worker)
        self._update_controls()

    def _on_batch_finished(self, worker: AnalysisWorker, report: BatchReport) -> None:
        self._workers.discard(worker)
        self._batch_worker = None
        self._set_busy_cursor(False)
        self.progress_panel.show_summary(len(report.completed), len(report.failed))
        self._update_controls()

    def _on_single_finished(self, worker: AnalysisWorker, _item: ImageItem | None) -> None:
        self._workers.discard(worker)
        self._update_controls()

    def _on_worker_error(self, worker: AnalysisWorker, message: str) -> None:
        self._workers.discard(worker)
        if worker is self._batch_worker:
            self._batch_worker = None
            self._set_busy_cursor(False)
            self.progress_panel.reset()
        QMessageBox.critical(self, "Processing error", message)
        self._update_controls()

    # --- Queue rendering ------------------------------------------------

    def _on_item_changed(self, item_id: str, item: ImageItem | None) -> None:
        if item is None:
            row = self._rows.pop(item_id, None)
            if row is not None:
                index = self.results_view.indexOfTopLevelItem(row)
                self.results_view.takeTopLevelItem(index)
        elif item_id in self._rows:
            self._render_row(self._rows[item_id], item)
        else:
            row = QTreeWidgetItem()
            row.setData(0, QtCore.Qt.ItemDataRole.UserRole, item_id)
            self._render_row(row, item)
            self._rows[item_id] = row
            self._insert_in_queue_order(item_id, row)
        selected = self._selected_item()
        if selected is None or selected.id == item_id:
            self.analysis_panel.show_item(selected)
        self._update_controls()

    def _insert_in_queue_order(self, item_id: str, row: QTreeWidgetItem) -> None:
        order = [item.id for item in self.queue.items()]
        position = order.index(item_id) if item_id in order else 0
        self.results_view.insertTopLevelItem(min(position, self.results_view.topLevelItemCount()), row)

    def _render_row(self, row: QTreeWidgetItem, item: ImageItem) -> None:
        row.setText(0, item.name)
        row.setText(1, STATUS_TEXT[item.status])
        row.setText(2, item.result.verdict.label if item.result else "")
        row.setText(3, f"{item.result.confidence}%" if item.result else "")
        row.setToolTip(1, item.error or "")
        if row.icon(0).isNull() and item.preview is not None:
            data = item.preview.png_bytes()
            pixmap = QPixmap()
            if data and pixmap.loadFromData(data):
                row.setIcon(0, QIcon(pixmap))

    def _selected_item(self) -> ImageItem | None:
        rows = self.results_view.selectedItems()
        if not rows:
            return None
        item_id = rows[0].data(0, QtCore.Qt.ItemDataRole.UserRole)
        return self.queue.get(item_id)

    def _on_selection_changed(self) -> None:
        self.analysis_panel.show_item(self._selected_item())
        self._update_controls()

    def _update_controls(self) -> None:
        counts = self.queue.counts()
        total = sum(counts.values())
        batch_running = self._batch_worker is not None
        self.count_label.setText(f"{total} images in queue")
        self.analyze_all_btn.setText("Analyzing…" if batch_running else "Analyze All")
        self.analyze_all_btn.setEnabled(
            not batch_running and total > 0 and counts[AnalysisStatus.COMPLETED] < total
        )
        self.clear_btn.setEnabled(not batch_running and total > 0)
        selected = self._selected_item()
        self.remove_btn.setEnabled(selected is not None)
        self.analyze_selected_btn.setEnabled(
            selected is not None and selected.status != AnalysisStatus.ANALYZING
        )
        if selected is not None:
            label = {
                AnalysisStatus.ERROR: "Retry",
                AnalysisStatus.COMPLETED: "Re-run",
            }.get(selected.status, "Analyze")
            self.analyze_selected_btn.setText(label)

    def _remove_selected(self) -> None:
        item = self._selected_item()
        if item is not None:
            self.queue.remove(item.id)

    def _clear_all(self) -> None:
        self.queue.clear()
        self.progress_panel.reset()

    def _set_busy_cursor(self, active: bool) -> None:
        app = QApplication.instance()
        if app is None:
            return
        if active and not self._cursor_busy:
            QGuiApplication.setOverrideCursor(QtCore.Qt.CursorShape.BusyCursor)
            self._cursor_busy = True
        elif not active and self._cursor_busy:
            QGuiApplication.restoreOverrideCursor()
            self._cursor_busy = False

    # --- Settings -------------------------------------------------------

    def _open_settings(self) -> None:
        dialog = SettingsDialog(self.config, self)
        if dialog.exec() != dialog.DialogCode.Accepted:
            return
        self._apply_new_config(dialog.config())

    def _apply_new_config(self, config: AppConfig) -> None:
        self.config = config
        self.settings_store.save(config)
        self.analyzer = self._build_analyzer()
        self._rebuild_status_bar()

    def closeEvent(self, event) -> None:  # noqa: N802 - Qt override
        self.thread_pool.waitForDone()
        self.bridge.detach()
        self.queue.clear()
        super().closeEvent(event)
