"""Qt worker objects used to run analysis off the main thread."""

from __future__ import annotations

from PySide6.QtCore import QObject, QRunnable, Signal, Slot

from ..services.analyzer import BatchAnalyzer
from ..services.queue import ImageItem, ImageQueue


class WorkerSignals(QObject):
    progress = Signal(int, int, str)
    finished = Signal(object)
    error = Signal(str)


class AnalysisWorker(QRunnable):
    """Runs a batch, or a single item when ``item_id`` is given, on a pool thread."""

    def __init__(
        self,
        analyzer: BatchAnalyzer,
        *,
        item_id: str | None = None,
        credential: str | None = None,
    ) -> None:
        super().__init__()
        self.analyzer = analyzer
        self.item_id = item_id
        self.credential = credential
        self.signals = WorkerSignals()

    def run(self) -> None:
        try:
            if self.item_id is None:
                result = self.analyzer.analyze_all(
                    credential=self.credential,
                    progress_callback=self._emit_progress,
                )
            else:
                result = self.analyzer.analyze_one(self.item_id, credential=self.credential)
            self.signals.finished.emit(result)
        except Exception as exc:  # pragma: no cover - safety net for GUI worker
            self.signals.error.emit(str(exc))

    def _emit_progress(self, index: int, total: int, item: ImageItem) -> None:
        self.signals.progress.emit(index, total, item.name)


class QueueBridge(QObject):
    """Re-emits queue notifications as a Qt signal delivered on the GUI thread.

    Notifications from pool threads arrive queued, possibly after the item was
    replaced again or removed. On delivery the bridge emits the item as it is
    now, and drops updates for items that are no longer queued.
    """

    item_changed = Signal(str, object)
    _received = Signal(str, object)

    def __init__(self, queue: ImageQueue, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._queue = queue
        self._received.connect(self._deliver)
        queue.subscribe(self._forward)

    def detach(self) -> None:
        self._queue.unsubscribe(self._forward)

    def _forward(self, item_id: str, item: ImageItem | None) -> None:
        self._received.emit(item_id, item)

    @Slot(str, object)
    def _deliver(self, item_id: str, item: ImageItem | None) -> None:
        if item is None:
            self.item_changed.emit(item_id, None)
            return
        current = self._queue.get(item_id)
        if current is not None:
            self.item_changed.emit(item_id, current)
