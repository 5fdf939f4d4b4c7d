"""Core service running classifications for queued images."""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from threading import Lock

from ..config import AppConfig
from ..models.base import ImageClassifier, MissingCredentialError, Verdict
from ..models.registry import ModelRegistry
from .queue import AnalysisStatus, ImageItem, ImageQueue, ItemNotFoundError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, ImageItem], None]

DEFAULT_FAILURE_MESSAGE = "Analysis failed"


@dataclass(slots=True)
class BatchReport:
    """Ids of the items a batch run settled, grouped by outcome."""

    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.completed) + len(self.failed)


class BatchAnalyzer:
    """Drives items through ``analyzing`` to ``completed`` or ``error``.

    Single-item and batch runs both capture every classifier failure on the
    item itself, so neither operation raises to its caller.
    """

    def __init__(
        self,
        queue: ImageQueue,
        config: AppConfig,
        *,
        classifier: ImageClassifier | None = None,
    ) -> None:
        self.queue = queue
        self.config = config
        self._classifier = classifier
        self._classifier_lock = Lock()

    def resolve_credential(self, credential: str | None = None) -> str | None:
        """Prefer the per-call override, then the configured default."""
        override = credential.strip() if credential else ""
        return override or self.config.api_key

    def analyze_one(self, item_id: str, *, credential: str | None = None) -> ImageItem | None:
        """Analyse one item from any rest state. Returns the settled item.

        ``None`` is returned when the id is unknown or the item was removed
        while its analysis was in flight.
        """
        current = self.queue.get(item_id)
        if current is None:
            logger.warning("Cannot analyze %s: item is not queued", item_id)
            return None
        if current.status == AnalysisStatus.ANALYZING:
            logger.warning("Item %s is already being analyzed; not dispatching again", item_id)
            return current

        claimed = self.queue.claim(
            [item_id],
            statuses=(AnalysisStatus.IDLE, AnalysisStatus.ERROR, AnalysisStatus.COMPLETED),
        )
        if not claimed:
            return self.queue.get(item_id)
        return self._run(claimed[0], credential)

    def analyze_all(
        self,
        *,
        credential: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> BatchReport:
        """Analyse every idle or failed item concurrently and wait for all of them."""
        claimed = self.queue.claim_pending()
        report = BatchReport()
        if not claimed:
            return report

        total = len(claimed)
        logger.info(
            "Analyzing %d image(s) with up to %d in flight", total, self.config.max_concurrency
        )
        with ThreadPoolExecutor(max_workers=self.config.max_concurrency) as executor:
            futures = [executor.submit(self._run, item, credential) for item in claimed]
            for index, future in enumerate(as_completed(futures), start=1):
                settled = future.result()
                if settled is None:
                    continue
                if settled.status == AnalysisStatus.COMPLETED:
                    report.completed.append(settled.id)
                else:
                    report.failed.append(settled.id)
                if progress_callback:
                    progress_callback(index, total, settled)

        logger.info(
            "Batch finished: %d completed, %d failed", len(report.completed), len(report.failed)
        )
        return report

    def _run(self, item: ImageItem, credential: str | None) -> ImageItem | None:
        """Classify an item already marked ``analyzing`` and record the outcome."""
        try:
            resolved = self.resolve_credential(credential)
            classifier = self._get_classifier()
            if classifier.info().requires_credential and not resolved:
                raise MissingCredentialError()
            verdict = classifier.classify(item.source.data, item.source.mime_type, resolved)
            if not isinstance(verdict, Verdict):
                verdict = Verdict.model_validate(verdict)
        except Exception as exc:
            # KeyError quotes its message in str().
            detail = exc.args[0] if isinstance(exc, KeyError) and exc.args else exc
            message = str(detail) or DEFAULT_FAILURE_MESSAGE
            logger.warning("Analysis of %s failed: %s", item.name, message)
            return self._settle(item.id, AnalysisStatus.ERROR, error=message)

        logger.debug(
            "%s judged %s (%d%%)", item.name, verdict.verdict.value, verdict.confidence
        )
        return self._settle(item.id, AnalysisStatus.COMPLETED, result=verdict)

    def _settle(self, item_id: str, status: AnalysisStatus, **patch) -> ImageItem | None:
        try:
            return self.queue.update_status(item_id, status, **patch)
        except ItemNotFoundError:
            logger.info("Discarding %s outcome for removed item %s", status.value, item_id)
            return None

    def _get_classifier(self) -> ImageClassifier:
        with self._classifier_lock:
            if self._classifier is None:
                logger.info("Loading classifier '%s'...", self.config.model_name)
                self._classifier = ModelRegistry.get(self.config.model_name, config=self.config)
                logger.info("Classifier '%s' ready.", self.config.model_name)
        return self._classifier
