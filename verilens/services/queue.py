"""Ordered, thread-safe collection of images awaiting or holding a verdict."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Callable, Collection, Iterable, Iterator
from dataclasses import dataclass, field, replace
from enum import Enum
from threading import Lock

from ..io.preview import PreviewHandle, make_preview
from ..io.sources import ImageSource
from ..models.base import ErrorKind, Verdict

logger = logging.getLogger(__name__)


class AnalysisStatus(str, Enum):
    """Lifecycle states of a queued image."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"


class ItemNotFoundError(KeyError):
    """Raised when a mutation targets an id that is no longer queued."""

    kind = ErrorKind.NOT_FOUND


@dataclass(frozen=True, slots=True)
class ImageItem:
    """Immutable snapshot of one queued image.

    ``result`` is only set for completed items and ``error`` only for failed
    ones; construction rejects any other combination.
    """

    id: str
    source: ImageSource
    preview: PreviewHandle | None = field(default=None, repr=False, compare=False)
    status: AnalysisStatus = AnalysisStatus.IDLE
    result: Verdict | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.status == AnalysisStatus.COMPLETED:
            valid = self.result is not None and self.error is None
        elif self.status == AnalysisStatus.ERROR:
            valid = bool(self.error) and self.result is None
        else:
            valid = self.result is None and self.error is None
        if not valid:
            raise ValueError(
                f"Item {self.id} cannot be {self.status.value} with "
                f"result={self.result is not None} and error={self.error!r}."
            )

    @property
    def name(self) -> str:
        return self.source.name


QueueListener = Callable[[str, "ImageItem | None"], None]
PreviewFactory = Callable[[ImageSource], PreviewHandle]


class ImageQueue:
    """Holds items most-recent-first and applies whole-item replacements."""

    def __init__(self, preview_factory: PreviewFactory | None = make_preview) -> None:
        self._preview_factory = preview_factory
        self._items: list[ImageItem] = []
        self._issued_ids: set[str] = set()
        self._lock = Lock()
        self._listeners: list[QueueListener] = []

    # ----- Reads ------------------------------------------------------------

    def items(self) -> list[ImageItem]:
        with self._lock:
            return list(self._items)

    def get(self, item_id: str) -> ImageItem | None:
        with self._lock:
            index = self._index_of(item_id)
            return self._items[index] if index is not None else None

    def counts(self) -> Counter[AnalysisStatus]:
        with self._lock:
            return Counter(item.status for item in self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return isinstance(item_id, str) and self.get(item_id) is not None

    def __iter__(self) -> Iterator[ImageItem]:
        return iter(self.items())

    # ----- Observation ------------------------------------------------------

    def subscribe(self, listener: QueueListener) -> None:
        """Call ``listener(item_id, item)`` after each change; ``item`` is None on removal."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: QueueListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, changes: Iterable[tuple[str, ImageItem | None]]) -> None:
        for item_id, item in changes:
            for listener in list(self._listeners):
                try:
                    listener(item_id, item)
                except Exception:
                    logger.exception("Queue listener failed for item %s", item_id)

    # ----- Mutations --------------------------------------------------------

    def add(self, sources: Iterable[ImageSource]) -> list[ImageItem]:
        """Prepend one idle item per source, keeping the batch order."""
        new_items: list[ImageItem] = []
        try:
            for source in sources:
                new_items.append(
                    ImageItem(id="", source=source, preview=self._acquire_preview(source))
                )
        except Exception:
            for item in new_items:
                _release(item)
            raise
        if not new_items:
            return []
        with self._lock:
            new_items = [replace(item, id=self._new_id()) for item in new_items]
            self._items[:0] = new_items
        logger.debug("Queued %d image(s)", len(new_items))
        self._notify((item.id, item) for item in new_items)
        return new_items

    def remove(self, item_id: str) -> bool:
        """Remove an item and release its preview. Unknown ids are ignored."""
        with self._lock:
            index = self._index_of(item_id)
            if index is None:
                removed = None
            else:
                removed = self._items.pop(index)
        if removed is None:
            logger.debug("Ignoring removal of unknown item %s", item_id)
            return False
        _release(removed)
        self._notify([(item_id, None)])
        return True

    def clear(self) -> int:
        with self._lock:
            removed, self._items = self._items, []
        for item in removed:
            _release(item)
        self._notify((item.id, None) for item in removed)
        return len(removed)

    def update_status(
        self,
        item_id: str,
        status: AnalysisStatus,
        *,
        result: Verdict | None = None,
        error: str | None = None,
    ) -> ImageItem:
        """Replace exactly one item with a copy carrying the new state."""
        with self._lock:
            index = self._index_of(item_id)
            if index is None:
                raise ItemNotFoundError(item_id)
            updated = replace(self._items[index], status=status, result=result, error=error)
            self._items[index] = updated
        self._notify([(item_id, updated)])
        return updated

    def claim(
        self,
        item_ids: Collection[str] | None = None,
        *,
        statuses: Collection[AnalysisStatus] = (AnalysisStatus.IDLE, AnalysisStatus.ERROR),
    ) -> list[ImageItem]:
        """Atomically move matching items to ``analyzing`` and return them.

        Items already ``analyzing`` are never returned, so two concurrent
        claims cannot dispatch the same item twice.
        """
        claimed: list[ImageItem] = []
        with self._lock:
            for index, item in enumerate(self._items):
                if item_ids is not None and item.id not in item_ids:
                    continue
                if item.status == AnalysisStatus.ANALYZING or item.status not in statuses:
                    continue
                updated = replace(item, status=AnalysisStatus.ANALYZING, result=None, error=None)
                self._items[index] = updated
                claimed.append(updated)
        self._notify((item.id, item) for item in claimed)
        return claimed

    def claim_pending(self) -> list[ImageItem]:
        return self.claim()

    # ----- Internals --------------------------------------------------------

    def _acquire_preview(self, source: ImageSource) -> PreviewHandle | None:
        if self._preview_factory is None:
            return None
        return self._preview_factory(source)

    def _new_id(self) -> str:
        while True:
            candidate = uuid.uuid4().hex[:12]
            if candidate not in self._issued_ids:
                self._issued_ids.add(candidate)
                return candidate

    def _index_of(self, item_id: str) -> int | None:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        return None


def _release(item: ImageItem) -> None:
    if item.preview is not None:
        item.preview.dispose()
