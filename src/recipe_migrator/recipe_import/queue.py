"""
Upload queue and batch processing.

RecipeQueue is the single owner of queue state: every mutation goes through
one of its named transitions (add, mark_processing, item_succeeded,
item_failed, select_for_review, confirm, cancel). Each transition is a plain
synchronous method, so it runs atomically on the event loop, and each checks
the item's current status before changing it. Consumers only ever see copies.

Batch runs feed a snapshot of PENDING item ids into an asyncio.Queue that
worker tasks drain. One worker by default: items are extracted strictly in
upload order with a single call in flight.
"""

import asyncio
import dataclasses
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable

from recipe_migrator.config import settings

from .errors import InvalidTransitionError, QueueBusyError, ReaderError, UnknownItemError
from .extractor import extract_recipe
from .models import (
    BatchSummary,
    ErrorKind,
    ItemError,
    ProcessStatus,
    QueueItem,
    Recipe,
    SourceFile,
)
from .reader import ContentPayload, read_content

logger = logging.getLogger(__name__)

Reader = Callable[[SourceFile], ContentPayload]
Extractor = Callable[[str, str, str | None], Awaitable[Recipe]]
Listener = Callable[[list[QueueItem]], None]

REVIEWABLE = (ProcessStatus.REVIEW, ProcessStatus.COMPLETED)


def _copy_item(item: QueueItem) -> QueueItem:
    # SourceFile and ItemError are frozen, only the recipe needs a deep copy
    recipe = item.recipe.model_copy(deep=True) if item.recipe else None
    return dataclasses.replace(item, recipe=recipe)


def _error_message(error: Exception) -> str:
    return str(error).strip() or error.__class__.__name__ or "Unknown error"


class RecipeQueue:
    """Ordered collection of uploaded files and their processing state."""

    def __init__(
        self,
        *,
        reader: Reader | None = None,
        extractor: Extractor | None = None,
        concurrency: int | None = None,
    ) -> None:
        self._items: dict[str, QueueItem] = {}
        self._active_id: str | None = None
        self._processing = False
        self._listeners: list[Listener] = []
        self._background: set[asyncio.Task] = set()
        self._reader = reader
        self._extractor = extractor
        self._concurrency = concurrency

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def active_item_id(self) -> str | None:
        return self._active_id

    def snapshot(self) -> list[QueueItem]:
        """Copies of all items in upload order."""
        return [_copy_item(item) for item in self._items.values()]

    def get(self, item_id: str) -> QueueItem:
        return _copy_item(self._require(item_id))

    def active_item(self) -> QueueItem | None:
        if self._active_id is None:
            return None
        return self.get(self._active_id)

    def pending(self) -> list[QueueItem]:
        return [
            _copy_item(item)
            for item in self._items.values()
            if item.status is ProcessStatus.PENDING
        ]

    def completed_recipes(self) -> list[Recipe]:
        """Confirmed recipes in upload order."""
        return [
            item.recipe.model_copy(deep=True)
            for item in self._items.values()
            if item.status is ProcessStatus.COMPLETED and item.recipe is not None
        ]

    def preview(self, item_id: str) -> str | None:
        """Data URI preview for image/PDF items, built on first request."""
        item = self._require(item_id)
        if item.preview is None and item.source.has_preview:
            item.preview = item.source.to_data_uri()
        return item.preview

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback that receives a snapshot after every transition.

        Returns a function that removes the callback again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def add(self, files: Iterable[SourceFile]) -> list[QueueItem]:
        """Append one PENDING item per file. Does not start processing."""
        added = []
        for source in files:
            item = QueueItem(id=uuid.uuid4().hex, source=source)
            self._items[item.id] = item
            added.append(item)
            logger.info(f"Queued {source.name} as {item.id}")

        if added:
            self._notify()
        return [_copy_item(item) for item in added]

    def mark_processing(self, item_id: str) -> QueueItem:
        item = self._transition(item_id, (ProcessStatus.PENDING,), ProcessStatus.PROCESSING)
        return _copy_item(item)

    def item_succeeded(self, item_id: str, recipe: Recipe) -> QueueItem:
        """Store the extracted recipe and move the item to REVIEW."""
        item = self._require(item_id)
        self._check_status(item, (ProcessStatus.PROCESSING,), ProcessStatus.REVIEW)

        item.recipe = recipe.model_copy(update={"original_file_name": item.file_name}, deep=True)
        item.error = None
        item.status = ProcessStatus.REVIEW
        if self._active_id is None:
            self._active_id = item.id

        self._notify()
        return _copy_item(item)

    def item_failed(self, item_id: str, kind: ErrorKind, message: str) -> QueueItem:
        item = self._require(item_id)
        self._check_status(item, (ProcessStatus.PROCESSING,), ProcessStatus.ERROR)

        item.error = ItemError(kind=kind, message=message or "Unknown error")
        item.status = ProcessStatus.ERROR

        self._notify()
        return _copy_item(item)

    def select_for_review(self, item_id: str) -> QueueItem:
        item = self._require(item_id)
        if item.status not in REVIEWABLE:
            raise InvalidTransitionError(
                f"Item {item_id} is {item.status.value} and has no recipe to review"
            )
        self._active_id = item.id
        self._notify()
        return _copy_item(item)

    def confirm(self, item_id: str, recipe: Recipe) -> QueueItem:
        """
        Persist an edited recipe and mark the item COMPLETED.

        Confirming a COMPLETED item again is accepted only with an identical
        record; completed recipes are frozen.
        """
        item = self._require(item_id)

        if item.status is ProcessStatus.COMPLETED:
            if item.recipe != recipe:
                raise InvalidTransitionError(f"Item {item_id} is already completed")
        else:
            self._check_status(item, (ProcessStatus.REVIEW,), ProcessStatus.COMPLETED)
            item.recipe = recipe.model_copy(deep=True)
            item.status = ProcessStatus.COMPLETED

        if self._active_id == item.id:
            self._active_id = None

        self._notify()
        return _copy_item(item)

    def cancel(self) -> None:
        """Clear the review selection without touching any item."""
        self._active_id = None
        self._notify()

    # -------------------------------------------------------------------------
    # Batch processing
    # -------------------------------------------------------------------------

    async def start_processing(self) -> BatchSummary:
        """
        Process every item that is PENDING right now, in upload order.

        Items added while the run is in progress wait for the next run.

        Raises:
            QueueBusyError: a run is already in progress (nothing changes)
        """
        item_ids = self._claim_batch()
        return await self._run_batch(item_ids)

    def start_processing_in_background(self) -> asyncio.Task:
        """Claim the batch now and process it in a task on the running loop."""
        item_ids = self._claim_batch()
        task = asyncio.create_task(self._run_batch(item_ids))
        # The loop only keeps weak references to tasks
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _claim_batch(self) -> list[str]:
        if self._processing:
            raise QueueBusyError("A batch is already being processed")

        self._processing = True
        item_ids = [
            item.id for item in self._items.values() if item.status is ProcessStatus.PENDING
        ]
        logger.info(f"Starting batch of {len(item_ids)} item(s)")
        self._notify()
        return item_ids

    async def _run_batch(self, item_ids: list[str]) -> BatchSummary:
        summary = BatchSummary(item_ids=list(item_ids))
        work: asyncio.Queue[str] = asyncio.Queue()
        for item_id in item_ids:
            work.put_nowait(item_id)

        concurrency = self._concurrency or settings.extraction_concurrency
        worker_count = max(1, min(concurrency, len(item_ids)))

        try:
            await asyncio.gather(*(self._worker(work, summary) for _ in range(worker_count)))
        finally:
            self._processing = False
            logger.info(
                f"Batch finished: {summary.succeeded} succeeded, {summary.failed} failed"
            )
            self._notify()

        return summary

    async def _worker(self, work: asyncio.Queue, summary: BatchSummary) -> None:
        while True:
            try:
                item_id = work.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                if await self._process_item(item_id):
                    summary.succeeded += 1
                else:
                    summary.failed += 1
            finally:
                work.task_done()

    async def _process_item(self, item_id: str) -> bool:
        """Read and extract one item. Failures are recorded, never raised."""
        item = self.mark_processing(item_id)
        reader = self._reader or read_content
        extractor = self._extractor or extract_recipe

        try:
            payload = reader(item.source)
        except ReaderError as e:
            logger.warning(f"Could not read {item.file_name}: {e}")
            self.item_failed(item_id, ErrorKind.READER, _error_message(e))
            return False
        except Exception as e:
            logger.exception(f"Unexpected failure reading {item.file_name}")
            self.item_failed(item_id, ErrorKind.READER, _error_message(e))
            return False

        try:
            recipe = await extractor(payload.data, payload.mime_type, item.file_name)
        except Exception as e:
            logger.warning(f"Extraction failed for {item.file_name}: {e}")
            self.item_failed(item_id, ErrorKind.EXTRACTION, _error_message(e))
            return False

        self.item_succeeded(item_id, recipe)
        logger.info(f"Extracted '{recipe.name}' from {item.file_name}")
        return True

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require(self, item_id: str) -> QueueItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise UnknownItemError(f"No queue item with id {item_id}") from None

    @staticmethod
    def _check_status(
        item: QueueItem, allowed: tuple[ProcessStatus, ...], target: ProcessStatus
    ) -> None:
        if item.status not in allowed:
            raise InvalidTransitionError(
                f"Cannot move item {item.id} from {item.status.value} to {target.value}"
            )

    def _transition(
        self, item_id: str, allowed: tuple[ProcessStatus, ...], target: ProcessStatus
    ) -> QueueItem:
        item = self._require(item_id)
        self._check_status(item, allowed, target)
        item.status = target
        self._notify()
        return item

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Queue listener failed")
