"""
Indexing pipeline - embeds a batch of bookmarks and commits them to the index.

One bad record never aborts the batch. After a complete batch with at least
one success, entries whose URLs are no longer in the batch are removed.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
import threading
import time

from .errors import (
    BackendUnavailableError,
    DimensionMismatchError,
    EmbeddingModelMismatchError,
    InputValidationError,
    InvalidRecordError,
)
from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider, bookmark_text
from ..vector.index import SemanticIndex
from ..vector.types import BookmarkRecord


@dataclass(frozen=True)
class IndexingFailure:
    """A record that could not be indexed."""

    url: str
    kind: str
    message: str


# A validated record, or a payload item that already failed validation
BatchItem = Union[BookmarkRecord, IndexingFailure]


@dataclass
class IndexingReport:
    """Outcome of one indexing run."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    removed: int = 0
    cancelled: bool = False
    failures: List[IndexingFailure] = field(default_factory=list)

    def add_failure(self, url: str, error: Exception) -> None:
        kind = getattr(error, "kind", "embedding_error")
        self.failures.append(IndexingFailure(url=url, kind=kind, message=str(error)))
        self.failed += 1

    @property
    def success(self) -> bool:
        return self.failed == 0 and not self.cancelled

    @property
    def message(self) -> str:
        if self.cancelled:
            return f"Indexing cancelled after {self.attempted} bookmarks ({self.succeeded} indexed)."
        text = f"Indexed {self.succeeded} of {self.attempted} bookmarks"
        details = []
        if self.failed:
            details.append(f"{self.failed} failed")
        if self.removed:
            details.append(f"{self.removed} removed")
        if details:
            text += f" ({', '.join(details)})"
        return text + "."


def clean_record(record: BookmarkRecord) -> BookmarkRecord:
    """Trim text fields; the URL is an opaque key and is only checked for presence."""
    if not record.url or not record.url.strip():
        raise InvalidRecordError("Bookmark url is required")
    title = (record.title or "").strip()
    if not title:
        raise InvalidRecordError(f"Bookmark title is required: {record.url}")
    return BookmarkRecord(url=record.url, title=title, description=(record.description or "").strip())


class IndexingPipeline:
    """
    Orchestrates embedding and index commits for bookmark batches.

    Concurrent ``index()`` calls are serialized; searches against the same
    index are not blocked.
    """

    def __init__(self, index: SemanticIndex, embedder: IEmbeddingProvider, ann_rebuild: bool = True):
        self.semantic_index = index
        self.embedder = embedder
        self.ann_rebuild = ann_rebuild
        self._writer_lock = threading.Lock()

    def index(self, records: Iterable[BookmarkRecord], cancel_event: Optional[threading.Event] = None,
              timeout: Optional[float] = None) -> IndexingReport:
        """
        Index a complete bookmark set.

        Args:
            records: The full current bookmark collection
            cancel_event: Set to stop before the next unprocessed record
            timeout: Seconds allowed per embedder call

        Returns:
            IndexingReport (always, even if every record failed)

        Raises:
            EmbeddingModelMismatchError: the index was built with a different
                embedding model; nothing is written
            DimensionMismatchError: the embedder's dimension differs from the
                index's; the batch stops and the partial report is attached
                to the exception as ``report``
        """
        with self._writer_lock:
            return self._run(list(records), cancel_event, timeout)

    def index_payload(self, payload: Sequence[Dict[str, Any]], cancel_event: Optional[threading.Event] = None,
                      timeout: Optional[float] = None) -> IndexingReport:
        """Validate raw bookmark dicts at the boundary, then index them.

        Invalid dicts are reported as failures and take part in duplicate
        resolution like valid ones: the last dict for a URL decides whether
        that URL is indexed. Their URLs still count as part of the batch for
        reconciliation.
        """
        from .schemas import validate_payload

        items = validate_payload(payload)
        with self._writer_lock:
            return self._run(items, cancel_event, timeout)

    def _run(self, items: List[BatchItem], cancel_event: Optional[threading.Event],
             timeout: Optional[float]) -> IndexingReport:
        start_time = time.time()
        report = IndexingReport()

        try:
            self.semantic_index.bind_model(self.embedder.model_version)
        except EmbeddingModelMismatchError as e:
            e.report = report
            logger.error(f"Indexing refused: {e}")
            raise

        # Duplicate URLs: last occurrence wins
        batch: Dict[str, BatchItem] = {}
        unkeyed: List[IndexingFailure] = []
        for item in items:
            if isinstance(item, IndexingFailure) and not item.url:
                unkeyed.append(item)
            else:
                batch[item.url] = item

        seen_urls = set(batch)
        for failure in unkeyed:
            report.attempted += 1
            report.failed += 1
            report.failures.append(failure)

        for url, item in batch.items():
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                break

            report.attempted += 1
            if isinstance(item, IndexingFailure):
                report.failed += 1
                report.failures.append(item)
                continue

            try:
                record = clean_record(item)
                vector = self.embedder.embed_text(bookmark_text(record), timeout=timeout)
            except BackendUnavailableError as e:
                logger.log_backend_failure("embedder", e, {"url": url})
                report.add_failure(url, e)
                continue
            except InputValidationError as e:
                report.add_failure(url, e)
                continue
            except Exception as e:
                logger.error(f"Unexpected embedding failure for {url}: {e}")
                report.add_failure(url, e)
                continue

            try:
                self.semantic_index.upsert(record, vector)
            except DimensionMismatchError as e:
                report.add_failure(url, e)
                e.report = report
                logger.error(f"Indexing aborted after {report.attempted} bookmarks: {e}")
                raise
            except InputValidationError as e:
                # Zero or non-finite vector from the embedder
                report.add_failure(url, e)
                continue
            report.succeeded += 1

        if report.cancelled:
            logger.info("Indexing cancelled; reconciliation skipped")
        elif report.succeeded == 0:
            if report.attempted:
                logger.warning("No bookmark indexed successfully; keeping existing index untouched")
        else:
            stale = self.semantic_index.urls() - seen_urls
            report.removed = self.semantic_index.remove_many(stale)

        duration_ms = round((time.time() - start_time) * 1000, 2)
        logger.log_indexing_report(report.attempted, report.succeeded, report.failed, report.removed,
                                   cancelled=report.cancelled, duration_ms=duration_ms)

        if self.ann_rebuild and report.succeeded:
            self.semantic_index.schedule_rebuild()

        return report
