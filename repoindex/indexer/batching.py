"""Bounded-concurrency batch pipeline feeding the vector backend."""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, TypeVar

from ..logging import get_logger
from ..models import EmbeddingDocument, EmbeddingError, VectorBackend
from .types import IndexingError, IndexProgress, ProgressCallback

T = TypeVar("T")

STORING_PERCENT_START = 66.0
STORING_PERCENT_SPAN = 33.0


@dataclass(frozen=True)
class BatchOutcome:
    """Result of pushing every batch through the backend."""

    documents_indexed: int
    errors: List[IndexingError] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)


def partition(items: Sequence[T], size: int) -> List[List[T]]:
    """Split ``items`` into consecutive chunks of ``size``; the last may be shorter."""
    if size < 1:
        raise ValueError("partition size must be positive")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def estimate_eta(indexed: int, total: int, elapsed_seconds: float) -> Optional[int]:
    """Seconds left at the current rate, or ``None`` when no rate is known yet."""
    if elapsed_seconds <= 0 or indexed <= 0:
        return None
    rate = indexed / elapsed_seconds
    if rate <= 0:
        return None
    remaining = max(0, total - indexed)
    return math.ceil(remaining / rate)


def format_eta(seconds: int) -> str:
    minutes, remainder = divmod(max(0, int(seconds)), 60)
    if minutes > 0:
        return f"{minutes}m {remainder}s"
    return f"{remainder}s"


class BatchController:
    """Stores documents in batches, running up to ``concurrency`` batches at once.

    Batches are grouped by ``concurrency``; a group is submitted to a thread
    pool and joined only when every batch in it has settled. A failing batch
    is recorded as one ``IndexingError`` and never stops its siblings or the
    groups after it.
    """

    def __init__(
        self,
        storage: VectorBackend,
        *,
        batch_size: int,
        concurrency: int,
        logger: Optional[logging.Logger] = None,
        on_progress: Optional[ProgressCallback] = None,
        log_every: int = 5,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.storage = storage
        self.batch_size = batch_size
        self.concurrency = max(1, concurrency)
        self.logger = logger or get_logger("indexer.batches")
        self.on_progress = on_progress
        self.log_every = max(1, log_every)

    def run(
        self,
        documents: Sequence[EmbeddingDocument],
        *,
        files_processed: int,
        started_at: Optional[float] = None,
    ) -> BatchOutcome:
        """Store ``documents``; ``started_at`` is a ``time.monotonic()`` reading."""
        total = len(documents)
        if total == 0:
            return BatchOutcome(documents_indexed=0)

        started = time.monotonic() if started_at is None else started_at
        batches = list(enumerate(partition(documents, self.batch_size), start=1))
        groups = partition(batches, self.concurrency)
        indexed = 0
        batches_done = 0
        last_logged = 0
        errors: List[IndexingError] = []
        failed_ids: List[str] = []

        self.logger.debug(
            "Storing %d document(s) in %d batch(es), concurrency %d",
            total,
            len(batches),
            self.concurrency,
        )
        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            for group_index, group in enumerate(groups):
                settled = self._run_group(executor, group)
                for batch_number, batch, exc in settled:
                    batches_done += 1
                    if exc is None:
                        indexed += len(batch)
                        continue
                    failed_ids.extend(document.id for document in batch)
                    errors.append(self._batch_error(batch_number, batch, exc))
                    self.logger.error("Batch %d failed: %s", batch_number, exc)

                is_final = group_index == len(groups) - 1
                self._emit_progress(files_processed, indexed, total)
                if is_final or batches_done - last_logged >= self.log_every:
                    last_logged = batches_done
                    self._log_rate(indexed, total, time.monotonic() - started)

        return BatchOutcome(documents_indexed=indexed, errors=errors, failed_ids=failed_ids)

    def _run_group(
        self,
        executor: ThreadPoolExecutor,
        group: Sequence[Tuple[int, List[EmbeddingDocument]]],
    ) -> List[Tuple[int, List[EmbeddingDocument], Optional[BaseException]]]:
        futures: List[Tuple[int, List[EmbeddingDocument], Future]] = []
        for number, batch in group:
            futures.append((number, batch, executor.submit(self.storage.add_documents, batch)))
        wait([future for _, _, future in futures], return_when=ALL_COMPLETED)
        return [(number, batch, future.exception()) for number, batch, future in futures]

    def _batch_error(
        self,
        batch_number: int,
        batch: Sequence[EmbeddingDocument],
        exc: BaseException,
    ) -> IndexingError:
        kind = "embedder" if isinstance(exc, EmbeddingError) else "storage"
        files = sorted({document.metadata.path for document in batch})
        return IndexingError(
            kind=kind,
            message=f"Batch {batch_number} ({len(batch)} document(s)) failed: {exc}",
            file=files[0] if len(files) == 1 else None,
            cause=exc,
        )

    def _emit_progress(self, files_processed: int, indexed: int, total: int) -> None:
        if self.on_progress is None:
            return
        self.on_progress(
            IndexProgress(
                phase="storing",
                files_processed=files_processed,
                total_files=files_processed,
                documents_indexed=indexed,
                total_documents=total,
                percent_complete=STORING_PERCENT_START + (indexed / total) * STORING_PERCENT_SPAN,
            )
        )

    def _log_rate(self, indexed: int, total: int, elapsed: float) -> None:
        eta = estimate_eta(indexed, total, elapsed)
        if eta is None:
            self.logger.info("Embedded %d/%d documents", indexed, total)
            return
        self.logger.info(
            "Embedded %d/%d documents (%d docs/sec, ETA: %s)",
            indexed,
            total,
            round(indexed / elapsed),
            format_eta(eta),
        )


__all__ = [
    "BatchController",
    "BatchOutcome",
    "estimate_eta",
    "format_eta",
    "partition",
]
