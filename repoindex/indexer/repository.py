"""Repository indexer: full and incremental indexing runs."""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..concurrency import optimal_concurrency
from ..config import IndexerConfig
from ..logging import get_logger
from ..models import Document, ScanResult, Scanner, SearchOptions, SearchResult, VectorBackend
from ..packages import discover_packages
from ..scanner import RepoScanner
from ..vector import VectorStorage
from .batching import BatchController
from .change_detector import ChangeDetector, ChangeSet, hash_file
from .documents import prepare_documents_for_embedding
from .state import INDEXER_VERSION, load_state, save_state
from .stats_aggregator import DetailedStats, StatsAggregator
from .stats_merger import (
    MergeableStats,
    StatMergeInput,
    add_incremental_component_stats,
    add_incremental_language_stats,
    add_incremental_package_stats,
    merge_stats,
)
from .types import (
    DetailedIndexStats,
    FileMetadata,
    IndexerState,
    IndexerStats,
    IndexingError,
    IndexOptions,
    IndexProgress,
    LanguageStats,
    PackageStats,
    ProgressCallback,
    ProgressPhase,
    ScanFailedError,
    StatsMetadata,
    UpdateOptions,
)

# Incremental updates after which the merged breakdowns are flagged as possibly stale.
STALE_STATS_THRESHOLD = 10


def _now() -> datetime:
    return datetime.now(UTC)


class RepositoryIndexer:
    """Drives scanning, embedding and storage for one repository.

    ``index`` rebuilds everything from a fresh scan; ``update`` re-indexes
    only files that changed since the persisted state was written and merges
    the statistics incrementally. Callers must not run ``index``/``update``
    concurrently against the same state file.
    """

    def __init__(
        self,
        config: IndexerConfig,
        *,
        scanner: Scanner | None = None,
        vector_storage: VectorBackend | None = None,
        concurrency: int | None = None,
    ) -> None:
        self.config = config
        self.scanner: Scanner = scanner or RepoScanner()
        self.vector_storage: VectorBackend = vector_storage or VectorStorage(
            config.vector_store_path,
            model_name=config.embedding_model,
            dimension=config.embedding_dimension,
        )
        self.logger = get_logger("indexer")
        self._concurrency = concurrency
        self._state: Optional[IndexerState] = None
        self._state_is_stale = False

    @property
    def repository_path(self) -> Path:
        return self.config.repository_path

    @property
    def state(self) -> Optional[IndexerState]:
        return self._state

    # Lifecycle -----------------------------------------------------------

    def initialize(self) -> None:
        """Initialize the vector backend and load any persisted state."""
        self.vector_storage.initialize()
        self._state = load_state(self.config.state_path)
        self._state_is_stale = False
        if self._state is None:
            self.logger.debug("No usable indexer state at %s", self.config.state_path)
            return

        if (
            self._state.embedding_model != self.config.embedding_model
            or self._state.embedding_dimension != self.config.embedding_dimension
        ):
            self.logger.warning(
                "Indexer state was built with %s (%d dims) but %s (%d dims) is configured; "
                "the next update will run a full index.",
                self._state.embedding_model,
                self._state.embedding_dimension,
                self.config.embedding_model,
                self.config.embedding_dimension,
            )
            self._state_is_stale = True

    def close(self) -> None:
        self.vector_storage.close()

    # Operations ----------------------------------------------------------

    def index(self, options: IndexOptions | None = None) -> DetailedIndexStats:
        """Scan and index the whole repository, replacing the previous state."""
        options = options or IndexOptions()
        start_time = _now()
        started = time.monotonic()
        errors: List[IndexingError] = []
        on_progress = options.on_progress
        exclude = self._exclude_patterns(options)
        languages = self._languages(options)

        self.logger.info("Indexing %s", self.repository_path)
        self._emit(on_progress, "scanning", 0, 0, 0, 0.0)
        scan_result = self._scan(errors, exclude=exclude, languages=languages)
        files_scanned = scan_result.stats.files_scanned
        documents = scan_result.documents

        aggregator = self._new_aggregator(exclude)
        for document in documents:
            aggregator.add_document(document)

        self.logger.info("Preparing %d document(s) for embedding", len(documents))
        self._emit(on_progress, "embedding", files_scanned, files_scanned, 0, 33.0)
        embedding_documents = prepare_documents_for_embedding(documents)

        leftovers = self._delete_superseded(documents, errors)

        self._emit(
            on_progress, "storing", files_scanned, files_scanned, 0, 66.0, total_documents=len(documents)
        )
        outcome = self._controller(options, on_progress).run(
            embedding_documents, files_processed=files_scanned, started_at=started
        )
        errors.extend(outcome.errors)

        detailed = aggregator.get_detailed_stats()
        end_time = _now()
        files = self._build_file_metadata(
            documents,
            set(outcome.failed_ids),
            aggregator,
            errors,
            end_time,
            previously_stored=self._previous_ids(),
        )
        detailed = self._retain_leftovers(files, leftovers, detailed)

        self._persist_vectors()
        self._state = IndexerState(
            version=INDEXER_VERSION,
            embedding_model=self.config.embedding_model,
            embedding_dimension=self.config.embedding_dimension,
            repository_path=str(self.repository_path),
            last_index_time=end_time,
            files=files,
            stats=self._aggregate_stats(
                files, detailed.by_language, detailed.by_component_type, detailed.by_package
            ),
            last_update=end_time,
            incremental_updates_since=0,
        )
        self._state_is_stale = False
        save_state(self.config.state_path, self._state)

        self._emit(
            on_progress,
            "complete",
            files_scanned,
            files_scanned,
            outcome.documents_indexed,
            100.0,
            total_documents=len(documents),
        )
        duration_ms = int((time.monotonic() - started) * 1000)
        self.logger.info(
            "Indexed %d/%d document(s) from %d file(s) in %d ms (%d error(s))",
            outcome.documents_indexed,
            len(documents),
            files_scanned,
            duration_ms,
            len(errors),
        )
        return DetailedIndexStats(
            files_scanned=files_scanned,
            documents_extracted=len(documents),
            documents_indexed=outcome.documents_indexed,
            vectors_stored=outcome.documents_indexed,
            duration_ms=duration_ms,
            errors=tuple(errors),
            start_time=start_time,
            end_time=end_time,
            repository_path=str(self.repository_path),
            stats_metadata=self._stats_metadata(self._state, incremental=False),
            by_language=detailed.by_language,
            by_component_type=detailed.by_component_type,
            by_package=detailed.by_package,
        )

    def update(self, options: UpdateOptions | None = None) -> DetailedIndexStats:
        """Re-index changed and added files and drop deleted ones.

        Falls back to ``index`` when there is no prior state or the state was
        built with a different embedding model.
        """
        options = options or UpdateOptions()
        if self._state is None:
            self.logger.info("No previous index state; running a full index")
            return self.index(options)
        if self._state_is_stale:
            self.logger.warning("Indexer state does not match the embedding configuration; running a full index")
            return self.index(options)

        state = self._state
        start_time = _now()
        started = time.monotonic()
        errors: List[IndexingError] = []
        on_progress = options.on_progress
        exclude = self._exclude_patterns(options)
        languages = self._languages(options)

        self._emit(on_progress, "scanning", 0, 0, 0, 0.0)
        changes = self._detect_changes(state, options, errors, exclude=exclude, languages=languages)
        if changes.is_empty:
            self.logger.info("Index is up to date")
            end_time = _now()
            return DetailedIndexStats(
                files_scanned=0,
                documents_extracted=0,
                documents_indexed=0,
                vectors_stored=0,
                duration_ms=int((time.monotonic() - started) * 1000),
                errors=(),
                start_time=start_time,
                end_time=end_time,
                repository_path=str(self.repository_path),
                stats_metadata=self._stats_metadata(state, incremental=True),
            )

        self.logger.info(
            "Updating index: %d changed, %d added, %d deleted",
            len(changes.changed),
            len(changes.added),
            len(changes.deleted),
        )

        # Re-scan before touching the vector store so a scanner failure leaves everything intact.
        reindex = changes.to_reindex
        scan_result: Optional[ScanResult] = None
        if reindex:
            scan_result = self._scan(errors, include=reindex, exclude=exclude, languages=languages)

        files = dict(state.files)
        removed_deleted = self._remove_deleted(files, changes.deleted, errors)
        removed_changed, skipped = self._purge_changed(files, changes.changed, errors)

        documents = [
            document
            for document in (scan_result.documents if scan_result else [])
            if document.metadata.file not in skipped
        ]
        files_scanned = scan_result.stats.files_scanned if scan_result else 0

        aggregator = self._new_aggregator(exclude)
        for document in documents:
            aggregator.add_document(document)
        incremental = aggregator.get_detailed_stats()

        self._emit(on_progress, "embedding", files_scanned, files_scanned, 0, 33.0)
        embedding_documents = prepare_documents_for_embedding(documents)
        self._emit(
            on_progress, "storing", files_scanned, files_scanned, 0, 66.0, total_documents=len(documents)
        )
        outcome = self._controller(options, on_progress).run(
            embedding_documents, files_processed=files_scanned, started_at=started
        )
        errors.extend(outcome.errors)

        end_time = _now()
        reindexed = self._build_file_metadata(documents, set(outcome.failed_ids), aggregator, errors, end_time)
        for metadata in removed_changed:
            if metadata.path not in reindexed:
                # The file no longer yields documents; its old vectors are already gone.
                files.pop(metadata.path, None)
        files.update(reindexed)

        merged = merge_stats(
            StatMergeInput(
                current_stats=MergeableStats(
                    by_language=dict(state.stats.by_language or {}),
                    by_component_type=dict(state.stats.by_component_type or {}),
                    by_package=dict(state.stats.by_package or {}),
                ),
                deleted_files=removed_deleted,
                changed_files=removed_changed,
                incremental_stats=incremental,
            )
        )

        state.files = files
        state.stats = self._aggregate_stats(
            files, merged.by_language, merged.by_component_type, merged.by_package
        )
        state.last_update = end_time
        state.incremental_updates_since += 1
        self._persist_vectors()
        save_state(self.config.state_path, state)

        affected = sorted(
            {metadata.language for metadata in (*removed_deleted, *removed_changed)}
            | set(incremental.by_language)
        )
        self._emit(
            on_progress,
            "complete",
            files_scanned,
            files_scanned,
            outcome.documents_indexed,
            100.0,
            total_documents=len(documents),
        )
        duration_ms = int((time.monotonic() - started) * 1000)
        self.logger.info(
            "Updated %d file(s): %d document(s) indexed, %d removed in %d ms (%d error(s))",
            len(changes.touched),
            outcome.documents_indexed,
            len(removed_deleted),
            duration_ms,
            len(errors),
        )
        return DetailedIndexStats(
            files_scanned=files_scanned,
            documents_extracted=len(documents),
            documents_indexed=outcome.documents_indexed,
            vectors_stored=outcome.documents_indexed,
            duration_ms=duration_ms,
            errors=tuple(errors),
            start_time=start_time,
            end_time=end_time,
            repository_path=str(self.repository_path),
            stats_metadata=self._stats_metadata(state, incremental=True, affected_languages=affected),
            by_language=incremental.by_language,
            by_component_type=incremental.by_component_type,
            by_package=incremental.by_package,
        )

    def search(self, query: str, options: SearchOptions | None = None) -> List[SearchResult]:
        return self.vector_storage.search(query, options)

    def get_stats(self) -> Optional[DetailedIndexStats]:
        """Return the persisted aggregate view, or ``None`` before the first index."""
        state = self._state
        if state is None:
            return None
        stats = state.stats
        return DetailedIndexStats(
            files_scanned=stats.total_files,
            documents_extracted=stats.total_documents,
            documents_indexed=stats.total_vectors,
            vectors_stored=stats.total_vectors,
            duration_ms=0,
            errors=(),
            start_time=state.last_index_time,
            end_time=state.last_update or state.last_index_time,
            repository_path=state.repository_path,
            stats_metadata=self._stats_metadata(state, incremental=state.incremental_updates_since > 0),
            by_language=dict(stats.by_language) if stats.by_language is not None else None,
            by_component_type=dict(stats.by_component_type) if stats.by_component_type is not None else None,
            by_package=dict(stats.by_package) if stats.by_package is not None else None,
        )

    # Helpers ---------------------------------------------------------------

    def _exclude_patterns(self, options: IndexOptions) -> List[str]:
        return [*self.config.exclude_patterns, *options.exclude_patterns]

    def _languages(self, options: IndexOptions) -> List[str]:
        selected = options.languages or self.config.languages
        return [language.lower() for language in selected]

    def _controller(self, options: IndexOptions, on_progress: Optional[ProgressCallback]) -> BatchController:
        concurrency = self._concurrency or optimal_concurrency("indexer")
        return BatchController(
            self.vector_storage,
            batch_size=options.batch_size or self.config.batch_size,
            concurrency=concurrency,
            logger=self.logger,
            on_progress=on_progress,
        )

    def _new_aggregator(self, exclude: Sequence[str]) -> StatsAggregator:
        aggregator = StatsAggregator()
        for package_path, package_name in discover_packages(self.repository_path, exclude).items():
            aggregator.register_package(package_path, package_name)
        return aggregator

    def _scan(
        self,
        errors: List[IndexingError],
        *,
        include: Optional[Sequence[str]] = None,
        exclude: Sequence[str] = (),
        languages: Sequence[str] = (),
    ) -> ScanResult:
        try:
            result = self.scanner.scan(
                str(self.repository_path),
                include=list(include) if include is not None else None,
                exclude=list(exclude),
                languages=list(languages) or None,
            )
        except Exception as exc:
            message = f"Indexing failed: {exc}"
            errors.append(IndexingError(kind="scanner", message=message, cause=exc))
            self.logger.error("Scanning %s failed: %s", self.repository_path, exc)
            raise ScanFailedError(message, errors) from exc

        for scan_error in result.stats.errors:
            location = f"{scan_error.file}:{scan_error.line}" if scan_error.line else scan_error.file
            self.logger.warning("Skipped %s: %s", location, scan_error.error)
            errors.append(IndexingError(kind="scanner", message=scan_error.error, file=scan_error.file))
        return result

    def _detect_changes(
        self,
        state: IndexerState,
        options: UpdateOptions,
        errors: List[IndexingError],
        *,
        exclude: Sequence[str],
        languages: Sequence[str],
    ) -> ChangeSet:
        detector = ChangeDetector(self.repository_path, self.scanner)
        try:
            return detector.detect(
                state.files,
                since=options.since,
                force=options.force,
                exclude=exclude,
                languages=languages,
            )
        except Exception as exc:
            message = f"Change detection failed: {exc}"
            errors.append(IndexingError(kind="scanner", message=message, cause=exc))
            self.logger.error("Change detection for %s failed: %s", self.repository_path, exc)
            raise ScanFailedError(message, errors) from exc

    def _remove_deleted(
        self,
        files: Dict[str, FileMetadata],
        deleted: Iterable[str],
        errors: List[IndexingError],
    ) -> List[FileMetadata]:
        """Drop vectors of deleted files; a file whose vectors cannot be dropped stays tracked."""
        removed: List[FileMetadata] = []
        for path in deleted:
            metadata = files[path]
            if metadata.document_ids and not self._delete_ids(
                metadata.document_ids, path, f"Failed to delete documents for removed file {path}", errors
            ):
                continue
            del files[path]
            removed.append(metadata)
        return removed

    def _purge_changed(
        self,
        files: Dict[str, FileMetadata],
        changed: Iterable[str],
        errors: List[IndexingError],
    ) -> tuple[List[FileMetadata], Set[str]]:
        """Drop old vectors of changed files; returns purged metadata and files to skip."""
        purged: List[FileMetadata] = []
        skipped: Set[str] = set()
        for path in changed:
            metadata = files[path]
            if metadata.document_ids and not self._delete_ids(
                metadata.document_ids, path, f"Failed to delete old documents for {path}", errors
            ):
                skipped.add(path)
                continue
            purged.append(metadata)
        return purged, skipped

    def _delete_ids(
        self,
        ids: Sequence[str],
        path: Optional[str],
        message: str,
        errors: List[IndexingError],
    ) -> bool:
        try:
            self.vector_storage.delete_documents(list(ids))
        except Exception as exc:
            errors.append(IndexingError(kind="storage", message=f"{message}: {exc}", file=path, cause=exc))
            self.logger.error("%s: %s", message, exc)
            return False
        return True

    def _previous_ids(self) -> Set[str]:
        if self._state is None:
            return set()
        return {doc_id for metadata in self._state.files.values() for doc_id in metadata.document_ids}

    def _persist_vectors(self) -> None:
        """Flush the vector backend so the saved state never claims unwritten vectors."""
        self.vector_storage.persist()

    def _delete_superseded(
        self,
        documents: Sequence[Document],
        errors: List[IndexingError],
    ) -> Dict[str, FileMetadata]:
        """Delete ids from the previous state that the new scan no longer produces.

        Returns the previous metadata of files whose leftover ids could not be
        deleted, restricted to those ids.
        """
        if self._state is None:
            return {}
        current_ids = {document.id for document in documents}
        leftovers: Dict[str, FileMetadata] = {}
        for path, metadata in self._state.files.items():
            stale = [doc_id for doc_id in metadata.document_ids if doc_id not in current_ids]
            if not stale:
                continue
            if not self._delete_ids(stale, path, f"Failed to delete superseded documents for {path}", errors):
                leftovers[path] = replace(metadata, document_ids=stale)
        return leftovers

    def _retain_leftovers(
        self,
        files: Dict[str, FileMetadata],
        leftovers: Mapping[str, FileMetadata],
        detailed: DetailedStats,
    ) -> DetailedStats:
        """Keep ids that could not be deleted tracked so the next update retries them."""
        if not leftovers:
            return detailed
        by_language = detailed.by_language
        by_component_type = detailed.by_component_type
        by_package = detailed.by_package
        for path, leftover in leftovers.items():
            current = files.get(path)
            if current is not None:
                # An empty hash marks the file as changed for the next update.
                files[path] = replace(
                    current, hash="", document_ids=[*current.document_ids, *leftover.document_ids]
                )
                continue
            package = leftover.package if leftover.package in by_package else None
            files[path] = replace(leftover, hash="", package=package)
            by_language = add_incremental_language_stats(
                by_language,
                {leftover.language: LanguageStats(files=1, components=leftover.components, lines=leftover.lines)},
            )
            by_component_type = add_incremental_component_stats(by_component_type, leftover.component_types)
            if package is not None:
                by_package = add_incremental_package_stats(
                    by_package,
                    {
                        package: PackageStats(
                            name=by_package[package].name,
                            path=package,
                            files=1,
                            components=leftover.components,
                            languages={leftover.language: leftover.components},
                        )
                    },
                )
        return DetailedStats(by_language=by_language, by_component_type=by_component_type, by_package=by_package)

    def _build_file_metadata(
        self,
        documents: Sequence[Document],
        failed_ids: Set[str],
        aggregator: StatsAggregator,
        errors: List[IndexingError],
        indexed_at: datetime,
        *,
        previously_stored: AbstractSet[str] = frozenset(),
    ) -> Dict[str, FileMetadata]:
        """Track each scanned file with the ids now present in the vector store.

        A failed id that was stored by an earlier run still has its old vector,
        so it stays tracked; any failure empties the hash so the next update
        purges and re-adds the file.
        """
        by_file: Dict[str, List[Document]] = {}
        for document in documents:
            by_file.setdefault(document.metadata.file, []).append(document)

        files: Dict[str, FileMetadata] = {}
        for path, file_documents in by_file.items():
            full_path = self.repository_path / path
            try:
                stat_result = full_path.stat()
                file_hash = hash_file(full_path)
                size = stat_result.st_size
                last_modified = datetime.fromtimestamp(stat_result.st_mtime, UTC)
            except OSError as exc:
                # Tracked with an empty hash so the next update re-checks it.
                errors.append(
                    IndexingError(
                        kind="filesystem", message=f"Failed to read {path}: {exc}", file=path, cause=exc
                    )
                )
                file_hash, size, last_modified = "", 0, indexed_at

            stored_ids = [
                document.id
                for document in file_documents
                if document.id not in failed_ids or document.id in previously_stored
            ]
            if any(document.id in failed_ids for document in file_documents):
                file_hash = ""
            files[path] = FileMetadata(
                path=path,
                hash=file_hash,
                last_modified=last_modified,
                last_indexed=indexed_at,
                document_ids=stored_ids,
                size=size,
                language=file_documents[0].language,
                components=len(file_documents),
                lines=sum(d.metadata.end_line - d.metadata.start_line + 1 for d in file_documents),
                component_types=dict(Counter(document.type for document in file_documents)),
                package=aggregator.package_for_file(path),
            )
        return files

    @staticmethod
    def _aggregate_stats(
        files: Mapping[str, FileMetadata],
        by_language: Mapping[str, LanguageStats],
        by_component_type: Mapping[str, int],
        by_package: Mapping[str, PackageStats],
    ) -> IndexerStats:
        return IndexerStats(
            total_files=len(files),
            total_documents=sum(metadata.components for metadata in files.values()),
            total_vectors=sum(len(metadata.document_ids) for metadata in files.values()),
            by_language=dict(by_language),
            by_component_type=dict(by_component_type),
            by_package=dict(by_package),
        )

    @staticmethod
    def _stats_metadata(
        state: IndexerState,
        *,
        incremental: bool,
        affected_languages: Sequence[str] = (),
    ) -> StatsMetadata:
        warning = None
        if state.incremental_updates_since >= STALE_STATS_THRESHOLD:
            warning = (
                f"Detailed stats reflect {state.incremental_updates_since} incremental updates "
                "since the last full index; run a full index to refresh them."
            )
        return StatsMetadata(
            is_incremental=incremental,
            last_full_index=state.last_index_time,
            last_update=state.last_update or state.last_index_time,
            incremental_updates_since=state.incremental_updates_since,
            affected_languages=tuple(affected_languages),
            warning=warning,
        )

    @staticmethod
    def _emit(
        callback: Optional[ProgressCallback],
        phase: ProgressPhase,
        files_processed: int,
        total_files: int,
        documents_indexed: int,
        percent_complete: float,
        *,
        total_documents: Optional[int] = None,
    ) -> None:
        if callback is None:
            return
        callback(
            IndexProgress(
                phase=phase,
                files_processed=files_processed,
                total_files=total_files,
                documents_indexed=documents_indexed,
                percent_complete=percent_complete,
                total_documents=total_documents,
            )
        )


__all__ = ["STALE_STATS_THRESHOLD", "RepositoryIndexer"]
