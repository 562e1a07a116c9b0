"""Types shared by the repository indexer and its helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Callable, Dict, List, Literal, Optional, Sequence, Tuple

ErrorKind = Literal["scanner", "embedder", "storage", "filesystem"]
ProgressPhase = Literal["scanning", "embedding", "storing", "complete"]


@dataclass(frozen=True)
class LanguageStats:
    """Aggregate counts for one language."""

    files: int = 0
    components: int = 0
    lines: int = 0


@dataclass(frozen=True)
class PackageStats:
    """Aggregate counts for one registered package or workspace."""

    name: str
    path: str
    files: int = 0
    components: int = 0
    languages: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class IndexingError:
    """A classified failure recorded during an indexing run."""

    kind: ErrorKind
    message: str
    file: Optional[str] = None
    cause: Optional[BaseException] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class ScanFailedError(RuntimeError):
    """Raised when the repository itself cannot be scanned."""

    def __init__(self, message: str, errors: Sequence[IndexingError]) -> None:
        super().__init__(message)
        self.errors: List[IndexingError] = list(errors)


@dataclass(frozen=True)
class IndexProgress:
    """Progress snapshot handed to ``on_progress`` callbacks."""

    phase: ProgressPhase
    files_processed: int
    total_files: int
    documents_indexed: int
    percent_complete: float
    total_documents: Optional[int] = None
    current_file: Optional[str] = None


ProgressCallback = Callable[[IndexProgress], None]


@dataclass(frozen=True)
class IndexOptions:
    """Per-call options for ``index``."""

    batch_size: Optional[int] = None
    exclude_patterns: Sequence[str] = ()
    languages: Sequence[str] = ()
    force: bool = False
    on_progress: Optional[ProgressCallback] = None


@dataclass(frozen=True)
class UpdateOptions(IndexOptions):
    """Per-call options for ``update``; ``since`` bounds the modification time."""

    since: Optional[datetime] = None


@dataclass(frozen=True)
class StatsMetadata:
    """Freshness information for the aggregate breakdowns."""

    is_incremental: bool
    last_full_index: datetime
    last_update: datetime
    incremental_updates_since: int
    affected_languages: Tuple[str, ...] = ()
    warning: Optional[str] = None


@dataclass(frozen=True)
class IndexStats:
    """Result record for one ``index`` or ``update`` call."""

    files_scanned: int
    documents_extracted: int
    documents_indexed: int
    vectors_stored: int
    duration_ms: int
    errors: Tuple[IndexingError, ...]
    start_time: datetime
    end_time: datetime
    repository_path: str
    stats_metadata: Optional[StatsMetadata] = None


@dataclass(frozen=True)
class DetailedIndexStats(IndexStats):
    """``IndexStats`` plus language, component type and package breakdowns."""

    by_language: Optional[Dict[str, LanguageStats]] = None
    by_component_type: Optional[Dict[str, int]] = None
    by_package: Optional[Dict[str, PackageStats]] = None


@dataclass(frozen=True)
class FileMetadata:
    """Ledger entry for one indexed file.

    ``components``, ``lines``, ``component_types`` and ``package`` record the
    file's own contribution to the aggregate stats so an incremental merge can
    remove it exactly when the file changes or disappears.
    """

    path: str
    hash: str
    last_modified: datetime
    last_indexed: datetime
    document_ids: List[str]
    size: int
    language: str
    components: int = 0
    lines: int = 0
    component_types: Dict[str, int] = field(default_factory=dict)
    package: Optional[str] = None


@dataclass
class IndexerStats:
    """Aggregate statistics persisted with the indexer state."""

    total_files: int = 0
    total_documents: int = 0
    total_vectors: int = 0
    by_language: Optional[Dict[str, LanguageStats]] = None
    by_component_type: Optional[Dict[str, int]] = None
    by_package: Optional[Dict[str, PackageStats]] = None


@dataclass
class IndexerState:
    """Persisted snapshot of indexing progress for one repository."""

    version: str
    embedding_model: str
    embedding_dimension: int
    repository_path: str
    last_index_time: datetime
    files: Dict[str, FileMetadata] = field(default_factory=dict)
    stats: IndexerStats = field(default_factory=IndexerStats)
    last_update: Optional[datetime] = None
    incremental_updates_since: int = 0


__all__ = [
    "DetailedIndexStats",
    "ErrorKind",
    "FileMetadata",
    "IndexOptions",
    "IndexProgress",
    "IndexStats",
    "IndexerState",
    "IndexerStats",
    "IndexingError",
    "LanguageStats",
    "PackageStats",
    "ProgressCallback",
    "ProgressPhase",
    "ScanFailedError",
    "StatsMetadata",
    "UpdateOptions",
]
