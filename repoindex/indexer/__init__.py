"""Incremental indexing engine."""

from .change_detector import ChangeDetector, ChangeSet, hash_file
from .comparison import StatsDiff, compare_stats, format_diff_summary
from .export import export_stats_as_csv, export_stats_as_json, export_stats_as_markdown
from .repository import RepositoryIndexer
from .state import INDEXER_VERSION, load_state, save_state
from .stats_aggregator import StatsAggregator
from .stats_merger import StatMergeInput, merge_stats
from .types import (
    DetailedIndexStats,
    FileMetadata,
    IndexerState,
    IndexingError,
    IndexOptions,
    IndexProgress,
    IndexStats,
    LanguageStats,
    PackageStats,
    ScanFailedError,
    StatsMetadata,
    UpdateOptions,
)

__all__ = [
    "ChangeDetector",
    "ChangeSet",
    "DetailedIndexStats",
    "FileMetadata",
    "INDEXER_VERSION",
    "IndexOptions",
    "IndexProgress",
    "IndexStats",
    "IndexerState",
    "IndexingError",
    "LanguageStats",
    "PackageStats",
    "RepositoryIndexer",
    "ScanFailedError",
    "StatMergeInput",
    "StatsAggregator",
    "StatsDiff",
    "StatsMetadata",
    "UpdateOptions",
    "compare_stats",
    "export_stats_as_csv",
    "export_stats_as_json",
    "export_stats_as_markdown",
    "format_diff_summary",
    "hash_file",
    "load_state",
    "save_state",
]
