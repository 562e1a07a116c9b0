"""Pure functions that fold incremental stats into persisted repository stats.

None of these functions mutate their arguments; every result is a new mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence

from .stats_aggregator import DetailedStats
from .types import FileMetadata, LanguageStats, PackageStats


@dataclass(frozen=True)
class MergeableStats:
    """The breakdowns that can be merged incrementally."""

    by_language: Dict[str, LanguageStats] = field(default_factory=dict)
    by_component_type: Dict[str, int] = field(default_factory=dict)
    by_package: Dict[str, PackageStats] = field(default_factory=dict)


@dataclass(frozen=True)
class StatMergeInput:
    """Everything ``merge_stats`` needs for one incremental update."""

    current_stats: MergeableStats
    deleted_files: Sequence[FileMetadata] = ()
    changed_files: Sequence[FileMetadata] = ()
    incremental_stats: Optional[DetailedStats] = None


def merge_stats(merge_input: StatMergeInput) -> MergeableStats:
    """Combine persisted stats with the outcome of one incremental run.

    Deleted and changed files lose their recorded contribution and one file
    each from their language; the fresh counts for changed and added files
    then come from ``incremental_stats``.
    """
    current = merge_input.current_stats
    removed = [*merge_input.deleted_files, *merge_input.changed_files]

    by_language = _remove_language_contributions(current.by_language, removed)
    by_language = subtract_deleted_files(by_language, merge_input.deleted_files)
    by_language = subtract_changed_files(by_language, merge_input.changed_files)
    by_component_type = _remove_component_contributions(current.by_component_type, removed)
    by_package = _remove_package_contributions(current.by_package, removed)

    incremental = merge_input.incremental_stats
    if incremental is not None:
        by_language = add_incremental_language_stats(by_language, incremental.by_language)
        by_component_type = add_incremental_component_stats(
            by_component_type, incremental.by_component_type
        )
        by_package = add_incremental_package_stats(by_package, incremental.by_package)

    return MergeableStats(
        by_language=by_language,
        by_component_type=by_component_type,
        by_package=by_package,
    )


def subtract_deleted_files(
    stats: Mapping[str, LanguageStats],
    deleted_files: Sequence[FileMetadata],
) -> Dict[str, LanguageStats]:
    """Decrement the file count of each deleted file's language.

    Languages left without files are dropped. Component and line counts are
    not touched here.
    """
    result = dict(stats)
    for metadata in deleted_files:
        language_stats = result.get(metadata.language)
        if language_stats is None:
            continue
        files = max(0, language_stats.files - 1)
        if files == 0:
            del result[metadata.language]
        else:
            result[metadata.language] = LanguageStats(
                files=files,
                components=language_stats.components,
                lines=language_stats.lines,
            )
    return result


def subtract_changed_files(
    stats: Mapping[str, LanguageStats],
    changed_files: Sequence[FileMetadata],
) -> Dict[str, LanguageStats]:
    """Remove the old file count of changed files; they are re-added by the incremental stats."""
    return subtract_deleted_files(stats, changed_files)


def add_incremental_language_stats(
    current_stats: Mapping[str, LanguageStats],
    incremental_stats: Mapping[str, Any],
) -> Dict[str, LanguageStats]:
    result = dict(current_stats)
    for language, stats in incremental_stats.items():
        if not isinstance(stats, LanguageStats) or not _all_counts(
            stats.files, stats.components, stats.lines
        ):
            continue
        existing = result.get(language)
        if existing is None:
            result[language] = LanguageStats(
                files=stats.files, components=stats.components, lines=stats.lines
            )
        else:
            result[language] = LanguageStats(
                files=existing.files + stats.files,
                components=existing.components + stats.components,
                lines=existing.lines + stats.lines,
            )
    return result


def add_incremental_component_stats(
    current_stats: Mapping[str, int],
    incremental_stats: Mapping[str, Any],
) -> Dict[str, int]:
    result = dict(current_stats)
    for component_type, count in incremental_stats.items():
        if not _is_count(count):
            continue
        result[component_type] = result.get(component_type, 0) + count
    return result


def add_incremental_package_stats(
    current_stats: Mapping[str, PackageStats],
    incremental_stats: Mapping[str, Any],
) -> Dict[str, PackageStats]:
    result = dict(current_stats)
    for package_path, stats in incremental_stats.items():
        if not isinstance(stats, PackageStats) or not _all_counts(stats.files, stats.components):
            continue
        existing = result.get(package_path)
        if existing is None:
            result[package_path] = PackageStats(
                name=stats.name,
                path=stats.path,
                files=stats.files,
                components=stats.components,
                languages={k: v for k, v in stats.languages.items() if _is_count(v)},
            )
            continue
        languages = dict(existing.languages)
        for language, count in stats.languages.items():
            if _is_count(count):
                languages[language] = languages.get(language, 0) + count
        result[package_path] = PackageStats(
            name=existing.name,
            path=existing.path,
            files=existing.files + stats.files,
            components=existing.components + stats.components,
            languages=languages,
        )
    return result


def _remove_language_contributions(
    stats: Mapping[str, LanguageStats],
    files: Sequence[FileMetadata],
) -> Dict[str, LanguageStats]:
    result = dict(stats)
    for metadata in files:
        language_stats = result.get(metadata.language)
        if language_stats is None or not (metadata.components or metadata.lines):
            continue
        result[metadata.language] = LanguageStats(
            files=language_stats.files,
            components=max(0, language_stats.components - metadata.components),
            lines=max(0, language_stats.lines - metadata.lines),
        )
    return result


def _remove_component_contributions(
    stats: Mapping[str, int],
    files: Sequence[FileMetadata],
) -> Dict[str, int]:
    result = dict(stats)
    for metadata in files:
        for component_type, count in metadata.component_types.items():
            if component_type not in result:
                continue
            remaining = result[component_type] - count
            if remaining > 0:
                result[component_type] = remaining
            else:
                del result[component_type]
    return result


def _remove_package_contributions(
    stats: Mapping[str, PackageStats],
    files: Sequence[FileMetadata],
) -> Dict[str, PackageStats]:
    result = dict(stats)
    for metadata in files:
        if metadata.package is None or metadata.package not in result:
            continue
        package = result[metadata.package]
        languages = dict(package.languages)
        if metadata.language in languages:
            remaining = languages[metadata.language] - metadata.components
            if remaining > 0:
                languages[metadata.language] = remaining
            else:
                del languages[metadata.language]
        result[metadata.package] = PackageStats(
            name=package.name,
            path=package.path,
            files=max(0, package.files - 1),
            components=max(0, package.components - metadata.components),
            languages=languages,
        )
    return result


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _all_counts(*values: object) -> bool:
    return all(_is_count(value) for value in values)


__all__ = [
    "MergeableStats",
    "StatMergeInput",
    "add_incremental_component_stats",
    "add_incremental_language_stats",
    "add_incremental_package_stats",
    "merge_stats",
    "subtract_changed_files",
    "subtract_deleted_files",
]
