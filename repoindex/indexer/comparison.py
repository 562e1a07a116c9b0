"""Compare two statistics snapshots of the same repository."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Literal, Mapping, Optional, Tuple

from .types import DetailedIndexStats, LanguageStats, PackageStats

Trend = Literal["growing", "shrinking", "stable"]

# File count change beyond which a repository is considered growing or shrinking.
TREND_THRESHOLD = 10


@dataclass(frozen=True)
class NumericDiff:
    before: int
    after: int
    absolute: int
    percent: float


@dataclass(frozen=True)
class LanguageDiff:
    files: NumericDiff
    components: NumericDiff
    lines: NumericDiff


@dataclass(frozen=True)
class PackageDiff:
    files: NumericDiff
    components: NumericDiff


@dataclass(frozen=True)
class DiffSummary:
    languages_added: Tuple[str, ...]
    languages_removed: Tuple[str, ...]
    packages_added: Tuple[str, ...]
    packages_removed: Tuple[str, ...]
    overall_trend: Trend


@dataclass(frozen=True)
class StatsDiff:
    """Everything that changed between two snapshots.

    ``time_delta_ms`` is measured between the snapshots' ``end_time`` values
    and is negative when ``before`` is actually the later one.
    """

    files: NumericDiff
    documents: NumericDiff
    vectors: NumericDiff
    total_lines: NumericDiff
    languages: Dict[str, LanguageDiff]
    component_types: Dict[str, NumericDiff]
    packages: Dict[str, PackageDiff]
    time_delta_ms: int
    summary: DiffSummary


def numeric_diff(before: int, after: int) -> NumericDiff:
    """Absolute and percentage change; growth from zero counts as 100%."""
    absolute = after - before
    if before > 0:
        percent = absolute / before * 100
    elif after > 0:
        percent = 100.0
    else:
        percent = 0.0
    return NumericDiff(before=before, after=after, absolute=absolute, percent=round(percent, 2))


def _language_diff(before: Optional[LanguageStats], after: Optional[LanguageStats]) -> LanguageDiff:
    before = before or LanguageStats()
    after = after or LanguageStats()
    return LanguageDiff(
        files=numeric_diff(before.files, after.files),
        components=numeric_diff(before.components, after.components),
        lines=numeric_diff(before.lines, after.lines),
    )


def _package_diff(before: Optional[PackageStats], after: Optional[PackageStats]) -> PackageDiff:
    return PackageDiff(
        files=numeric_diff(before.files if before else 0, after.files if after else 0),
        components=numeric_diff(before.components if before else 0, after.components if after else 0),
    )


def _added_removed(before: Mapping[str, object], after: Mapping[str, object]) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    added = tuple(sorted(key for key in after if key not in before))
    removed = tuple(sorted(key for key in before if key not in after))
    return added, removed


def _trend(files: NumericDiff) -> Trend:
    if files.absolute > TREND_THRESHOLD:
        return "growing"
    if files.absolute < -TREND_THRESHOLD:
        return "shrinking"
    return "stable"


def compare_stats(before: DetailedIndexStats, after: DetailedIndexStats) -> StatsDiff:
    """Diff two snapshots; keys missing on one side count as zero."""
    before_languages = before.by_language or {}
    after_languages = after.by_language or {}
    before_types = before.by_component_type or {}
    after_types = after.by_component_type or {}
    before_packages = before.by_package or {}
    after_packages = after.by_package or {}

    files = numeric_diff(before.files_scanned, after.files_scanned)
    languages_added, languages_removed = _added_removed(before_languages, after_languages)
    packages_added, packages_removed = _added_removed(before_packages, after_packages)

    return StatsDiff(
        files=files,
        documents=numeric_diff(before.documents_indexed, after.documents_indexed),
        vectors=numeric_diff(before.vectors_stored, after.vectors_stored),
        total_lines=numeric_diff(
            sum(stats.lines for stats in before_languages.values()),
            sum(stats.lines for stats in after_languages.values()),
        ),
        languages={
            language: _language_diff(before_languages.get(language), after_languages.get(language))
            for language in sorted({*before_languages, *after_languages})
        },
        component_types={
            component_type: numeric_diff(before_types.get(component_type, 0), after_types.get(component_type, 0))
            for component_type in sorted({*before_types, *after_types})
        },
        packages={
            package: _package_diff(before_packages.get(package), after_packages.get(package))
            for package in sorted({*before_packages, *after_packages})
        },
        time_delta_ms=int((after.end_time - before.end_time).total_seconds() * 1000),
        summary=DiffSummary(
            languages_added=languages_added,
            languages_removed=languages_removed,
            packages_added=packages_added,
            packages_removed=packages_removed,
            overall_trend=_trend(files),
        ),
    )


def _signed_percent(diff: NumericDiff) -> str:
    return f"{'+' if diff.percent > 0 else ''}{diff.percent:g}%"


def format_diff_summary(diff: StatsDiff) -> str:
    """One line per notable change, always ending with the overall trend."""
    lines: List[str] = []
    if diff.files.absolute:
        direction = "added" if diff.files.absolute > 0 else "removed"
        lines.append(f"{direction} {abs(diff.files.absolute)} files ({_signed_percent(diff.files)})")
    if diff.total_lines.absolute:
        direction = "added" if diff.total_lines.absolute > 0 else "removed"
        lines.append(
            f"{direction} {abs(diff.total_lines.absolute):,} lines ({_signed_percent(diff.total_lines)})"
        )
    summary = diff.summary
    if summary.languages_added:
        lines.append(f"new languages: {', '.join(summary.languages_added)}")
    if summary.languages_removed:
        lines.append(f"removed languages: {', '.join(summary.languages_removed)}")
    if summary.packages_added:
        lines.append(f"new packages: {', '.join(summary.packages_added)}")
    if summary.packages_removed:
        lines.append(f"removed packages: {', '.join(summary.packages_removed)}")
    lines.append(f"trend: {summary.overall_trend}")
    return "\n".join(lines)


__all__ = [
    "DiffSummary",
    "LanguageDiff",
    "NumericDiff",
    "PackageDiff",
    "StatsDiff",
    "TREND_THRESHOLD",
    "compare_stats",
    "format_diff_summary",
    "numeric_diff",
]
