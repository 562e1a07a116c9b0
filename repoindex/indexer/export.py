"""Render index statistics as JSON, CSV or Markdown for reports and dashboards."""

from __future__ import annotations

import csv
import io
import json
from dataclasses import asdict
from typing import Any, Dict, List, Mapping

from .types import DetailedIndexStats, LanguageStats, PackageStats

CSV_HEADER = ("category", "subcategory", "metric", "value")


def export_stats_as_json(
    stats: DetailedIndexStats,
    *,
    pretty: bool = True,
    include_metadata: bool = True,
    include_details: bool = True,
) -> str:
    data: Dict[str, Any] = {
        "files_scanned": stats.files_scanned,
        "documents_extracted": stats.documents_extracted,
        "documents_indexed": stats.documents_indexed,
        "vectors_stored": stats.vectors_stored,
        "duration_ms": stats.duration_ms,
        "repository_path": stats.repository_path,
    }
    metadata = stats.stats_metadata
    if include_metadata and metadata is not None:
        data["metadata"] = {
            "is_incremental": metadata.is_incremental,
            "last_full_index": metadata.last_full_index.isoformat(),
            "last_update": metadata.last_update.isoformat(),
            "incremental_updates_since": metadata.incremental_updates_since,
            "warning": metadata.warning,
        }
    if include_details:
        if stats.by_language is not None:
            data["by_language"] = {name: asdict(value) for name, value in stats.by_language.items()}
        if stats.by_component_type is not None:
            data["by_component_type"] = dict(stats.by_component_type)
        if stats.by_package is not None:
            data["by_package"] = {path: asdict(value) for path, value in stats.by_package.items()}
    return json.dumps(data, indent=2 if pretty else None, sort_keys=True)


def export_stats_as_csv(stats: DetailedIndexStats) -> str:
    """Flatten the snapshot into ``category,subcategory,metric,value`` rows.

    Values containing commas are quoted by the csv writer.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    writer.writerows(
        [
            ("overview", "files", "total", stats.files_scanned),
            ("overview", "documents", "total", stats.documents_indexed),
            ("overview", "vectors", "total", stats.vectors_stored),
            ("overview", "duration", "milliseconds", stats.duration_ms),
        ]
    )
    for language, language_stats in sorted((stats.by_language or {}).items()):
        writer.writerow(("language", language, "files", language_stats.files))
        writer.writerow(("language", language, "components", language_stats.components))
        writer.writerow(("language", language, "lines", language_stats.lines))
    for component_type, count in sorted((stats.by_component_type or {}).items()):
        writer.writerow(("component", component_type, "count", count))
    for _, package in sorted((stats.by_package or {}).items()):
        writer.writerow(("package", package.name, "files", package.files))
        writer.writerow(("package", package.name, "components", package.components))
    return buffer.getvalue()


def export_language_stats_as_markdown(by_language: Mapping[str, LanguageStats]) -> str:
    lines = [
        "| Language | Files | Components | Lines |",
        "|----------|-------|------------|-------|",
    ]
    for language, stats in sorted(by_language.items()):
        lines.append(f"| {language} | {stats.files} | {stats.components} | {stats.lines:,} |")
    return "\n".join(lines)


def export_package_stats_as_markdown(by_package: Mapping[str, PackageStats]) -> str:
    lines = [
        "| Package | Path | Files | Components |",
        "|---------|------|-------|------------|",
    ]
    for path, stats in sorted(by_package.items()):
        lines.append(f"| {stats.name} | {path} | {stats.files} | {stats.components} |")
    return "\n".join(lines)


def export_stats_as_markdown(stats: DetailedIndexStats) -> str:
    """Overview table followed by the language and package tables that have rows."""
    sections: List[str] = [
        f"# Index statistics for {stats.repository_path}",
        "\n".join(
            [
                "| Metric | Value |",
                "|--------|-------|",
                f"| Files | {stats.files_scanned} |",
                f"| Documents | {stats.documents_indexed} |",
                f"| Vectors | {stats.vectors_stored} |",
            ]
        ),
    ]
    if stats.by_language:
        sections.append("## Languages")
        sections.append(export_language_stats_as_markdown(stats.by_language))
    if stats.by_package:
        sections.append("## Packages")
        sections.append(export_package_stats_as_markdown(stats.by_package))
    if stats.stats_metadata is not None and stats.stats_metadata.warning:
        sections.append(f"> {stats.stats_metadata.warning}")
    return "\n\n".join(sections)


__all__ = [
    "CSV_HEADER",
    "export_language_stats_as_markdown",
    "export_package_stats_as_markdown",
    "export_stats_as_csv",
    "export_stats_as_json",
    "export_stats_as_markdown",
]
