"""Tests for repoindex.indexer.export."""

from __future__ import annotations

import json
from datetime import UTC, datetime

from repoindex.indexer import (
    DetailedIndexStats,
    LanguageStats,
    PackageStats,
    StatsMetadata,
    export_stats_as_csv,
    export_stats_as_json,
    export_stats_as_markdown,
)

_WHEN = datetime(2024, 6, 1, 9, 0, tzinfo=UTC)


def _stats() -> DetailedIndexStats:
    return DetailedIndexStats(
        files_scanned=3,
        documents_extracted=5,
        documents_indexed=4,
        vectors_stored=4,
        duration_ms=120,
        errors=(),
        start_time=_WHEN,
        end_time=_WHEN,
        repository_path="/repo",
        stats_metadata=StatsMetadata(
            is_incremental=True,
            last_full_index=_WHEN,
            last_update=_WHEN,
            incremental_updates_since=12,
            warning="stale",
        ),
        by_language={"python": LanguageStats(2, 3, 1200), "go": LanguageStats(1, 2, 30)},
        by_component_type={"function": 4, "class": 1},
        by_package={"libs/core": PackageStats(name="core, utils", path="libs/core", files=2, components=3)},
    )


def test_json_export_includes_details_and_metadata() -> None:
    payload = json.loads(export_stats_as_json(_stats()))

    assert payload["files_scanned"] == 3
    assert payload["documents_indexed"] == 4
    assert payload["metadata"]["incremental_updates_since"] == 12
    assert payload["metadata"]["last_full_index"] == "2024-06-01T09:00:00+00:00"
    assert payload["by_language"]["python"] == {"files": 2, "components": 3, "lines": 1200}
    assert payload["by_package"]["libs/core"]["name"] == "core, utils"


def test_json_export_can_omit_sections() -> None:
    text = export_stats_as_json(_stats(), pretty=False, include_metadata=False, include_details=False)

    assert "\n" not in text
    assert set(json.loads(text)) == {
        "files_scanned",
        "documents_extracted",
        "documents_indexed",
        "vectors_stored",
        "duration_ms",
        "repository_path",
    }


def test_csv_export_flattens_rows_and_quotes_commas() -> None:
    rows = export_stats_as_csv(_stats()).splitlines()

    assert rows[:5] == [
        "category,subcategory,metric,value",
        "overview,files,total,3",
        "overview,documents,total,4",
        "overview,vectors,total,4",
        "overview,duration,milliseconds,120",
    ]
    assert rows[5:8] == ["language,go,files,1", "language,go,components,2", "language,go,lines,30"]
    assert "component,class,count,1" in rows
    assert 'package,"core, utils",files,2' in rows


def test_markdown_export_renders_tables() -> None:
    markdown = export_stats_as_markdown(_stats())

    assert markdown.startswith("# Index statistics for /repo")
    assert "| Files | 3 |" in markdown
    assert "| python | 2 | 3 | 1,200 |" in markdown
    assert "| core, utils | libs/core | 2 | 3 |" in markdown
    assert markdown.endswith("> stale")


def test_markdown_export_skips_empty_tables() -> None:
    stats = DetailedIndexStats(
        files_scanned=0,
        documents_extracted=0,
        documents_indexed=0,
        vectors_stored=0,
        duration_ms=0,
        errors=(),
        start_time=_WHEN,
        end_time=_WHEN,
        repository_path="/repo",
    )

    markdown = export_stats_as_markdown(stats)

    assert "## Languages" not in markdown
    assert "## Packages" not in markdown
