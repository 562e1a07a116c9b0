"""Tests for repoindex.indexer.stats_aggregator."""

from __future__ import annotations

import time

from repoindex.indexer.stats_aggregator import AggregatorCounts, StatsAggregator
from repoindex.indexer.types import LanguageStats, PackageStats
from tests._fixtures.fakes import make_document


def test_counts_files_once_per_language() -> None:
    aggregator = StatsAggregator()
    aggregator.add_document(make_document("src/a.ts", "one", start_line=1, end_line=3))
    aggregator.add_document(make_document("src/a.ts", "two", start_line=5, end_line=9))
    aggregator.add_document(make_document("src/b.py", "three", language="python", type="class", end_line=1))

    stats = aggregator.get_detailed_stats()

    assert stats.by_language == {
        "typescript": LanguageStats(files=1, components=2, lines=8),
        "python": LanguageStats(files=1, components=1, lines=1),
    }
    assert stats.by_component_type == {"function": 2, "class": 1}
    assert stats.by_package == {}
    assert aggregator.get_counts() == AggregatorCounts(languages=2, component_types=2, packages=0, files=2)


def test_registered_packages_collect_their_files() -> None:
    aggregator = StatsAggregator()
    aggregator.register_package("packages/web", "@acme/web")
    aggregator.register_package("packages/web/plugins", "@acme/web-plugins")

    aggregator.add_document(make_document("packages/web/src/view.ts", "render"))
    aggregator.add_document(make_document("packages/web/plugins/auth.ts", "login"))
    aggregator.add_document(make_document("packages/web/plugins/auth.ts", "logout", start_line=4))
    aggregator.add_document(make_document("scripts/build.ts", "build"))

    by_package = aggregator.get_detailed_stats().by_package

    assert by_package["packages/web"] == PackageStats(
        name="@acme/web", path="packages/web", files=1, components=1, languages={"typescript": 1}
    )
    assert by_package["packages/web/plugins"].files == 1
    assert by_package["packages/web/plugins"].components == 2
    assert aggregator.package_for_file("scripts/build.ts") is None


def test_package_prefix_requires_path_boundary() -> None:
    aggregator = StatsAggregator()
    aggregator.register_package("packages/web", "web")

    aggregator.add_document(make_document("packages/web-legacy/index.ts", "old"))

    assert aggregator.package_for_file("packages/web-legacy/index.ts") is None
    assert aggregator.get_detailed_stats().by_package["packages/web"].files == 0


def test_registering_more_specific_package_refreshes_lookups() -> None:
    aggregator = StatsAggregator()
    aggregator.register_package("apps", "apps")
    assert aggregator.package_for_file("apps/admin/main.go") == "apps"

    aggregator.register_package("apps/admin/", "admin")

    assert aggregator.package_for_file("apps/admin/main.go") == "apps/admin"


def test_snapshot_is_not_affected_by_later_documents() -> None:
    aggregator = StatsAggregator()
    aggregator.register_package("web", "web")
    aggregator.add_document(make_document("web/a.ts", "a"))
    snapshot = aggregator.get_detailed_stats()

    aggregator.add_document(make_document("web/b.ts", "b"))

    assert snapshot.by_language["typescript"].files == 1
    assert snapshot.by_component_type == {"function": 1}
    assert snapshot.by_package["web"].languages == {"typescript": 1}


def test_reset_clears_everything() -> None:
    aggregator = StatsAggregator()
    aggregator.register_package("web", "web")
    aggregator.add_document(make_document("web/a.ts", "a"))

    aggregator.reset()

    assert aggregator.get_counts() == AggregatorCounts(languages=0, component_types=0, packages=0, files=0)
    assert aggregator.get_detailed_stats().by_language == {}


def test_large_document_stream_stays_fast() -> None:
    aggregator = StatsAggregator()
    for index in range(20):
        aggregator.register_package(f"packages/p{index}", f"p{index}")
    documents = [
        make_document(f"packages/p{(index // 5) % 20}/file{index // 5}.ts", f"unit{index}", start_line=index + 1)
        for index in range(10_000)
    ]

    started = time.perf_counter()
    for document in documents:
        aggregator.add_document(document)
    elapsed = time.perf_counter() - started

    assert aggregator.get_counts().files == 2_000
    assert aggregator.get_detailed_stats().by_language["typescript"].components == 10_000
    assert elapsed < 2.0
