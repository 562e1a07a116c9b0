"""Tests for repoindex.scanner."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List

import pytest

from repoindex import scanner as scanner_module
from repoindex.scanner import RepoScanner, build_ignore_rules, detect_language, should_ignore
from tests._fixtures.repo_builder import RepoBuilder


def _files(repo_builder: RepoBuilder, **kwargs: object) -> set[str]:
    result = RepoScanner().scan(str(repo_builder.path()), **kwargs)  # type: ignore[arg-type]
    return {document.metadata.file for document in result.documents}


def test_scan_extracts_documents_per_unit(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/service.py": '''
                class Service:
                    """Handles requests."""

                    def handle(self, request):
                        return request


                def build():
                    return Service()
            ''',
        }
    )

    result = RepoScanner().scan(str(repo_builder.path()))
    by_id = {document.id: document for document in result.documents}

    assert set(by_id) == {
        "src/service.py:Service:1",
        "src/service.py:Service.handle:4",
        "src/service.py:build:8",
    }
    service = by_id["src/service.py:Service:1"]
    assert service.type == "class"
    assert service.language == "python"
    assert service.metadata.docstring == "Handles requests."
    assert service.text.startswith("class Service:")
    assert by_id["src/service.py:build:8"].text == "def build():\n    return Service()"
    assert result.stats.files_scanned == 1
    assert result.stats.documents_extracted == 3


def test_scan_skips_excluded_and_gitignored_paths(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".gitignore": "generated/\n*.min.js\n",
            "src/app.ts": "export function app() {}\n",
            "generated/api.ts": "export function api() {}\n",
            "public/vendor.min.js": "function vendor() {}\n",
            "node_modules/lib/index.js": "function lib() {}\n",
            ".repoindex/cache.md": "# cached\n",
        }
    )

    assert _files(repo_builder) == {"src/app.ts"}


def test_scan_applies_exclude_patterns(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/app.ts": "export function app() {}\n",
            "src/app.test.ts": "export function testApp() {}\n",
            "docs/guide.md": "# Guide\n",
        }
    )

    assert _files(repo_builder, exclude=["*.test.ts", "docs/"]) == {"src/app.ts"}


def test_scan_include_limits_to_exact_paths(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "a.ts": "export function a() {}\n",
            "b.ts": "export function b() {}\n",
            "dist/c.ts": "export function c() {}\n",
        }
    )

    assert _files(repo_builder, include=["b.ts", "missing.ts", "dist/c.ts"]) == {"b.ts"}


def test_scan_include_accepts_globs(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "pkg/one.go": "package pkg\n\nfunc One() {}\n",
            "pkg/two.go": "package pkg\n\nfunc Two() {}\n",
            "main.ts": "export function main() {}\n",
        }
    )

    assert _files(repo_builder, include=["pkg/*.go"]) == {"pkg/one.go", "pkg/two.go"}


def test_scan_filters_languages(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "main.go": "package main\n\nfunc main() {}\n",
            "README.md": "# Project\n",
            "tool.py": "def run():\n    pass\n",
        }
    )

    assert _files(repo_builder, languages=["Go", "markdown"]) == {"main.go", "README.md"}


def test_scan_records_per_file_errors(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"ok.py": "def ok():\n    pass\n", "broken.py": "def broken(:\n    pass\n"})

    result = RepoScanner().scan(str(repo_builder.path()))

    assert [document.metadata.file for document in result.documents] == ["ok.py"]
    assert result.stats.files_scanned == 2
    assert len(result.stats.errors) == 1
    error = result.stats.errors[0]
    assert error.file == "broken.py"
    assert error.line == 1
    assert error.error.startswith("Syntax error")


def test_scan_records_undecodable_files(repo_builder: RepoBuilder) -> None:
    (repo_builder.path() / "binary.ts").write_bytes(b"\xff\xfe\x00export")

    result = RepoScanner().scan(str(repo_builder.path()))

    assert result.documents == []
    assert [error.file for error in result.stats.errors] == ["binary.ts"]


def test_scan_output_order_does_not_depend_on_worker_count(repo_builder: RepoBuilder) -> None:
    repo_builder.write({f"src/m{index:02d}.py": f"def f{index}():\n    return {index}\n" for index in range(12)})

    serial = RepoScanner(concurrency=1).scan(str(repo_builder.path()))
    parallel = RepoScanner(concurrency=6).scan(str(repo_builder.path()))

    assert [document.id for document in parallel.documents] == [document.id for document in serial.documents]
    assert serial.documents[0].id == "src/m00.py:f0:1"
    assert parallel.stats.files_scanned == 12


def test_scan_sizes_pool_from_scanner_concurrency(
    repo_builder: RepoBuilder, monkeypatch: pytest.MonkeyPatch
) -> None:
    repo_builder.write({f"m{index}.py": "def f():\n    pass\n" for index in range(5)})
    sizes: List[int] = []

    class _RecordingExecutor(ThreadPoolExecutor):
        def __init__(self, max_workers: int) -> None:
            sizes.append(max_workers)
            super().__init__(max_workers=max_workers)

    monkeypatch.setattr(scanner_module, "ThreadPoolExecutor", _RecordingExecutor)
    monkeypatch.setenv("REPOINDEX_SCANNER_CONCURRENCY", "3")

    RepoScanner().scan(str(repo_builder.path()))
    RepoScanner(concurrency=40).scan(str(repo_builder.path()))

    assert sizes == [3, 5]


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(FileNotFoundError) as excinfo:
        RepoScanner().scan(str(missing))

    assert str(missing) in str(excinfo.value)


def test_scan_rejects_file_root(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")

    with pytest.raises(NotADirectoryError):
        RepoScanner().scan(str(target))


def test_ignore_rules_support_negation_and_anchoring() -> None:
    rules = build_ignore_rules(["/build", "logs/"])

    assert should_ignore("build", True, rules)
    assert not should_ignore("src/build", True, rules)
    assert should_ignore("app/logs", True, rules)
    assert not should_ignore("logs", False, rules)


def test_detect_language() -> None:
    assert detect_language("src/view.tsx") == "typescript"
    assert detect_language("lib/index.mjs") == "javascript"
    assert detect_language("README.MD") == "markdown"
    assert detect_language("Makefile") is None
