"""Tests for repoindex.indexer.change_detector."""

from __future__ import annotations

from datetime import UTC, datetime
from hashlib import sha256
from pathlib import Path
from typing import Dict

from repoindex.indexer.change_detector import ChangeDetector, ChangeSet, hash_file
from repoindex.indexer.types import FileMetadata
from repoindex.scanner import RepoScanner
from tests._fixtures.repo_builder import RepoBuilder


def _ledger(root: Path, *paths: str) -> Dict[str, FileMetadata]:
    now = datetime.now(UTC)
    return {
        path: FileMetadata(
            path=path,
            hash=hash_file(root / path),
            last_modified=now,
            last_indexed=now,
            document_ids=[f"{path}:unit:1"],
            size=(root / path).stat().st_size,
            language="typescript",
        )
        for path in paths
    }


def test_hash_file_matches_sha256(tmp_path: Path) -> None:
    target = tmp_path / "data.bin"
    target.write_bytes(b"x" * (3 * 1024 * 1024 + 7))

    assert hash_file(target) == sha256(target.read_bytes()).hexdigest()
    assert hash_file(target) == hash_file(target)


def test_detect_classifies_changed_added_and_deleted(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "keep.ts": "export function keep() {}\n",
            "edit.ts": "export function edit() {}\n",
            "gone.ts": "export function gone() {}\n",
        }
    )
    root = repo_builder.path()
    files = _ledger(root, "keep.ts", "edit.ts", "gone.ts")

    repo_builder.write({"edit.ts": "export function edited() {}\n", "new.ts": "export function fresh() {}\n"})
    repo_builder.delete("gone.ts")

    changes = ChangeDetector(root, RepoScanner()).detect(files)

    assert changes == ChangeSet(changed=["edit.ts"], added=["new.ts"], deleted=["gone.ts"])
    assert changes.to_reindex == ["edit.ts", "new.ts"]
    assert not changes.is_empty


def test_detect_reports_nothing_for_unchanged_repository(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"a.ts": "export function a() {}\n"})
    root = repo_builder.path()

    changes = ChangeDetector(root, RepoScanner()).detect(_ledger(root, "a.ts"))

    assert changes.is_empty
    assert changes.touched == []


def test_added_files_without_documents_are_ignored(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"a.ts": "export function a() {}\n", "notes.txt": "hello\n", "empty.ts": "// nothing\n"})
    root = repo_builder.path()

    changes = ChangeDetector(root, RepoScanner()).detect(_ledger(root, "a.ts"))

    assert changes.added == []


def test_force_marks_every_present_file_changed(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"a.ts": "export function a() {}\n", "b.ts": "export function b() {}\n"})
    root = repo_builder.path()
    files = _ledger(root, "a.ts", "b.ts")
    repo_builder.delete("b.ts")

    changes = ChangeDetector(root, RepoScanner()).detect(files, force=True)

    assert changes.changed == ["a.ts"]
    assert changes.deleted == ["b.ts"]


def test_since_skips_older_modifications(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"old.ts": "export function old() {}\n", "recent.ts": "export function recent() {}\n"})
    root = repo_builder.path()
    files = _ledger(root, "old.ts", "recent.ts")

    repo_builder.write({"old.ts": "export function older() {}\n", "recent.ts": "export function newer() {}\n"})
    repo_builder.touch("old.ts", datetime(2010, 1, 1, tzinfo=UTC).timestamp())
    repo_builder.touch("recent.ts", datetime(2030, 1, 1, tzinfo=UTC).timestamp())

    changes = ChangeDetector(root, RepoScanner()).detect(files, since=datetime(2020, 1, 1, tzinfo=UTC))

    assert changes.changed == ["recent.ts"]


def test_each_path_lands_in_one_list(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/a.ts": "export function a() {}\n",
            "src/b.ts": "export function b() {}\n",
            "src/c.py": "def c():\n    pass\n",
        }
    )
    root = repo_builder.path()
    files = _ledger(root, "src/a.ts", "src/b.ts")
    repo_builder.write({"src/a.ts": "export function a2() {}\n"})
    repo_builder.delete("src/b.ts")

    changes = ChangeDetector(root, RepoScanner()).detect(files, force=True)

    touched = changes.touched
    assert len(touched) == len(set(touched))
    assert set(touched) == {"src/a.ts", "src/b.ts", "src/c.py"}
