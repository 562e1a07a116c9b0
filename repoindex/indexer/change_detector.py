"""Change detection against the persisted file ledger."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from ..logging import get_logger
from ..models import Scanner
from .types import FileMetadata


@dataclass(frozen=True)
class ChangeSet:
    """Paths classified by one detection pass. Each path appears in one list only."""

    changed: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.changed or self.added or self.deleted)

    @property
    def to_reindex(self) -> List[str]:
        return [*self.changed, *self.added]

    @property
    def touched(self) -> List[str]:
        return [*self.deleted, *self.changed, *self.added]


def hash_file(path: Path) -> str:
    """Return the hex SHA-256 digest of the file's bytes."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ChangeDetector:
    """Classifies tracked and newly scanned files as changed, added or deleted."""

    def __init__(self, repository_path: Path, scanner: Scanner) -> None:
        self.repository_path = Path(repository_path)
        self.scanner = scanner
        self.logger = get_logger("indexer.changes")

    def detect(
        self,
        files: Mapping[str, FileMetadata],
        *,
        since: Optional[datetime] = None,
        force: bool = False,
        exclude: Sequence[str] = (),
        languages: Sequence[str] = (),
    ) -> ChangeSet:
        """Compare ``files`` with the live repository.

        ``since`` skips tracked files whose modification time is not after it.
        ``force`` classifies every present tracked file as changed without
        comparing hashes.
        """
        cutoff = since.astimezone(UTC) if since is not None else None
        changed: List[str] = []
        deleted: List[str] = []

        for rel_path, metadata in files.items():
            full_path = self.repository_path / rel_path
            try:
                stat_result = full_path.stat()
                if cutoff is not None:
                    modified = datetime.fromtimestamp(stat_result.st_mtime, UTC)
                    if modified <= cutoff:
                        continue
                if force:
                    changed.append(rel_path)
                    continue
                current_hash = hash_file(full_path)
            except OSError as exc:
                self.logger.debug("Treating %s as deleted: %s", rel_path, exc)
                deleted.append(rel_path)
                continue
            if current_hash != metadata.hash:
                changed.append(rel_path)

        scan_result = self.scanner.scan(
            str(self.repository_path),
            exclude=list(exclude),
            languages=list(languages) or None,
        )
        added: List[str] = []
        seen = set(files)
        for document in scan_result.documents:
            file_path = document.metadata.file
            if file_path in seen:
                continue
            seen.add(file_path)
            added.append(file_path)

        result = ChangeSet(changed=sorted(changed), added=sorted(added), deleted=sorted(deleted))
        self.logger.debug(
            "Detected %d changed, %d added, %d deleted file(s)",
            len(result.changed),
            len(result.added),
            len(result.deleted),
        )
        return result


__all__ = ["ChangeDetector", "ChangeSet", "hash_file"]
