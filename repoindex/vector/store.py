"""JSON persisted embedding store with cosine similarity search."""

from __future__ import annotations

import json
import math
import os
import tempfile
from dataclasses import MISSING, asdict, fields
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

from ..logging import get_logger
from ..models import EmbeddingMetadata

_METADATA_FIELDS = {item.name for item in fields(EmbeddingMetadata)}
_REQUIRED_METADATA = {
    item.name for item in fields(EmbeddingMetadata) if item.default is MISSING
}
_LOGGER = get_logger("vector.store")


def cosine_similarity(left: Sequence[float], right: Sequence[float]) -> float:
    if len(left) != len(right):
        return 0.0
    dot = sum(a * b for a, b in zip(left, right))
    left_norm = math.sqrt(sum(a * a for a in left))
    right_norm = math.sqrt(sum(b * b for b in right))
    if left_norm == 0 or right_norm == 0:
        return 0.0
    return dot / (left_norm * right_norm)


class EmbeddingStore:
    """Keeps embeddings keyed by document id; adding an existing id replaces it."""

    def __init__(self, path: Path | None = None, *, load_existing: bool = True) -> None:
        self._path = path
        self._store: Dict[str, Dict[str, object]] = {}
        if path is not None and load_existing:
            self._load(path)

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._store

    def clear(self) -> None:
        self._store.clear()

    def ids(self) -> Iterable[str]:
        return self._store.keys()

    def upsert(
        self,
        document_id: str,
        *,
        vector: Sequence[float],
        text: str,
        metadata: EmbeddingMetadata,
    ) -> None:
        self._store[document_id] = {
            "vector": [float(value) for value in vector],
            "text": text,
            "metadata": asdict(metadata),
        }

    def delete(self, document_ids: Iterable[str]) -> int:
        removed = 0
        for document_id in document_ids:
            if self._store.pop(document_id, None) is not None:
                removed += 1
        return removed

    def search(
        self,
        vector: Sequence[float],
        *,
        limit: int = 10,
        score_threshold: float = 0.0,
    ) -> List[Tuple[str, float, EmbeddingMetadata]]:
        """Best matches first; entries scoring below ``score_threshold`` are dropped."""
        scored: List[Tuple[str, float, EmbeddingMetadata]] = []
        for document_id, entry in self._store.items():
            score = cosine_similarity(vector, entry["vector"])  # type: ignore[arg-type]
            if score < score_threshold:
                continue
            scored.append((document_id, score, self._metadata(entry)))
        scored.sort(key=lambda item: (-item[1], item[0]))
        return scored[: max(0, limit)]

    def persist(self) -> None:
        """Atomically replace the backing file with the current entries."""
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(self._store, indent=2, sort_keys=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Ignoring unreadable vector store %s: %s", path, exc)
            return
        if not isinstance(data, dict):
            return
        for document_id, entry in data.items():
            if not isinstance(entry, dict):
                continue
            vector = entry.get("vector")
            metadata = entry.get("metadata")
            if not isinstance(vector, list) or not isinstance(metadata, dict):
                continue
            if not _METADATA_FIELDS.issuperset(metadata) or not _REQUIRED_METADATA.issubset(metadata):
                continue
            self._store[document_id] = {
                "vector": [float(value) for value in vector if isinstance(value, (int, float))],
                "text": str(entry.get("text", "")),
                "metadata": metadata,
            }

    @staticmethod
    def _metadata(entry: Dict[str, object]) -> EmbeddingMetadata:
        return EmbeddingMetadata(**entry["metadata"])  # type: ignore[arg-type]


__all__ = ["EmbeddingStore", "cosine_similarity"]
