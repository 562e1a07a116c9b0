"""Default vector storage backend combining the local embedder and store."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import List, Optional, Sequence

from ..logging import get_logger
from ..models import EmbeddingDocument, EmbeddingError, SearchOptions, SearchResult, VectorStats
from .embedder import LocalEmbedder
from .store import EmbeddingStore


class VectorStorage:
    """Embeds documents locally and keeps them in a JSON file.

    Every operation except ``close`` requires ``initialize`` first. Batches may
    be added from several threads at once; the in-memory store is guarded by a
    lock and written to disk by ``persist`` and on ``close``.
    """

    def __init__(
        self,
        store_path: Path,
        *,
        model_name: str = "local/hashed-bow",
        dimension: int = 384,
    ) -> None:
        self.store_path = Path(store_path)
        self.embedder = LocalEmbedder(dimension=dimension, model_name=model_name)
        self.logger = get_logger("vector")
        self._store: Optional[EmbeddingStore] = None
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._store is not None

    def initialize(self) -> None:
        with self._lock:
            if self._store is None:
                self._store = EmbeddingStore(self.store_path)
                self.logger.debug(
                    "Loaded %d vector(s) from %s", len(self._store), self.store_path
                )

    def add_documents(self, documents: Sequence[EmbeddingDocument]) -> None:
        store = self._require_store()
        try:
            vectors = self.embedder.embed_many(document.text for document in documents)
        except (ValueError, TypeError) as exc:
            raise EmbeddingError(f"Failed to embed {len(documents)} document(s): {exc}") from exc
        with self._lock:
            for document, vector in zip(documents, vectors):
                store.upsert(document.id, vector=vector, text=document.text, metadata=document.metadata)

    def delete_documents(self, ids: Sequence[str]) -> None:
        store = self._require_store()
        with self._lock:
            store.delete(ids)

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        store = self._require_store()
        options = options or SearchOptions()
        vector = self.embedder.embed(query)
        with self._lock:
            matches = store.search(vector, limit=options.limit, score_threshold=options.score_threshold)
        return [SearchResult(id=doc_id, score=score, metadata=meta) for doc_id, score, meta in matches]

    def get_stats(self) -> VectorStats:
        store = self._require_store()
        with self._lock:
            total = len(store)
        return VectorStats(
            total_documents=total,
            dimension=self.embedder.dimension,
            model_name=self.embedder.model_name,
        )

    def persist(self) -> None:
        store = self._require_store()
        with self._lock:
            store.persist()

    def close(self) -> None:
        with self._lock:
            if self._store is None:
                return
            self._store.persist()
            self._store = None

    def _require_store(self) -> EmbeddingStore:
        if self._store is None:
            raise RuntimeError("Vector storage not initialized. Call initialize() first.")
        return self._store


__all__ = ["VectorStorage"]
