"""Tests for repoindex.vector.storage."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from repoindex.models import EmbeddingDocument, EmbeddingError, EmbeddingMetadata, SearchOptions
from repoindex.vector import VectorStorage


def _document(doc_id: str, text: str) -> EmbeddingDocument:
    return EmbeddingDocument(
        id=doc_id,
        text=text,
        metadata=EmbeddingMetadata(
            path=f"src/{doc_id}.ts",
            type="function",
            language="typescript",
            name=doc_id,
            start_line=1,
            end_line=4,
            exported=True,
        ),
    )


def test_operations_require_initialize(tmp_path: Path) -> None:
    storage = VectorStorage(tmp_path / "vectors.json")

    with pytest.raises(RuntimeError, match="not initialized"):
        storage.add_documents([_document("a", "alpha")])
    with pytest.raises(RuntimeError, match="not initialized"):
        storage.search("alpha")

    storage.close()
    assert not storage.initialized


def test_search_ranks_relevant_documents_first(tmp_path: Path) -> None:
    storage = VectorStorage(tmp_path / "vectors.json", dimension=256)
    storage.initialize()
    storage.add_documents(
        [
            _document("auth", "function: authenticateUser\n\nverify password token session login"),
            _document("render", "function: renderChart\n\ndraw svg axis legend chart"),
        ]
    )

    results = storage.search("user login password", SearchOptions(limit=2))

    assert results[0].id == "auth"
    assert results[0].metadata.path == "src/auth.ts"
    assert results[0].score >= results[-1].score


def test_delete_and_stats(tmp_path: Path) -> None:
    storage = VectorStorage(tmp_path / "vectors.json", model_name="local/test", dimension=16)
    storage.initialize()
    storage.add_documents([_document("a", "alpha"), _document("b", "beta")])

    storage.delete_documents(["a", "unknown"])
    stats = storage.get_stats()

    assert stats.total_documents == 1
    assert stats.dimension == 16
    assert stats.model_name == "local/test"


def test_close_persists_vectors(tmp_path: Path) -> None:
    path = tmp_path / "state" / "vectors.json"
    storage = VectorStorage(path)
    storage.initialize()
    storage.add_documents([_document("a", "alpha beta")])
    storage.close()

    assert path.exists()
    reopened = VectorStorage(path)
    reopened.initialize()
    assert [result.id for result in reopened.search("alpha")] == ["a"]


def test_embedding_failures_raise_embedding_error(tmp_path: Path) -> None:
    storage = VectorStorage(tmp_path / "vectors.json")
    storage.initialize()

    with patch.object(storage.embedder, "embed_many", side_effect=ValueError("bad input")):
        with pytest.raises(EmbeddingError, match="bad input"):
            storage.add_documents([_document("a", "alpha")])

    assert storage.get_stats().total_documents == 0
