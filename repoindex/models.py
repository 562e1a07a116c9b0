"""Core data models shared between the scanner, vector backend and indexer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

DOCUMENT_TYPES = (
    "function",
    "class",
    "interface",
    "type",
    "struct",
    "method",
    "documentation",
    "variable",
)


class EmbeddingError(RuntimeError):
    """Raised by a vector backend when documents cannot be embedded."""


@dataclass(frozen=True)
class DocumentMetadata:
    """Location and descriptive data for a single code unit."""

    file: str
    start_line: int
    end_line: int
    name: Optional[str] = None
    exported: bool = False
    signature: Optional[str] = None
    docstring: Optional[str] = None


@dataclass(frozen=True)
class Document:
    """One indexable code unit produced by a scanner."""

    id: str
    type: str
    language: str
    text: str
    metadata: DocumentMetadata


@dataclass(frozen=True)
class EmbeddingMetadata:
    """Closed metadata record stored next to every embedded code unit."""

    path: str
    type: str
    language: str
    name: Optional[str]
    start_line: int
    end_line: int
    exported: bool
    signature: Optional[str] = None
    docstring: Optional[str] = None


@dataclass(frozen=True)
class EmbeddingDocument:
    """Projection of a `Document` prepared for the embedding backend."""

    id: str
    text: str
    metadata: EmbeddingMetadata


@dataclass(frozen=True)
class SearchOptions:
    """Options accepted by vector search."""

    limit: int = 10
    score_threshold: float = 0.0


@dataclass(frozen=True)
class SearchResult:
    """A single similarity hit returned by the vector backend."""

    id: str
    score: float
    metadata: EmbeddingMetadata


@dataclass(frozen=True)
class VectorStats:
    """Summary of the vector backend contents."""

    total_documents: int
    dimension: int
    model_name: str


@dataclass(frozen=True)
class ScanError:
    """A per-file problem encountered while scanning."""

    file: str
    error: str
    line: Optional[int] = None


@dataclass(frozen=True)
class ScanStats:
    """Counters describing a scan."""

    files_scanned: int
    documents_extracted: int
    duration_ms: int = 0
    errors: List[ScanError] = field(default_factory=list)


@dataclass(frozen=True)
class ScanResult:
    """Documents extracted from a repository plus scan counters."""

    documents: List[Document]
    stats: ScanStats


class Scanner(Protocol):
    """Turns repository files into code-unit documents."""

    def scan(
        self,
        repo_root: str,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        languages: Optional[Sequence[str]] = None,
    ) -> ScanResult:
        ...


class VectorBackend(Protocol):
    """Embeds, persists and searches documents."""

    def initialize(self) -> None:
        ...

    def add_documents(self, documents: Sequence[EmbeddingDocument]) -> None:
        ...

    def delete_documents(self, ids: Sequence[str]) -> None:
        ...

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        ...

    def get_stats(self) -> VectorStats:
        ...

    def persist(self) -> None:
        """Make every completed add and delete durable."""
        ...

    def close(self) -> None:
        ...


__all__ = [
    "DOCUMENT_TYPES",
    "Document",
    "DocumentMetadata",
    "EmbeddingDocument",
    "EmbeddingError",
    "EmbeddingMetadata",
    "ScanError",
    "ScanResult",
    "ScanStats",
    "Scanner",
    "SearchOptions",
    "SearchResult",
    "VectorBackend",
    "VectorStats",
]
