"""Projection of scanned documents into embedding documents."""

from __future__ import annotations

from typing import Iterable, List

from ..models import Document, EmbeddingDocument, EmbeddingMetadata


def format_document_text(doc: Document) -> str:
    """Prefix the document body with ``"<type>: <name>"`` when the unit is named."""
    parts: List[str] = []
    if doc.metadata.name:
        parts.append(f"{doc.type}: {doc.metadata.name}")
    if doc.text:
        parts.append(doc.text)
    return "\n\n".join(parts)


def prepare_document_for_embedding(doc: Document) -> EmbeddingDocument:
    meta = doc.metadata
    return EmbeddingDocument(
        id=doc.id,
        text=format_document_text(doc),
        metadata=EmbeddingMetadata(
            path=meta.file,
            type=doc.type,
            language=doc.language,
            name=meta.name,
            start_line=meta.start_line,
            end_line=meta.end_line,
            exported=meta.exported,
            signature=meta.signature,
            docstring=meta.docstring,
        ),
    )


def prepare_documents_for_embedding(documents: Iterable[Document]) -> List[EmbeddingDocument]:
    return [prepare_document_for_embedding(doc) for doc in documents]


__all__ = [
    "format_document_text",
    "prepare_document_for_embedding",
    "prepare_documents_for_embedding",
]
