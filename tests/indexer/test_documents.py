"""Tests for repoindex.indexer.documents."""

from __future__ import annotations

from repoindex.indexer.documents import (
    format_document_text,
    prepare_document_for_embedding,
    prepare_documents_for_embedding,
)
from repoindex.models import Document, DocumentMetadata


def _doc(name: str | None = "load", text: str = "def load():\n    pass") -> Document:
    return Document(
        id=f"pkg/io.py:{name}:3",
        type="function",
        language="python",
        text=text,
        metadata=DocumentMetadata(
            file="pkg/io.py",
            start_line=3,
            end_line=4,
            name=name,
            exported=True,
            signature="def load()",
            docstring="Load things.",
        ),
    )


def test_format_prefixes_type_and_name() -> None:
    assert format_document_text(_doc()) == "function: load\n\ndef load():\n    pass"


def test_format_without_name_is_just_text() -> None:
    assert format_document_text(_doc(name=None)) == "def load():\n    pass"


def test_format_without_text_is_just_header() -> None:
    assert format_document_text(_doc(text="")) == "function: load"


def test_prepare_projects_metadata() -> None:
    prepared = prepare_document_for_embedding(_doc())

    assert prepared.id == "pkg/io.py:load:3"
    assert prepared.metadata.path == "pkg/io.py"
    assert prepared.metadata.type == "function"
    assert prepared.metadata.language == "python"
    assert (prepared.metadata.start_line, prepared.metadata.end_line) == (3, 4)
    assert prepared.metadata.signature == "def load()"
    assert prepared.metadata.docstring == "Load things."


def test_prepare_many_keeps_order() -> None:
    documents = [_doc("a"), _doc("b"), _doc("c")]

    assert [d.id for d in prepare_documents_for_embedding(documents)] == [
        "pkg/io.py:a:3",
        "pkg/io.py:b:3",
        "pkg/io.py:c:3",
    ]
