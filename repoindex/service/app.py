"""FastAPI application exposing repoindex operations."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import load_config
from ..indexer import DetailedIndexStats, IndexOptions, RepositoryIndexer, UpdateOptions
from ..models import SearchOptions

T = TypeVar("T")
IndexerFactory = Callable[[Path], RepositoryIndexer]


class IndexRequest(BaseModel):
    path: str
    batch_size: Optional[int] = Field(default=None, ge=1)
    exclude_patterns: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    force: bool = False


class UpdateRequest(IndexRequest):
    since: Optional[datetime] = None


class SearchRequest(BaseModel):
    path: str
    query: str
    limit: int = Field(default=10, ge=1)
    score_threshold: float = 0.0


class ErrorModel(BaseModel):
    kind: str
    message: str
    file: Optional[str] = None
    timestamp: datetime


class StatsMetadataModel(BaseModel):
    is_incremental: bool
    last_full_index: datetime
    last_update: datetime
    incremental_updates_since: int
    affected_languages: List[str] = Field(default_factory=list)
    warning: Optional[str] = None


class StatsResponse(BaseModel):
    repository_path: str
    files_scanned: int
    documents_extracted: int
    documents_indexed: int
    vectors_stored: int
    duration_ms: int
    start_time: datetime
    end_time: datetime
    errors: List[ErrorModel] = Field(default_factory=list)
    stats_metadata: Optional[StatsMetadataModel] = None
    by_language: Optional[Dict[str, Dict[str, int]]] = None
    by_component_type: Optional[Dict[str, int]] = None
    by_package: Optional[Dict[str, Dict[str, Any]]] = None


class SearchHit(BaseModel):
    id: str
    score: float
    path: str
    type: str
    language: str
    name: Optional[str] = None
    start_line: int
    end_line: int
    exported: bool
    signature: Optional[str] = None


class SearchResponse(BaseModel):
    results: List[SearchHit]


class HealthResponse(BaseModel):
    status: str


def _default_indexer(path: Path) -> RepositoryIndexer:
    return RepositoryIndexer(load_config(path))


class RepoLocks:
    """One lock per resolved repository path; requests for the same repository run one at a time."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Path, threading.Lock] = {}

    def for_path(self, repo_path: Path) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(repo_path, threading.Lock())


def _stats_response(stats: DetailedIndexStats) -> StatsResponse:
    metadata = stats.stats_metadata
    return StatsResponse(
        repository_path=stats.repository_path,
        files_scanned=stats.files_scanned,
        documents_extracted=stats.documents_extracted,
        documents_indexed=stats.documents_indexed,
        vectors_stored=stats.vectors_stored,
        duration_ms=stats.duration_ms,
        start_time=stats.start_time,
        end_time=stats.end_time,
        errors=[
            ErrorModel(kind=error.kind, message=error.message, file=error.file, timestamp=error.timestamp)
            for error in stats.errors
        ],
        stats_metadata=(
            StatsMetadataModel(
                is_incremental=metadata.is_incremental,
                last_full_index=metadata.last_full_index,
                last_update=metadata.last_update,
                incremental_updates_since=metadata.incremental_updates_since,
                affected_languages=list(metadata.affected_languages),
                warning=metadata.warning,
            )
            if metadata is not None
            else None
        ),
        by_language=(
            {name: asdict(value) for name, value in stats.by_language.items()}
            if stats.by_language is not None
            else None
        ),
        by_component_type=stats.by_component_type,
        by_package=(
            {name: asdict(value) for name, value in stats.by_package.items()}
            if stats.by_package is not None
            else None
        ),
    )


def create_app(indexer_factory: IndexerFactory = _default_indexer) -> FastAPI:
    """Create the FastAPI application exposing repoindex operations."""

    app = FastAPI(title="repoindex Service", version="1.0.0")
    locks = RepoLocks()

    async def get_factory() -> IndexerFactory:
        return indexer_factory

    async def _run(path: str, factory: IndexerFactory, action: Callable[[RepositoryIndexer], T]) -> T:
        repo_path = Path(path).expanduser().resolve()
        if not repo_path.is_dir():
            raise FileNotFoundError(f"Repository path not found: {path}")

        def _call() -> T:
            with locks.for_path(repo_path):
                indexer = factory(repo_path)
                indexer.initialize()
                try:
                    return action(indexer)
                finally:
                    indexer.close()

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _call)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/index", response_model=StatsResponse)
    async def index_repo(
        payload: IndexRequest,
        factory: IndexerFactory = Depends(get_factory),
    ) -> StatsResponse:
        options = IndexOptions(
            batch_size=payload.batch_size,
            exclude_patterns=tuple(payload.exclude_patterns),
            languages=tuple(payload.languages),
            force=payload.force,
        )
        stats = await _run(payload.path, factory, lambda indexer: indexer.index(options))
        return _stats_response(stats)

    @app.post("/update", response_model=StatsResponse)
    async def update_repo(
        payload: UpdateRequest,
        factory: IndexerFactory = Depends(get_factory),
    ) -> StatsResponse:
        options = UpdateOptions(
            batch_size=payload.batch_size,
            exclude_patterns=tuple(payload.exclude_patterns),
            languages=tuple(payload.languages),
            force=payload.force,
            since=payload.since,
        )
        stats = await _run(payload.path, factory, lambda indexer: indexer.update(options))
        return _stats_response(stats)

    @app.post("/search", response_model=SearchResponse)
    async def search_repo(
        payload: SearchRequest,
        factory: IndexerFactory = Depends(get_factory),
    ) -> SearchResponse:
        options = SearchOptions(limit=payload.limit, score_threshold=payload.score_threshold)
        results = await _run(payload.path, factory, lambda indexer: indexer.search(payload.query, options))
        return SearchResponse(
            results=[
                SearchHit(
                    id=result.id,
                    score=result.score,
                    path=result.metadata.path,
                    type=result.metadata.type,
                    language=result.metadata.language,
                    name=result.metadata.name,
                    start_line=result.metadata.start_line,
                    end_line=result.metadata.end_line,
                    exported=result.metadata.exported,
                    signature=result.metadata.signature,
                )
                for result in results
            ]
        )

    @app.get("/stats", response_model=StatsResponse)
    async def repo_stats(
        path: str,
        factory: IndexerFactory = Depends(get_factory),
    ) -> StatsResponse:
        stats = await _run(path, factory, lambda indexer: indexer.get_stats())
        if stats is None:
            raise FileNotFoundError(f"No index found for {path}")
        return _stats_response(stats)

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)


__all__ = ["RepoLocks", "create_app", "run_service"]
