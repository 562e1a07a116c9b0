"""Streaming statistics aggregation for indexing runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from ..models import Document
from .types import LanguageStats, PackageStats


@dataclass(frozen=True)
class DetailedStats:
    """Snapshot of the aggregate breakdowns."""

    by_language: Dict[str, LanguageStats] = field(default_factory=dict)
    by_component_type: Dict[str, int] = field(default_factory=dict)
    by_package: Dict[str, PackageStats] = field(default_factory=dict)


@dataclass(frozen=True)
class AggregatorCounts:
    """Number of distinct keys seen so far."""

    languages: int
    component_types: int
    packages: int
    files: int


@dataclass
class _LanguageCounter:
    files: int = 0
    components: int = 0
    lines: int = 0


@dataclass
class _PackageCounter:
    name: str
    path: str
    files: int = 0
    components: int = 0
    languages: Dict[str, int] = field(default_factory=dict)


class StatsAggregator:
    """Accumulates language, component type and package counts one document at a time.

    Every ``add_document`` call is O(1) amortised: files are tracked in a set
    and the owning package of a file is resolved once and cached.
    """

    def __init__(self) -> None:
        self._languages: Dict[str, _LanguageCounter] = {}
        self._component_types: Dict[str, int] = {}
        self._packages: Dict[str, _PackageCounter] = {}
        self._file_packages: Dict[str, Optional[str]] = {}
        self._seen_files: Set[str] = set()

    def add_document(self, doc: Document) -> None:
        file_path = doc.metadata.file
        is_new_file = file_path not in self._seen_files
        if is_new_file:
            self._seen_files.add(file_path)

        language = self._languages.get(doc.language)
        if language is None:
            language = self._languages[doc.language] = _LanguageCounter()
        if is_new_file:
            language.files += 1
        language.components += 1
        language.lines += doc.metadata.end_line - doc.metadata.start_line + 1

        self._component_types[doc.type] = self._component_types.get(doc.type, 0) + 1

        package_path = self.package_for_file(file_path)
        if package_path is not None:
            package = self._packages[package_path]
            if is_new_file:
                package.files += 1
            package.components += 1
            package.languages[doc.language] = package.languages.get(doc.language, 0) + 1

    def register_package(self, package_path: str, package_name: str) -> None:
        """Register a workspace package rooted at ``package_path``."""
        normalized = package_path.strip("/")
        if normalized in self._packages:
            return
        self._packages[normalized] = _PackageCounter(name=package_name, path=normalized)
        # Cached lookups may now resolve to a more specific package.
        self._file_packages.clear()

    def package_for_file(self, file_path: str) -> Optional[str]:
        """Return the most specific registered package containing ``file_path``."""
        if file_path in self._file_packages:
            return self._file_packages[file_path]
        package_path = self._find_package(file_path)
        self._file_packages[file_path] = package_path
        return package_path

    def get_detailed_stats(self) -> DetailedStats:
        return DetailedStats(
            by_language={
                name: LanguageStats(files=c.files, components=c.components, lines=c.lines)
                for name, c in self._languages.items()
            },
            by_component_type=dict(self._component_types),
            by_package={
                path: PackageStats(
                    name=c.name,
                    path=c.path,
                    files=c.files,
                    components=c.components,
                    languages=dict(c.languages),
                )
                for path, c in self._packages.items()
            },
        )

    def get_counts(self) -> AggregatorCounts:
        return AggregatorCounts(
            languages=len(self._languages),
            component_types=len(self._component_types),
            packages=len(self._packages),
            files=len(self._seen_files),
        )

    def reset(self) -> None:
        self._languages.clear()
        self._component_types.clear()
        self._packages.clear()
        self._file_packages.clear()
        self._seen_files.clear()

    def _find_package(self, file_path: str) -> Optional[str]:
        best: Optional[str] = None
        for package_path in self._packages:
            if package_path and not (
                file_path == package_path or file_path.startswith(f"{package_path}/")
            ):
                continue
            if best is None or len(package_path) > len(best):
                best = package_path
        return best


__all__ = ["AggregatorCounts", "DetailedStats", "StatsAggregator"]
