"""Repository scanning: file discovery, ignore rules and document extraction."""

from __future__ import annotations

import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from .concurrency import optimal_concurrency
from .extractors import CodeUnit, extract_units
from .logging import get_logger
from .models import Document, DocumentMetadata, ScanError, ScanResult, ScanStats

EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".repoindex",
    "dist",
    "build",
}

_LANGUAGE_BY_SUFFIX = {
    ".py": "python",
    ".pyi": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".go": "go",
    ".md": "markdown",
    ".markdown": "markdown",
}

_GLOB_CHARS = set("*?[")


@dataclass
class IgnoreRule:
    """An ignore rule parsed from .gitignore or an exclude glob."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            # A leading "**/" must also match at the repository root.
            if fnmatchcase(rel_path, self.pattern) or fnmatchcase(f"/{rel_path}", self.pattern):
                return True
            if is_dir and fnmatchcase(f"{rel_path}/", self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def _build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def build_ignore_rules(patterns: Sequence[str]) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    for pattern in patterns:
        rule = _build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def load_gitignore(root: Path) -> List[IgnoreRule]:
    path = root / ".gitignore"
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def detect_language(path: str | Path) -> Optional[str]:
    return _LANGUAGE_BY_SUFFIX.get(Path(path).suffix.lower())


def _iter_files(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[str]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept_dirs = []
        for name in sorted(dirnames):
            if name in EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if should_ignore(rel_path, True, rules):
                continue
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for filename in sorted(filenames):
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if should_ignore(rel_path, False, rules):
                continue
            yield rel_path


def _is_glob(pattern: str) -> bool:
    return any(char in _GLOB_CHARS for char in pattern)


def _matches_include(rel_path: str, include: Sequence[str]) -> bool:
    for pattern in include:
        if rel_path == pattern:
            return True
        if _is_glob(pattern) and (
            fnmatchcase(rel_path, pattern) or fnmatchcase(f"/{rel_path}", pattern)
        ):
            return True
    return False


def _in_excluded_dir(rel_path: str) -> bool:
    return any(part in EXCLUDED_DIRS for part in rel_path.split("/")[:-1])


def _document_for(rel_path: str, language: str, lines: List[str], unit: CodeUnit) -> Document:
    return Document(
        id=f"{rel_path}:{unit.name}:{unit.start_line}",
        type=unit.type,
        language=language,
        text="\n".join(lines[unit.start_line - 1 : unit.end_line]),
        metadata=DocumentMetadata(
            file=rel_path,
            start_line=unit.start_line,
            end_line=unit.end_line,
            name=unit.name,
            exported=unit.exported,
            signature=unit.signature,
            docstring=unit.docstring,
        ),
    )


def _extract_file(root: Path, rel_path: str, language: str) -> Tuple[List[Document], Optional[ScanError]]:
    try:
        text = (root / rel_path).read_text(encoding="utf-8")
        units = extract_units(language, text)
    except SyntaxError as exc:
        return [], ScanError(file=rel_path, error=f"Syntax error: {exc.msg}", line=exc.lineno)
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        return [], ScanError(file=rel_path, error=str(exc))
    lines = text.splitlines()
    return [_document_for(rel_path, language, lines, unit) for unit in units], None


class RepoScanner:
    """Walks a repository and extracts one document per code unit.

    Files are read and parsed on a thread pool sized by ``concurrency`` or,
    when unset, by ``optimal_concurrency("scanner")``. Output order follows
    the sorted walk regardless of pool size.
    """

    def __init__(self, *, concurrency: int | None = None) -> None:
        self.logger = get_logger("scanner")
        self.concurrency = concurrency

    def scan(
        self,
        repo_root: str,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        languages: Optional[Sequence[str]] = None,
    ) -> ScanResult:
        """Scan ``repo_root``.

        ``include`` restricts the scan to exact relative paths or globs,
        ``exclude`` adds gitignore-style patterns and ``languages`` limits the
        languages considered. Unreadable or unparsable files are reported in
        ``ScanStats.errors``.
        """
        started = time.monotonic()
        root = Path(repo_root).expanduser().resolve()
        if not root.exists():
            raise FileNotFoundError(f"Repository path not found: {repo_root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {repo_root}")

        rules = load_gitignore(root)
        rules.extend(build_ignore_rules(exclude or ()))
        wanted = {language.lower() for language in languages} if languages else None

        candidates: List[Tuple[str, str]] = []
        for rel_path in self._candidates(root, rules, include):
            language = detect_language(rel_path)
            if language is None or (wanted is not None and language not in wanted):
                continue
            candidates.append((rel_path, language))

        documents: List[Document] = []
        errors: List[ScanError] = []
        workers = max(1, min(self.concurrency or optimal_concurrency("scanner"), len(candidates) or 1))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            for extracted, error in executor.map(lambda item: _extract_file(root, *item), candidates):
                if error is not None:
                    errors.append(error)
                documents.extend(extracted)

        duration_ms = int((time.monotonic() - started) * 1000)
        self.logger.debug(
            "Scanned %d file(s) with %d worker(s), extracted %d document(s), %d error(s)",
            len(candidates),
            workers,
            len(documents),
            len(errors),
        )
        return ScanResult(
            documents=documents,
            stats=ScanStats(
                files_scanned=len(candidates),
                documents_extracted=len(documents),
                duration_ms=duration_ms,
                errors=errors,
            ),
        )

    def _candidates(
        self,
        root: Path,
        rules: Sequence[IgnoreRule],
        include: Optional[Sequence[str]],
    ) -> Iterator[str]:
        if include and not any(_is_glob(pattern) for pattern in include):
            for rel_path in sorted(set(include)):
                rel_path = rel_path.strip("/")
                if _in_excluded_dir(rel_path) or should_ignore(rel_path, False, rules):
                    continue
                if (root / rel_path).is_file():
                    yield rel_path
            return

        for rel_path in _iter_files(root, rules):
            if include and not _matches_include(rel_path, include):
                continue
            yield rel_path


__all__ = [
    "EXCLUDED_DIRS",
    "IgnoreRule",
    "RepoScanner",
    "build_ignore_rules",
    "detect_language",
    "load_gitignore",
    "should_ignore",
]
