"""CLI entrypoints for repoindex commands."""

from __future__ import annotations

import argparse
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from .config import ConfigError, load_config
from .indexer import (
    DetailedIndexStats,
    IndexOptions,
    RepositoryIndexer,
    UpdateOptions,
    compare_stats,
    export_stats_as_csv,
    export_stats_as_json,
    export_stats_as_markdown,
    format_diff_summary,
)
from .logging import configure_logging
from .models import SearchOptions

_STATS_EXPORTERS = {
    "csv": export_stats_as_csv,
    "json": export_stats_as_json,
    "markdown": export_stats_as_markdown,
}


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )


def _add_indexing_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Documents per embedding batch (defaults to the configured batch size).",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="GLOB",
        help="Additional path pattern to exclude; may be repeated.",
    )
    parser.add_argument(
        "--language",
        action="append",
        default=[],
        dest="languages",
        help="Only index the given language; may be repeated.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-index tracked files without comparing content hashes.",
    )


def _parse_since(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repoindex",
        description="Index a repository for semantic code search and keep the index current.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write detailed logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    index_parser = subparsers.add_parser(
        "index",
        help="Scan and index the whole repository.",
    )
    _add_verbose_option(index_parser, suppress_default=True)
    _add_path_argument(index_parser)
    _add_indexing_options(index_parser)

    update_parser = subparsers.add_parser(
        "update",
        help="Re-index only files that changed since the last run.",
    )
    _add_verbose_option(update_parser, suppress_default=True)
    _add_path_argument(update_parser)
    _add_indexing_options(update_parser)
    update_parser.add_argument(
        "--since",
        type=_parse_since,
        default=None,
        help="Only consider files modified after this ISO-8601 timestamp.",
    )

    search_parser = subparsers.add_parser(
        "search",
        help="Search the indexed repository.",
    )
    _add_verbose_option(search_parser, suppress_default=True)
    search_parser.add_argument("query", help="Natural language or identifier query.")
    search_parser.add_argument(
        "--path",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    search_parser.add_argument("--limit", type=int, default=10, help="Maximum number of results.")
    search_parser.add_argument(
        "--threshold",
        type=float,
        default=0.0,
        help="Minimum similarity score for a result.",
    )

    stats_parser = subparsers.add_parser(
        "stats",
        help="Show statistics recorded by the last index or update.",
    )
    _add_verbose_option(stats_parser, suppress_default=True)
    _add_path_argument(stats_parser)
    stats_parser.add_argument(
        "--format",
        choices=sorted(_STATS_EXPORTERS) + ["text"],
        default="text",
        help="Output format for the statistics (default: text).",
    )
    stats_parser.add_argument(
        "--json",
        action="store_const",
        const="json",
        dest="format",
        help="Shorthand for --format json.",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


@contextmanager
def _open_indexer(path: str) -> Iterator[RepositoryIndexer]:
    repo_path = Path(path).expanduser().resolve()
    if not repo_path.is_dir():
        raise FileNotFoundError(f"Repository path not found: {path}")
    indexer = RepositoryIndexer(load_config(repo_path))
    indexer.initialize()
    try:
        yield indexer
    finally:
        indexer.close()


def _print_run_summary(action: str, stats: DetailedIndexStats) -> None:
    print(
        f"{action} {stats.documents_indexed}/{stats.documents_extracted} document(s) "
        f"from {stats.files_scanned} file(s) in {stats.duration_ms} ms"
    )
    for error in stats.errors:
        location = f" [{error.file}]" if error.file else ""
        print(f"  {error.kind} error{location}: {error.message}")
    if stats.stats_metadata is not None and stats.stats_metadata.warning:
        print(f"Warning: {stats.stats_metadata.warning}")


def _print_stats(stats: DetailedIndexStats) -> None:
    print(f"Repository: {stats.repository_path}")
    print(f"Files: {stats.files_scanned}")
    print(f"Documents: {stats.documents_extracted}")
    print(f"Vectors: {stats.vectors_stored}")
    print(f"Last full index: {stats.start_time.isoformat()}")
    for language, language_stats in sorted((stats.by_language or {}).items()):
        print(
            f"  {language}: {language_stats.files} file(s), "
            f"{language_stats.components} component(s), {language_stats.lines} line(s)"
        )
    for package_path, package in sorted((stats.by_package or {}).items()):
        print(f"  package {package.name} ({package_path}): {package.files} file(s)")
    if stats.stats_metadata is not None and stats.stats_metadata.warning:
        print(f"Warning: {stats.stats_metadata.warning}")


def _run_command(args: argparse.Namespace) -> None:
    if args.command == "index":
        with _open_indexer(args.path) as indexer:
            stats = indexer.index(
                IndexOptions(
                    batch_size=args.batch_size,
                    exclude_patterns=tuple(args.exclude),
                    languages=tuple(args.languages),
                    force=args.force,
                )
            )
        _print_run_summary("Indexed", stats)
    elif args.command == "update":
        with _open_indexer(args.path) as indexer:
            before = indexer.get_stats()
            stats = indexer.update(
                UpdateOptions(
                    batch_size=args.batch_size,
                    exclude_patterns=tuple(args.exclude),
                    languages=tuple(args.languages),
                    force=args.force,
                    since=args.since,
                )
            )
            after = indexer.get_stats()
        metadata = stats.stats_metadata
        if stats.files_scanned == 0 and not stats.errors and (metadata is None or not metadata.affected_languages):
            print("Index already up to date")
        else:
            _print_run_summary("Updated", stats)
            if before is not None and after is not None:
                print(format_diff_summary(compare_stats(before, after)))
    elif args.command == "search":
        with _open_indexer(args.path) as indexer:
            results = indexer.search(
                args.query, SearchOptions(limit=args.limit, score_threshold=args.threshold)
            )
        if not results:
            print("No results")
        for result in results:
            meta = result.metadata
            name = meta.name or meta.type
            print(f"{result.score:.3f}  {meta.path}:{meta.start_line}-{meta.end_line}  {meta.type} {name}")
    elif args.command == "stats":
        with _open_indexer(args.path) as indexer:
            stats = indexer.get_stats()
        if stats is None:
            raise FileNotFoundError("No index found. Run `repoindex index` first.")
        exporter = _STATS_EXPORTERS.get(args.format)
        if exporter is None:
            _print_stats(stats)
        else:
            print(exporter(stats))
    elif args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        raise RuntimeError("Unknown command")


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repoindex commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), quiet=args.quiet, log_file=args.log_file)

    try:
        _run_command(args)
    except FileNotFoundError as exc:
        parser.exit(1, f"{exc}\n")
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")
    except RuntimeError as exc:
        parser.exit(1, f"repoindex {args.command} failed: {exc}\nRun with --verbose for more details.\n")


if __name__ == "__main__":
    main(sys.argv[1:])
