"""Concurrency sizing for the indexing pipeline and scanners."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

ENV_PREFIX = "REPOINDEX"
MAX_CONCURRENCY = 50
_ENV_CEILING = 100
_GIB = 1024 ** 3
# Assumed when physical memory cannot be determined.
_FALLBACK_MEMORY_GB = 8.0


@dataclass(frozen=True)
class SystemResources:
    cpu_count: int
    memory_gb: float


def calculate_optimal_concurrency(context: str, resources: SystemResources) -> int:
    """Return the parallelism suited to ``context`` on a machine like ``resources``.

    The ``indexer`` context embeds and stores documents and is memory bound;
    every other context is treated as a scanner.
    """
    if context == "indexer":
        if resources.memory_gb < 4:
            return 2
        if resources.memory_gb < 8:
            return 3
        if resources.cpu_count >= 8:
            return 5
        return 4
    if resources.memory_gb < 4:
        return 5
    if resources.memory_gb < 8:
        return 15
    if resources.cpu_count >= 8:
        return 30
    return 20


def parse_concurrency_from_env(
    context: str,
    environ: Mapping[str, str],
    max_value: int = MAX_CONCURRENCY,
) -> Optional[int]:
    """Read ``REPOINDEX_<CONTEXT>_CONCURRENCY`` or ``REPOINDEX_CONCURRENCY``.

    Values outside 1..100 or that are not integers are ignored; accepted
    values are capped at ``max_value``.
    """
    raw = environ.get(f"{ENV_PREFIX}_{context.upper()}_CONCURRENCY") or environ.get(
        f"{ENV_PREFIX}_CONCURRENCY"
    )
    if not raw:
        return None
    try:
        parsed = int(raw.strip())
    except ValueError:
        return None
    if parsed <= 0 or parsed > _ENV_CEILING:
        return None
    return min(parsed, max_value)


def current_system_resources() -> SystemResources:
    cpu_count = os.cpu_count() or 1
    try:
        memory_bytes = os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        memory_bytes = 0
    memory_gb = memory_bytes / _GIB if memory_bytes > 0 else _FALLBACK_MEMORY_GB
    return SystemResources(cpu_count=cpu_count, memory_gb=memory_gb)


def optimal_concurrency(
    context: str,
    resources: Optional[SystemResources] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    """Environment override first, then the resource based estimate."""
    override = parse_concurrency_from_env(context, os.environ if environ is None else environ)
    if override is not None:
        return override
    if resources is None:
        resources = current_system_resources()
    return max(1, calculate_optimal_concurrency(context, resources))


__all__ = [
    "MAX_CONCURRENCY",
    "SystemResources",
    "calculate_optimal_concurrency",
    "current_system_resources",
    "optimal_concurrency",
    "parse_concurrency_from_env",
]
