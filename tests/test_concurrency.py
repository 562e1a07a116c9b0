"""Tests for repoindex.concurrency."""

from __future__ import annotations

import pytest

from repoindex.concurrency import (
    MAX_CONCURRENCY,
    SystemResources,
    calculate_optimal_concurrency,
    current_system_resources,
    optimal_concurrency,
    parse_concurrency_from_env,
)


@pytest.mark.parametrize(
    ("context", "cpus", "memory", "expected"),
    [
        ("indexer", 16, 2.0, 2),
        ("indexer", 16, 6.0, 3),
        ("indexer", 8, 16.0, 5),
        ("indexer", 4, 16.0, 4),
        ("scanner", 16, 2.0, 5),
        ("scanner", 16, 6.0, 15),
        ("scanner", 8, 16.0, 30),
        ("scanner", 4, 16.0, 20),
    ],
)
def test_calculate_optimal_concurrency(context: str, cpus: int, memory: float, expected: int) -> None:
    assert calculate_optimal_concurrency(context, SystemResources(cpu_count=cpus, memory_gb=memory)) == expected


def test_context_specific_variable_wins() -> None:
    environ = {"REPOINDEX_INDEXER_CONCURRENCY": "7", "REPOINDEX_CONCURRENCY": "3"}

    assert parse_concurrency_from_env("indexer", environ) == 7
    assert parse_concurrency_from_env("scanner", environ) == 3


@pytest.mark.parametrize("raw", ["0", "-2", "101", "lots", "", "  "])
def test_invalid_values_are_ignored(raw: str) -> None:
    assert parse_concurrency_from_env("indexer", {"REPOINDEX_CONCURRENCY": raw}) is None


def test_values_are_capped() -> None:
    assert parse_concurrency_from_env("indexer", {"REPOINDEX_CONCURRENCY": "90"}) == MAX_CONCURRENCY
    assert parse_concurrency_from_env("indexer", {"REPOINDEX_CONCURRENCY": "90"}, max_value=10) == 10


def test_optimal_concurrency_prefers_environment() -> None:
    resources = SystemResources(cpu_count=2, memory_gb=2.0)

    assert optimal_concurrency("indexer", resources, {"REPOINDEX_CONCURRENCY": "9"}) == 9
    assert optimal_concurrency("indexer", resources, {}) == 2


def test_current_system_resources_is_positive() -> None:
    resources = current_system_resources()

    assert resources.cpu_count >= 1
    assert resources.memory_gb > 0
