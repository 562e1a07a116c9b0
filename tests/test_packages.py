"""Tests for repoindex.packages."""

from __future__ import annotations

import json

from repoindex.packages import discover_packages
from tests._fixtures.repo_builder import RepoBuilder


def test_discovers_nested_manifests(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": json.dumps({"name": "monorepo"}),
            "packages/web/package.json": json.dumps({"name": "@acme/web"}),
            "services/api/go.mod": "module github.com/acme/api\n\ngo 1.22\n",
            "tools/cli/pyproject.toml": '[project]\nname = "acme-cli"\nversion = "0.1.0"\n',
            "node_modules/left-pad/package.json": json.dumps({"name": "left-pad"}),
        }
    )

    assert discover_packages(repo_builder.path()) == {
        "packages/web": "@acme/web",
        "services/api": "github.com/acme/api",
        "tools/cli": "acme-cli",
    }


def test_skips_unreadable_or_unnamed_manifests(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "broken/package.json": "{not json",
            "anonymous/package.json": json.dumps({"private": True}),
            "badtoml/pyproject.toml": "[project\nname=",
            "nomodule/go.mod": "go 1.22\n",
        }
    )

    assert discover_packages(repo_builder.path()) == {}


def test_respects_exclude_patterns(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "packages/web/package.json": json.dumps({"name": "web"}),
            "examples/demo/package.json": json.dumps({"name": "demo"}),
        }
    )

    assert discover_packages(repo_builder.path(), exclude=["examples/"]) == {"packages/web": "web"}
