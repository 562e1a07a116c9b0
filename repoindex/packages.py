"""Discovery of workspace packages nested inside a repository."""

from __future__ import annotations

import json
import os
import re
import tomllib
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from .logging import get_logger
from .scanner import EXCLUDED_DIRS, build_ignore_rules, should_ignore

_LOGGER = get_logger("packages")
_GO_MODULE_RE = re.compile(r"^\s*module\s+(\S+)", re.MULTILINE)


def _package_json_name(path: Path) -> Optional[str]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    name = payload.get("name") if isinstance(payload, dict) else None
    return name if isinstance(name, str) and name else None


def _go_module_name(path: Path) -> Optional[str]:
    match = _GO_MODULE_RE.search(path.read_text(encoding="utf-8"))
    return match.group(1) if match else None


def _pyproject_name(path: Path) -> Optional[str]:
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    project = payload.get("project")
    name = project.get("name") if isinstance(project, dict) else None
    return name if isinstance(name, str) and name else None


_MANIFEST_READERS: Dict[str, Callable[[Path], Optional[str]]] = {
    "package.json": _package_json_name,
    "go.mod": _go_module_name,
    "pyproject.toml": _pyproject_name,
}


def discover_packages(root: Path, exclude: Sequence[str] = ()) -> Dict[str, str]:
    """Return ``{relative_dir: package_name}`` for manifests below ``root``.

    The manifest at the repository root describes the whole repository and
    is not reported. Unreadable manifests are skipped.
    """
    root = Path(root).resolve()
    rules = build_ignore_rules(exclude)
    packages: Dict[str, str] = {}

    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""
        dirnames[:] = sorted(
            name
            for name in dirnames
            if name not in EXCLUDED_DIRS
            and not should_ignore(f"{rel_dir}/{name}" if rel_dir else name, True, rules)
        )
        if not rel_dir:
            continue

        for manifest, reader in _MANIFEST_READERS.items():
            if manifest not in filenames:
                continue
            try:
                name = reader(current_dir / manifest)
            except (OSError, ValueError) as exc:
                _LOGGER.debug("Skipping unreadable manifest %s/%s: %s", rel_dir, manifest, exc)
                continue
            if name:
                packages[rel_dir] = name
                break

    return packages


__all__ = ["discover_packages"]
