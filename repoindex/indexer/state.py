"""Persistence for the indexer state file."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from ..logging import get_logger
from .types import IndexerState

INDEXER_VERSION = "1.0.0"

_STATE_ADAPTER: TypeAdapter[IndexerState] = TypeAdapter(IndexerState)
_LOGGER = get_logger("indexer.state")


def load_state(path: Path) -> Optional[IndexerState]:
    """Return the persisted state, or ``None`` when it is missing or unusable.

    A state written by a different indexer version is still returned; the
    mismatch is only logged.
    """
    try:
        payload = path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        _LOGGER.debug("Unable to read indexer state %s: %s", path, exc)
        return None

    try:
        state = _STATE_ADAPTER.validate_json(payload)
    except ValidationError as exc:
        _LOGGER.debug("Discarding unreadable indexer state %s (%d issue(s))", path, exc.error_count())
        return None

    if state.version != INDEXER_VERSION:
        _LOGGER.warning(
            "Indexer state version mismatch: %s vs %s. Re-indexing may be required.",
            state.version,
            INDEXER_VERSION,
        )
    return state


def save_state(path: Path, state: IndexerState) -> None:
    """Replace the state file with ``state``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = _STATE_ADAPTER.dump_json(state, indent=2)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def serialize_state(state: IndexerState) -> dict:
    """Return the JSON-compatible form of ``state``."""
    return _STATE_ADAPTER.dump_python(state, mode="json")


__all__ = ["INDEXER_VERSION", "load_state", "save_state", "serialize_state"]
