"""Configuration loading for repoindex (.repoindex.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".repoindex.yml"
STATE_DIRNAME = ".repoindex"
DEFAULT_STATE_FILENAME = "indexer-state.json"
DEFAULT_VECTOR_FILENAME = "vectors.json"
DEFAULT_EMBEDDING_MODEL = "local/hashed-bow"
DEFAULT_EMBEDDING_DIMENSION = 384
DEFAULT_BATCH_SIZE = 32


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class IndexerConfig:
    """Effective settings for one repository indexer.

    Only ``repository_path`` is required. ``state_path`` and
    ``vector_store_path`` default to files under ``<repo>/.repoindex/``.
    """

    repository_path: Path
    vector_store_path: Optional[Path] = None
    state_path: Optional[Path] = None
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dimension: int = DEFAULT_EMBEDDING_DIMENSION
    batch_size: int = DEFAULT_BATCH_SIZE
    exclude_patterns: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.repository_path = Path(self.repository_path).expanduser().resolve()
        if self.state_path is None:
            self.state_path = self.repository_path / STATE_DIRNAME / DEFAULT_STATE_FILENAME
        else:
            self.state_path = Path(self.state_path)
        if self.vector_store_path is None:
            self.vector_store_path = self.repository_path / STATE_DIRNAME / DEFAULT_VECTOR_FILENAME
        else:
            self.vector_store_path = Path(self.vector_store_path)
        if self.batch_size < 1:
            raise ConfigError("batch_size must be a positive integer")
        if self.embedding_dimension < 1:
            raise ConfigError("embedding_dimension must be a positive integer")


def load_config(config_path: Path) -> IndexerConfig:
    """Load configuration for the repository containing ``config_path``."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return IndexerConfig(repository_path=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    index_data = _as_dict(data.get("index"))
    embedding_data = _as_dict(data.get("embedding"))

    state_path = _as_str(index_data.get("state_path"))
    vector_store_path = _as_str(index_data.get("vector_store_path"))

    config = IndexerConfig(
        repository_path=root,
        state_path=root / state_path if state_path else None,
        vector_store_path=root / vector_store_path if vector_store_path else None,
    )
    batch_size = _as_int(index_data.get("batch_size"))
    if batch_size is not None:
        if batch_size < 1:
            raise ConfigError("index.batch_size must be a positive integer")
        config.batch_size = batch_size
    config.exclude_patterns = _as_str_list(index_data.get("exclude_paths"))
    config.languages = [language.lower() for language in _as_str_list(index_data.get("languages"))]

    model = _as_str(embedding_data.get("model"))
    if model:
        config.embedding_model = model
    dimension = _as_int(embedding_data.get("dimension"))
    if dimension is not None:
        if dimension < 1:
            raise ConfigError("embedding.dimension must be a positive integer")
        config.embedding_dimension = dimension

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = ["CONFIG_FILENAME", "ConfigError", "IndexerConfig", "STATE_DIRNAME", "load_config"]
