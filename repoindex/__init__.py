"""Incremental repository indexing for semantic code search."""

from .config import ConfigError, IndexerConfig, load_config
from .indexer import RepositoryIndexer

__version__ = "0.1.0"

__all__ = ["ConfigError", "IndexerConfig", "RepositoryIndexer", "load_config", "__version__"]
