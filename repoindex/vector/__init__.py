"""Default local vector backend."""

from .embedder import LocalEmbedder
from .storage import VectorStorage
from .store import EmbeddingStore

__all__ = ["EmbeddingStore", "LocalEmbedder", "VectorStorage"]
