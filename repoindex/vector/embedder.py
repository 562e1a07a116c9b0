"""Local feature-hashing embedder."""

from __future__ import annotations

import math
import re
import zlib
from collections import Counter
from typing import Iterable, List

_WORD_PATTERN = re.compile(r"[A-Za-z0-9_]+")
_CAMEL_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")


def tokenize(text: str) -> List[str]:
    """Lowercased tokens; identifiers also contribute their camelCase and snake_case parts."""
    tokens: List[str] = []
    for word in _WORD_PATTERN.findall(text):
        lowered = word.lower()
        tokens.append(lowered)
        parts = [
            piece.lower()
            for chunk in word.split("_")
            for piece in _CAMEL_PATTERN.findall(chunk)
        ]
        if len(parts) > 1:
            tokens.extend(parts)
    return tokens


class LocalEmbedder:
    """Bag-of-words embeddings hashed into a fixed number of dimensions."""

    def __init__(self, *, dimension: int = 384, model_name: str = "local/hashed-bow") -> None:
        if dimension < 1:
            raise ValueError("dimension must be positive")
        self.dimension = dimension
        self.model_name = model_name

    def embed(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        counts = Counter(tokenize(text))
        if not counts:
            return vector
        for token, count in counts.items():
            bucket = zlib.crc32(token.encode("utf-8")) % self.dimension
            vector[bucket] += float(count)
        norm = math.sqrt(sum(value * value for value in vector)) or 1.0
        return [value / norm for value in vector]

    def embed_many(self, texts: Iterable[str]) -> List[List[float]]:
        return [self.embed(text) for text in texts]


__all__ = ["LocalEmbedder", "tokenize"]
