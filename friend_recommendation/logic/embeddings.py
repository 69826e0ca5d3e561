"""
Static interest embedding table.

One 50-dimensional vector per known interest. Vectors are generated once from
a generator seeded by the interest name, so the table is identical across
processes and restarts.
"""

import zlib
from typing import Dict, Iterable, Optional

import numpy as np

from .constants import EMBEDDING_DIMENSIONS, INTEREST_CATEGORIES


def _interest_vector(interest: str, dimensions: int) -> np.ndarray:
    rng = np.random.default_rng(zlib.crc32(interest.encode("utf-8")))
    return rng.uniform(-0.5, 0.5, size=dimensions)


class EmbeddingTable:
    def __init__(self, interests: Optional[Iterable[str]] = None, dimensions: int = EMBEDDING_DIMENSIONS):
        if interests is None:
            interests = [i for category in INTEREST_CATEGORIES.values() for i in category["interests"]]
        self.dimensions = dimensions
        self._vectors: Dict[str, np.ndarray] = {
            interest: _interest_vector(interest, dimensions) for interest in interests
        }

    def __contains__(self, interest: str) -> bool:
        return interest in self._vectors

    def __len__(self) -> int:
        return len(self._vectors)

    def get(self, interest: str) -> Optional[np.ndarray]:
        return self._vectors.get(interest)

    def embed(self, interests: Iterable[str]) -> np.ndarray:
        """
        Sum the vectors of known interests and L2-normalize.

        Unknown interests are ignored; a user with no known interests gets the
        zero vector.
        """
        total = np.zeros(self.dimensions)
        for interest in interests:
            vector = self._vectors.get(interest)
            if vector is not None:
                total += vector
        norm = np.linalg.norm(total)
        if norm > 0:
            total = total / norm
        return total


DEFAULT_EMBEDDINGS = EmbeddingTable()
