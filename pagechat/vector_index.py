"""In-memory vector index with exact cosine similarity search."""

import threading
from collections.abc import Iterable

import numpy as np

from .config import config
from .models import DocumentChunk

logger = config.get_logger(__name__)

# Below every cosine similarity, so chunks without a vector always rank last.
UNEMBEDDED_SCORE = float("-inf")


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two vectors; 0.0 if either has zero magnitude.

    Raises:
        ValueError: If the vectors have different dimensions.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        msg = f"Vector dimensions differ: {a.shape} vs {b.shape}"
        raise ValueError(msg)
    magnitude = np.linalg.norm(a) * np.linalg.norm(b)
    if magnitude == 0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


class VectorIndex:
    """Holds the chunks of the currently loaded document.

    Only one generation of chunks is live at a time; ``replace`` swaps
    generations in one step so a search sees either the old set or the new
    one, never a mix.
    """

    def __init__(self) -> None:
        self._chunks: list[DocumentChunk] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def chunks(self) -> list[DocumentChunk]:
        return list(self._chunks)

    @property
    def embedded_count(self) -> int:
        return sum(1 for chunk in self._chunks if chunk.embedding is not None)

    def add(self, chunks: Iterable[DocumentChunk]) -> None:
        """Append chunks to the live generation. Ids are not deduplicated."""
        new_chunks = list(chunks)
        if not new_chunks:
            return
        with self._lock:
            self._chunks = [*self._chunks, *new_chunks]
        logger.info("Added %d chunks to index", len(new_chunks))

    def clear(self) -> None:
        with self._lock:
            self._chunks = []
        logger.info("Vector index cleared")

    def replace(self, chunks: Iterable[DocumentChunk]) -> None:
        """Discard the live generation and install ``chunks`` atomically."""
        new_chunks = list(chunks)
        with self._lock:
            self._chunks = new_chunks
        logger.info("Vector index replaced with %d chunks", len(new_chunks))

    def _score(self, query: np.ndarray, chunks: list[DocumentChunk]) -> list[float]:
        scores = [UNEMBEDDED_SCORE] * len(chunks)
        positions = [i for i, chunk in enumerate(chunks) if chunk.embedding is not None]
        if not positions:
            return scores

        matrix = np.vstack([chunks[i].embedding for i in positions]).astype(np.float64)
        if matrix.shape[1] != query.shape[0]:
            msg = (
                f"Query dimension {query.shape[0]} does not match "
                f"index dimension {matrix.shape[1]}"
            )
            raise ValueError(msg)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        similarities = np.divide(
            dots, norms, out=np.zeros_like(dots), where=norms > 0
        )
        for position, similarity in zip(positions, similarities, strict=True):
            scores[position] = float(similarity)
        return scores

    def search(
        self,
        query_embedding: np.ndarray,
        top_k: int = 5,
    ) -> list[tuple[DocumentChunk, float]]:
        """Rank every indexed chunk against ``query_embedding``.

        Chunks without a vector score ``UNEMBEDDED_SCORE``. Ties keep
        insertion order.

        Returns:
            Up to ``top_k`` (DocumentChunk, score) pairs, best first.
        """
        with self._lock:
            chunks = self._chunks
        if not chunks or top_k <= 0:
            return []

        query = np.asarray(query_embedding, dtype=np.float64).ravel()
        scores = self._score(query, chunks)
        order = sorted(range(len(chunks)), key=lambda i: -scores[i])
        return [(chunks[i], scores[i]) for i in order[:top_k]]
