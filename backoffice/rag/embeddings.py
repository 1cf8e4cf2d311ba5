"""OpenAI embeddings generation with validation and batching."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from ..config import CONFIG
from ..services.openai import create_embeddings


logger = logging.getLogger(__name__)

EmbedFn = Callable[..., Tuple[List[List[float]], dict]]


class EmbeddingError(RuntimeError):
    """Raised when an embedding cannot be produced."""


@dataclass
class EmbeddingResult:
    embedding: List[float]
    token_count: Optional[int] = None


def cosine_similarity(first: Sequence[float], second: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors; 0.0 when either norm is zero."""

    if len(first) != len(second):
        raise ValueError(
            f"Embeddings must have the same dimension (got {len(first)} and {len(second)})"
        )

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for a, b in zip(first, second):
        dot += a * b
        norm_a += a * a
        norm_b += b * b

    denominator = math.sqrt(norm_a) * math.sqrt(norm_b)
    if denominator == 0:
        return 0.0
    # Clamp float drift so results stay within [-1, 1].
    return max(-1.0, min(1.0, dot / denominator))


class EmbeddingService:
    """Turns text into fixed-length vectors through the OpenAI embeddings API."""

    def __init__(
        self,
        *,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        embed_fn: Optional[EmbedFn] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.model = model or CONFIG.embedding_model
        self.dimensions = dimensions or CONFIG.embedding_dimensions
        self.batch_size = max(1, min(batch_size or CONFIG.embedding_batch_size, 100))
        self.batch_delay = CONFIG.embedding_batch_delay if batch_delay is None else batch_delay
        self._embed_fn = embed_fn or create_embeddings
        self._sleep = sleep

    def _validate(self, vector: List[float]) -> List[float]:
        if len(vector) != self.dimensions:
            raise EmbeddingError(
                f"Embedding dimension mismatch: expected {self.dimensions}, got {len(vector)}"
            )
        return vector

    def generate_embedding(self, text: str) -> EmbeddingResult:
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        try:
            vectors, metrics = self._embed_fn(
                model=self.model,
                inputs=[text.strip()],
                dimensions=self.dimensions,
            )
        except Exception as exc:
            logger.error("Embedding request failed: %s", exc)
            raise EmbeddingError(f"Failed to generate embedding: {exc}") from exc

        if not vectors:
            raise EmbeddingError("Invalid embedding response: no vectors returned")

        return EmbeddingResult(
            embedding=self._validate(list(vectors[0])),
            token_count=metrics.get("total_tokens"),
        )

    def generate_embeddings(self, texts: Sequence[str]) -> List[Optional[EmbeddingResult]]:
        """
        Embed ``texts`` in batches of at most ``batch_size``.

        The result is aligned with the input: blank texts and members of a
        failed batch come back as ``None`` while the remaining batches still
        run.
        """

        results: List[Optional[EmbeddingResult]] = [None] * len(texts)
        if not texts:
            return results

        for start in range(0, len(texts), self.batch_size):
            positions = [
                index
                for index in range(start, min(start + self.batch_size, len(texts)))
                if texts[index] and texts[index].strip()
            ]
            if not positions:
                continue

            try:
                vectors, metrics = self._embed_fn(
                    model=self.model,
                    inputs=[texts[index].strip() for index in positions],
                    dimensions=self.dimensions,
                )
                if len(vectors) != len(positions):
                    raise EmbeddingError(
                        f"expected {len(positions)} vectors, got {len(vectors)}"
                    )
                vectors = [self._validate(list(vector)) for vector in vectors]
            except Exception as exc:
                logger.error(
                    "Skipping embedding batch %s-%s: %s",
                    start,
                    start + len(positions),
                    exc,
                )
            else:
                total_tokens = metrics.get("total_tokens")
                per_item = total_tokens // len(vectors) if total_tokens else None
                for index, vector in zip(positions, vectors):
                    results[index] = EmbeddingResult(embedding=vector, token_count=per_item)

            if start + self.batch_size < len(texts) and self.batch_delay > 0:
                self._sleep(self.batch_delay)

        return results

    @staticmethod
    def cosine_similarity(first: Sequence[float], second: Sequence[float]) -> float:
        return cosine_similarity(first, second)


__all__ = ["EmbeddingError", "EmbeddingResult", "EmbeddingService", "cosine_similarity"]
