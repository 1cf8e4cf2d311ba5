"""Per-user embedding storage with brute-force cosine search."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .embeddings import EmbeddingService, cosine_similarity


logger = logging.getLogger(__name__)


@dataclass
class VectorStoreDocument:
    entity_type: str
    entity_id: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorSearchResult:
    id: str
    entity_type: str
    entity_id: str
    content: str
    metadata: Dict[str, Any]
    similarity: float

    @classmethod
    def from_record(cls, record: Dict[str, Any], similarity: float) -> "VectorSearchResult":
        return cls(
            id=str(record.get("id") or ""),
            entity_type=record.get("entity_type") or "",
            entity_id=str(record.get("entity_id") or ""),
            content=record.get("content") or "",
            metadata=record.get("metadata") or {},
            similarity=similarity,
        )


class VectorStore:
    """
    Stores (entity, content, embedding) rows per user and answers
    nearest-neighbour queries by scoring every stored row.

    Search is O(n) in the number of rows a user owns; fine for small
    single-tenant corpora, swap in an ANN index behind ``search_similar``
    for anything larger.
    """

    def __init__(self, db, embeddings: EmbeddingService):
        self.db = db
        self.embeddings = embeddings

    def store_embedding(self, user_id: str, document: VectorStoreDocument, chunk_index: int = 0) -> None:
        try:
            result = self.embeddings.generate_embedding(document.content)
            self.db.upsert_vector_embedding(
                {
                    "user_id": user_id,
                    "entity_type": document.entity_type,
                    "entity_id": document.entity_id,
                    "chunk_index": chunk_index,
                    "content": document.content,
                    "embedding": result.embedding,
                    "metadata": document.metadata or {},
                }
            )
        except Exception as exc:
            logger.error(
                "Error storing embedding for %s:%s: %s",
                document.entity_type,
                document.entity_id,
                exc,
            )
            raise

    def store_embeddings(self, user_id: str, documents: Iterable[VectorStoreDocument]) -> int:
        """Store documents one by one; failures are logged and skipped. Returns the stored count."""
        stored = 0
        for document in documents:
            try:
                self.store_embedding(user_id, document)
            except Exception as exc:
                logger.warning(
                    "Skipping embedding for %s:%s: %s",
                    document.entity_type,
                    document.entity_id,
                    exc,
                )
                continue
            stored += 1
        return stored

    def search_similar(
        self,
        user_id: str,
        query_text: str,
        *,
        entity_types: Optional[List[str]] = None,
        limit: int = 5,
        min_similarity: float = 0.7,
    ) -> List[VectorSearchResult]:
        query_embedding = self.embeddings.generate_embedding(query_text).embedding
        rows = self.db.list_vector_embeddings(user_id, entity_types or None)

        results: List[VectorSearchResult] = []
        for row in rows:
            stored = row.get("embedding")
            if not isinstance(stored, list) or len(stored) != len(query_embedding):
                continue
            similarity = cosine_similarity(query_embedding, stored)
            if similarity >= min_similarity:
                results.append(VectorSearchResult.from_record(row, similarity))

        results.sort(key=lambda item: item.similarity, reverse=True)
        return results[:limit]

    def delete_embeddings(self, user_id: str, entity_type: str, entity_id: str) -> int:
        removed = self.db.delete_vector_embeddings(user_id, entity_type, entity_id)
        logger.info("Deleted %s embedding(s) for %s:%s", removed, entity_type, entity_id)
        return removed

    def is_indexed(self, user_id: str, entity_type: str, entity_id: str) -> bool:
        return self.db.count_vector_embeddings(user_id, entity_type, entity_id) > 0


__all__ = ["VectorSearchResult", "VectorStore", "VectorStoreDocument"]
