"""Retrieve relevant business context for AI prompts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import CONFIG
from .vector_store import VectorStore


logger = logging.getLogger(__name__)

CONTEXT_HEADER = "RELEVANTE CONTEXT UIT JE DATA:\n"

# First match wins, so order matters.
KEYWORD_ENTITY_TYPES: Tuple[Tuple[Tuple[str, ...], List[str]], ...] = (
    (("klant", "client", "customer"), ["client"]),
    (("factuur", "invoice", "betal"), ["invoice", "client"]),
    (("offerte", "quote", "proposal"), ["quote", "client"]),
    (("project",), ["project", "client"]),
    (("vorig", "gesprek", "conversatie"), ["conversation"]),
)


@dataclass
class RetrievedContext:
    content: str = ""
    sources: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "sources": list(self.sources)}


def infer_entity_types(text: Optional[str]) -> Optional[List[str]]:
    lowered = (text or "").lower()
    for keywords, entity_types in KEYWORD_ENTITY_TYPES:
        if any(keyword in lowered for keyword in keywords):
            return list(entity_types)
    return None


class RAGRetriever:
    def __init__(self, vector_store: VectorStore):
        self.vector_store = vector_store

    def retrieve_context(
        self,
        user_id: str,
        query: str,
        *,
        entity_types: Optional[Sequence[str]] = None,
        max_results: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ) -> RetrievedContext:
        """
        Search the user's index and format the hits for prompt injection.

        Each hit renders as ``[n] <content> (Bron: <type>:<id>, Relevante: 87.5%)``.
        Errors are logged and produce an empty context.
        """

        try:
            results = self.vector_store.search_similar(
                user_id,
                query,
                entity_types=list(entity_types) if entity_types else None,
                limit=max_results or CONFIG.rag_max_results,
                min_similarity=CONFIG.rag_min_similarity if min_similarity is None else min_similarity,
            )
        except Exception as exc:
            logger.error("Error retrieving context for user %s: %s", user_id, exc)
            return RetrievedContext()

        parts = [
            f"[{index}] {result.content} "
            f"(Bron: {result.entity_type}:{result.entity_id}, Relevante: {result.similarity * 100:.1f}%)"
            for index, result in enumerate(results, start=1)
        ]
        content = CONTEXT_HEADER + "\n\n".join(parts) if parts else ""

        return RetrievedContext(
            content=content,
            sources=[
                {
                    "type": result.entity_type,
                    "id": result.entity_id,
                    "metadata": result.metadata,
                    "similarity": result.similarity,
                }
                for result in results
            ],
        )

    def retrieve_smart_context(self, user_id: str, query: str, intent: Optional[str] = None) -> RetrievedContext:
        """Narrow entity types from query keywords (falling back to the intent hint)."""
        entity_types = infer_entity_types(query) or infer_entity_types(intent)
        return self.retrieve_context(
            user_id,
            query,
            entity_types=entity_types,
            max_results=CONFIG.rag_max_results,
            min_similarity=CONFIG.rag_smart_min_similarity,
        )


__all__ = ["CONTEXT_HEADER", "RAGRetriever", "RetrievedContext", "infer_entity_types"]
