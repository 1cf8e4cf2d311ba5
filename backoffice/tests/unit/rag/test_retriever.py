"""Tests for context retrieval and keyword routing."""

from __future__ import annotations

import pytest

from backoffice.rag.retriever import CONTEXT_HEADER, RAGRetriever, infer_entity_types
from backoffice.rag.vector_store import VectorSearchResult


class StubVectorStore:
    def __init__(self, results=None, error: Exception | None = None):
        self.results = results or []
        self.error = error
        self.calls = []

    def search_similar(self, user_id, query_text, *, entity_types=None, limit=5, min_similarity=0.7):
        self.calls.append(
            {
                "user_id": user_id,
                "query": query_text,
                "entity_types": entity_types,
                "limit": limit,
                "min_similarity": min_similarity,
            }
        )
        if self.error:
            raise self.error
        return list(self.results)


def _result(entity_type: str, entity_id: str, content: str, similarity: float) -> VectorSearchResult:
    return VectorSearchResult(
        id=f"row-{entity_id}",
        entity_type=entity_type,
        entity_id=entity_id,
        content=content,
        metadata={"name": content},
        similarity=similarity,
    )


def test_retrieve_context_formats_numbered_sources() -> None:
    store = StubVectorStore(
        [
            _result("client", "c1", "Klant: Jan Jansen", 0.9),
            _result("invoice", "i1", "Factuur INV-2025-001", 0.75),
        ]
    )

    context = RAGRetriever(store).retrieve_context("user-1", "Jan", max_results=3, min_similarity=0.5)

    assert context.content == (
        CONTEXT_HEADER
        + "[1] Klant: Jan Jansen (Bron: client:c1, Relevante: 90.0%)\n\n"
        + "[2] Factuur INV-2025-001 (Bron: invoice:i1, Relevante: 75.0%)"
    )
    assert context.sources[0] == {"type": "client", "id": "c1", "metadata": {"name": "Klant: Jan Jansen"}, "similarity": 0.9}
    assert store.calls[0]["limit"] == 3
    assert store.calls[0]["min_similarity"] == 0.5


def test_retrieve_context_uses_configured_defaults() -> None:
    store = StubVectorStore()

    context = RAGRetriever(store).retrieve_context("user-1", "anything")

    assert context.content == ""
    assert context.sources == []
    assert store.calls[0]["limit"] == 5
    assert store.calls[0]["min_similarity"] == 0.7


def test_retrieve_context_degrades_to_empty_on_error() -> None:
    store = StubVectorStore(error=RuntimeError("embedding service down"))

    context = RAGRetriever(store).retrieve_context("user-1", "Jan")

    assert context.to_dict() == {"content": "", "sources": []}


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Wat weet je over klant Jansen?", ["client"]),
        ("Is de factuur al betaald?", ["invoice", "client"]),
        ("Stuur de offerte opnieuw", ["quote", "client"]),
        ("Hoeveel uren op project Website?", ["project", "client"]),
        ("Wat zei ik in ons vorige gesprek?", ["conversation"]),
        ("Goedemorgen!", None),
    ],
)
def test_infer_entity_types(text, expected) -> None:
    assert infer_entity_types(text) == expected


def test_infer_entity_types_first_match_wins() -> None:
    assert infer_entity_types("factuur voor klant Jansen") == ["client"]


def test_retrieve_smart_context_narrows_by_keywords() -> None:
    store = StubVectorStore()

    RAGRetriever(store).retrieve_smart_context("user-1", "Welke factuur is nog open?")

    assert store.calls[0]["entity_types"] == ["invoice", "client"]
    assert store.calls[0]["limit"] == 5
    assert store.calls[0]["min_similarity"] == 0.65


def test_retrieve_smart_context_falls_back_to_intent() -> None:
    store = StubVectorStore()

    RAGRetriever(store).retrieve_smart_context("user-1", "Maak er een voor Jansen", intent="CREATE_QUOTE")

    assert store.calls[0]["entity_types"] == ["quote", "client"]


def test_retrieve_smart_context_searches_everything_without_hints() -> None:
    store = StubVectorStore()

    RAGRetriever(store).retrieve_smart_context("user-1", "Goedemorgen")

    assert store.calls[0]["entity_types"] is None
