"""
Retrieval-augmented context pipeline.

Embeddings, the per-user vector store, entity indexers and the context
retriever used to ground assistant responses in the user's own data.
"""

from .auto_index import AutoIndexer
from .embeddings import EmbeddingError, EmbeddingResult, EmbeddingService, cosine_similarity
from .indexer import RAGIndexer
from .retriever import RAGRetriever, RetrievedContext, infer_entity_types
from .vector_store import VectorSearchResult, VectorStore, VectorStoreDocument

__all__ = [
    "AutoIndexer",
    "EmbeddingError",
    "EmbeddingResult",
    "EmbeddingService",
    "RAGIndexer",
    "RAGRetriever",
    "RetrievedContext",
    "VectorSearchResult",
    "VectorStore",
    "VectorStoreDocument",
    "cosine_similarity",
    "infer_entity_types",
]
