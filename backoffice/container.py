"""Process-wide wiring of the back office services.

Every component takes its collaborators through its constructor; this
module builds the default graph once per process and hands out shared
instances. Tests construct components directly or call ``reset_container``.
"""

from __future__ import annotations

from typing import Optional

from .automations import ActionExecutor, AutomationEngine, AutomationService
from .config import CONFIG
from .db import get_database_client
from .rag import AutoIndexer, EmbeddingService, RAGIndexer, RAGRetriever, VectorStore
from .services.assistant import AssistantService
from .services.messaging import WebhookMessagingGateway
from .workflows import WorkflowRouter


_embedding_service: Optional[EmbeddingService] = None
_vector_store: Optional[VectorStore] = None
_indexer: Optional[RAGIndexer] = None
_auto_indexer: Optional[AutoIndexer] = None
_retriever: Optional[RAGRetriever] = None
_assistant: Optional[AssistantService] = None
_router: Optional[WorkflowRouter] = None
_messaging: Optional[WebhookMessagingGateway] = None
_engine: Optional[AutomationEngine] = None
_automation_service: Optional[AutomationService] = None


def reset_container() -> None:
    global _embedding_service, _vector_store, _indexer, _auto_indexer, _retriever
    global _assistant, _router, _messaging, _engine, _automation_service
    _embedding_service = _vector_store = _indexer = _auto_indexer = _retriever = None
    _assistant = _router = _messaging = _engine = _automation_service = None


def get_embedding_service() -> EmbeddingService:
    global _embedding_service
    if _embedding_service is None:
        _embedding_service = EmbeddingService()
    return _embedding_service


def get_vector_store() -> VectorStore:
    global _vector_store
    if _vector_store is None:
        _vector_store = VectorStore(get_database_client(), get_embedding_service())
    return _vector_store


def get_indexer() -> RAGIndexer:
    global _indexer
    if _indexer is None:
        _indexer = RAGIndexer(get_database_client(), get_vector_store())
    return _indexer


def get_auto_indexer() -> AutoIndexer:
    global _auto_indexer
    if _auto_indexer is None:
        _auto_indexer = AutoIndexer(get_indexer())
    return _auto_indexer


def get_retriever() -> RAGRetriever:
    global _retriever
    if _retriever is None:
        _retriever = RAGRetriever(get_vector_store())
    return _retriever


def get_assistant() -> AssistantService:
    global _assistant
    if _assistant is None:
        _assistant = AssistantService(get_retriever())
    return _assistant


def index_created_entity(entity_type: str, user_id: str, entity_id: str) -> None:
    """Hand a freshly written record to the indexer, queued or inline depending on ``RAG_INDEX_ASYNC``."""

    if CONFIG.rag_index_async:
        from .worker.tasks import index_entity

        index_entity.delay(entity_type, user_id, entity_id)
        return
    get_auto_indexer().index(entity_type, user_id, entity_id)


def get_workflow_router() -> WorkflowRouter:
    global _router
    if _router is None:
        _router = WorkflowRouter(
            get_database_client(),
            retriever=get_retriever(),
            assistant=get_assistant(),
            on_entity_created=index_created_entity,
        )
    return _router


def get_messaging_gateway() -> WebhookMessagingGateway:
    global _messaging
    if _messaging is None:
        _messaging = WebhookMessagingGateway()
    return _messaging


def get_automation_engine() -> AutomationEngine:
    global _engine
    if _engine is None:
        db = get_database_client()
        executor = ActionExecutor(db, get_workflow_router(), get_messaging_gateway())
        _engine = AutomationEngine(db, executor)
    return _engine


def get_automation_service() -> AutomationService:
    global _automation_service
    if _automation_service is None:
        _automation_service = AutomationService(get_database_client(), get_automation_engine())
    return _automation_service


__all__ = [
    "get_assistant",
    "get_auto_indexer",
    "get_automation_engine",
    "get_automation_service",
    "get_embedding_service",
    "get_indexer",
    "get_messaging_gateway",
    "get_retriever",
    "get_vector_store",
    "get_workflow_router",
    "index_created_entity",
    "reset_container",
]
