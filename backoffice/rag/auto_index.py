"""Fire-and-forget indexing hooks invoked after business records change."""

from __future__ import annotations

import logging

from .indexer import RAGIndexer


logger = logging.getLogger(__name__)


class AutoIndexer:
    """Index one entity without ever raising into the caller."""

    def __init__(self, indexer: RAGIndexer):
        self.indexer = indexer
        self._handlers = {
            "client": indexer.index_client,
            "invoice": indexer.index_invoice,
            "quote": indexer.index_quote,
            "project": indexer.index_project,
            "conversation": indexer.index_conversation,
        }

    @property
    def entity_types(self) -> list[str]:
        return list(self._handlers)

    def index(self, entity_type: str, user_id: str, entity_id: str) -> bool:
        handler = self._handlers.get(entity_type)
        if handler is None:
            logger.warning("Auto-index skipped: unsupported entity type %s (%s)", entity_type, entity_id)
            return False
        try:
            return bool(handler(user_id, entity_id))
        except Exception as exc:
            logger.error("Auto-index failed for %s %s: %s", entity_type, entity_id, exc)
            return False

    def index_client(self, user_id: str, client_id: str) -> bool:
        return self.index("client", user_id, client_id)

    def index_invoice(self, user_id: str, invoice_id: str) -> bool:
        return self.index("invoice", user_id, invoice_id)

    def index_quote(self, user_id: str, quote_id: str) -> bool:
        return self.index("quote", user_id, quote_id)

    def index_project(self, user_id: str, project_id: str) -> bool:
        return self.index("project", user_id, project_id)

    def index_conversation(self, user_id: str, conversation_id: str) -> bool:
        return self.index("conversation", user_id, conversation_id)
