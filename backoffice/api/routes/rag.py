"""RAG endpoints: reindexing and semantic context search."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from ...container import get_retriever
from ...worker.tasks import reindex_user
from ..dependencies import get_current_user_id
from ..schemas import ContextSearchRequest

router = APIRouter()


@router.post("/rag/reindex", status_code=status.HTTP_202_ACCEPTED)
def queue_reindex(user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    """Queue a full re-index of the caller's clients, documents, projects and conversations."""

    task = reindex_user.delay(user_id)
    return {"success": True, "task_id": task.id, "status": "queued"}


@router.post("/context/search")
def search_context(
    request: ContextSearchRequest,
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    retriever = get_retriever()
    if request.entity_types:
        context = retriever.retrieve_context(
            user_id,
            request.query,
            entity_types=request.entity_types,
            max_results=request.limit,
            min_similarity=request.min_similarity,
        )
    else:
        context = retriever.retrieve_smart_context(user_id, request.query)
    return {
        "success": True,
        "query": request.query,
        **context.to_dict(),
        "total": len(context.sources),
    }
