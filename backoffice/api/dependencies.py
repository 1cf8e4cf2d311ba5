"""FastAPI dependencies shared across the API."""

from __future__ import annotations

from fastapi import Header, HTTPException, status

from ..auth import require_auth, require_shared_secret
from ..config import CONFIG
from ..db import DatabaseClient, get_database_client


def get_current_user_id(authorization: str = Header(None)) -> str:
    """Resolve the authenticated Supabase user from the Authorization header."""

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return require_auth(authorization)


def get_database() -> DatabaseClient:
    """Return the shared database client instance."""

    return get_database_client()


def verify_cron_secret(authorization: str = Header(None)) -> None:
    """Cron callers present ``Bearer <CRON_SECRET>``; open when no secret is configured."""

    require_shared_secret(authorization, CONFIG.cron_secret)


def verify_workflow_key(authorization: str = Header(None)) -> None:
    """n8n callers present ``Bearer <N8N_API_KEY>``."""

    if not CONFIG.n8n_api_key and not CONFIG.is_development:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workflow API key is not configured",
        )
    require_shared_secret(authorization, CONFIG.n8n_api_key)
