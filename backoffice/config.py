"""Environment-driven runtime settings for the back office core."""

from __future__ import annotations

import os
from types import SimpleNamespace
from typing import Optional


def _env_str(
    name: str,
    default: Optional[str] = None,
    *,
    alias: Optional[str] = None,
    empty_to_none: bool = True,
) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None and alias:
        raw = os.getenv(alias)
    if raw is None:
        return default
    value = raw.strip()
    if not value and empty_to_none:
        return None if default is None else default
    return value if value else default


def _env_bool(name: str, default: bool, *, alias: Optional[str] = None) -> bool:
    raw = os.getenv(name)
    if raw is None and alias:
        raw = os.getenv(alias)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float, *, alias: Optional[str] = None) -> float:
    raw = os.getenv(name)
    if raw is None and alias:
        raw = os.getenv(alias)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


class Settings(SimpleNamespace):
    """Simple attribute container used throughout the codebase."""

CONFIG = Settings()


def _compute_values() -> tuple[dict[str, object], dict[str, object]]:
    # -----------------------------------------------------------------------
    # RUNTIME ENVIRONMENT
    # -----------------------------------------------------------------------
    environment = _env_str("ENV", "prod", empty_to_none=False).lower()
    if environment not in {"dev", "test", "prod"}:
        environment = "prod"
    is_development = environment in {"dev", "test"}

    # -----------------------------------------------------------------------
    # PERSISTENCE
    # -----------------------------------------------------------------------
    supabase_url = _env_str("SUPABASE_URL", None)
    supabase_anon_key = _env_str("SUPABASE_ANON_KEY", None)
    supabase_service_role_key = _env_str("SUPABASE_SERVICE_ROLE_KEY", None)
    supabase_jwt_secret = _env_str("SUPABASE_JWT_SECRET", None)
    supabase_configured = bool(supabase_url) and bool(supabase_service_role_key or supabase_anon_key)

    requested_backend = _env_str("DATABASE_BACKEND", None)
    allowed_backends = {"supabase", "memory"}
    if requested_backend and requested_backend.lower() in allowed_backends:
        database_backend = requested_backend.lower()
    elif is_development and not supabase_configured:
        database_backend = "memory"
    else:
        database_backend = "supabase"

    # -----------------------------------------------------------------------
    # EMBEDDINGS & RETRIEVAL
    # -----------------------------------------------------------------------
    embedding_model = _env_str(
        "OPENAI_EMBEDDING_MODEL", "text-embedding-3-small", empty_to_none=False
    )
    embedding_dimensions = _env_int("EMBEDDING_DIMENSIONS", 1536)
    embedding_batch_size = max(1, min(_env_int("EMBEDDING_BATCH_SIZE", 100), 100))
    embedding_batch_delay = _env_float("EMBEDDING_BATCH_DELAY_SECONDS", 0.1)
    rag_max_results = _env_int("RAG_MAX_RESULTS", 5)
    rag_min_similarity = _env_float("RAG_MIN_SIMILARITY", 0.7)
    rag_smart_min_similarity = _env_float("RAG_SMART_MIN_SIMILARITY", 0.65)
    rag_index_async = _env_bool("RAG_INDEX_ASYNC", not is_development)

    # -----------------------------------------------------------------------
    # AI ASSISTANT
    # -----------------------------------------------------------------------
    assistant_model = _env_str("ASSISTANT_MODEL", "gpt-4o-mini", empty_to_none=False)
    assistant_temperature = _env_float("ASSISTANT_TEMPERATURE", 0.2)

    # -----------------------------------------------------------------------
    # AUTOMATION ENGINE
    # -----------------------------------------------------------------------
    automation_max_items = _env_int("AUTOMATION_MAX_ITEMS", 100)
    automation_timezone = _env_str("AUTOMATION_TIMEZONE", "Europe/Amsterdam", empty_to_none=False)
    automation_tick_seconds = _env_int("AUTOMATION_TICK_SECONDS", 60)
    outbound_http_timeout = _env_float("OUTBOUND_HTTP_TIMEOUT_SECONDS", 10.0)

    # -----------------------------------------------------------------------
    # WORKFLOWS (n8n) & TRIGGERS
    # -----------------------------------------------------------------------
    n8n_webhook_url = _env_str("N8N_WEBHOOK_URL", None)
    n8n_api_key = _env_str("N8N_API_KEY", None)
    cron_secret = _env_str("CRON_SECRET", None)
    default_tax_rate = _env_float("DEFAULT_TAX_RATE", 21.0)
    quote_validity_days = _env_int("QUOTE_VALIDITY_DAYS", 30)
    workflow_page_size = _env_int("WORKFLOW_PAGE_SIZE", 10)

    globals_map = {
        "ENVIRONMENT": environment,
        "IS_DEVELOPMENT": is_development,
        "DATABASE_BACKEND": database_backend,
        "SUPABASE_URL": supabase_url,
        "SUPABASE_ANON_KEY": supabase_anon_key,
        "SUPABASE_SERVICE_ROLE_KEY": supabase_service_role_key,
        "SUPABASE_JWT_SECRET": supabase_jwt_secret,
        "OPENAI_EMBEDDING_MODEL": embedding_model,
        "EMBEDDING_DIMENSIONS": embedding_dimensions,
        "AUTOMATION_MAX_ITEMS": automation_max_items,
        "AUTOMATION_TIMEZONE": automation_timezone,
        "N8N_WEBHOOK_URL": n8n_webhook_url,
        "N8N_API_KEY": n8n_api_key,
        "CRON_SECRET": cron_secret,
    }

    config_map = {
        "environment": environment,
        "is_development": is_development,
        "database_backend": database_backend,
        "supabase_url": supabase_url,
        "supabase_anon_key": supabase_anon_key,
        "supabase_service_role_key": supabase_service_role_key,
        "supabase_jwt_secret": supabase_jwt_secret,
        "supabase_configured": supabase_configured,
        "embedding_model": embedding_model,
        "embedding_dimensions": embedding_dimensions,
        "embedding_batch_size": embedding_batch_size,
        "embedding_batch_delay": embedding_batch_delay,
        "rag_max_results": rag_max_results,
        "rag_min_similarity": rag_min_similarity,
        "rag_smart_min_similarity": rag_smart_min_similarity,
        "rag_index_async": rag_index_async,
        "assistant_model": assistant_model,
        "assistant_temperature": assistant_temperature,
        "automation_max_items": automation_max_items,
        "automation_timezone": automation_timezone,
        "automation_tick_seconds": automation_tick_seconds,
        "outbound_http_timeout": outbound_http_timeout,
        "n8n_webhook_url": n8n_webhook_url,
        "n8n_api_key": n8n_api_key,
        "cron_secret": cron_secret,
        "default_tax_rate": default_tax_rate,
        "quote_validity_days": quote_validity_days,
        "workflow_page_size": workflow_page_size,
    }

    return globals_map, config_map


def reload_config() -> None:
    globals_map, config_map = _compute_values()
    globals().update(globals_map)
    CONFIG.__dict__.update(config_map)


def load_envs(global_dir: str) -> None:
    """Load environment variables from the project .env file."""
    from dotenv import load_dotenv

    load_dotenv(os.path.join(global_dir, ".env"))

    # Reload configuration after environment changes
    reload_config()


# Load once on import so downstream modules can use CONFIG immediately.
reload_config()
