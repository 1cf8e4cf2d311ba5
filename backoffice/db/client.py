"""
Database client for the back office automation and retrieval core.
Handles automations, run history, business records, and vector embeddings.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client, create_client

from ..config import CONFIG


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when a persistence call fails."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _dev_mode_enabled() -> bool:
    value = os.getenv("DEVELOPMENT_MODE", "").strip().lower()
    return value not in {"", "0", "false", "off", "none"}


def _ilike_any(columns: Iterable[str], search: str) -> str:
    term = search.replace(",", " ").replace("%", "").strip()
    return ",".join(f"{column}.ilike.%{term}%" for column in columns)


class SupabaseDatabaseClient:
    """Database client for Supabase operations.

    Every business query is scoped by ``user_id``; callers pass the owning
    user explicitly so tenant isolation is enforced at each call site.
    """

    JSON_COLUMNS = ("trigger_config", "conditions", "actions", "metadata", "line_items", "data")

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None):
        self.supabase_url = url or CONFIG.supabase_url

        # Prefer service role key when available to bypass RLS for server-side operations
        service_key = CONFIG.supabase_service_role_key
        anon_key = CONFIG.supabase_anon_key
        self.supabase_key = key or service_key or anon_key
        self.using_service_role = bool(service_key) and key is None

        if not self.supabase_url or not self.supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY (or SUPABASE_SERVICE_ROLE_KEY) environment variables are required")

        if _dev_mode_enabled():
            logger.info("DatabaseClient: using %s key", "service role" if self.using_service_role else "anon")

        self.client: Client = create_client(self.supabase_url, self.supabase_key)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _normalize(self, record: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not record:
            return None
        normalised = dict(record)
        for key in self.JSON_COLUMNS:
            value = normalised.get(key)
            if isinstance(value, str):
                try:
                    normalised[key] = json.loads(value)
                except (TypeError, ValueError):
                    pass
        return normalised

    def _rows(self, result: Any) -> List[Dict[str, Any]]:
        rows = getattr(result, "data", None) or []
        return [self._normalize(row) for row in rows]

    def _first(self, result: Any) -> Optional[Dict[str, Any]]:
        rows = self._rows(result)
        return rows[0] if rows else None

    def _execute(self, description: str, query: Any) -> Any:
        try:
            return query.execute()
        except Exception as exc:
            logger.error("Supabase %s failed: %s", description, exc)
            raise DatabaseError(f"{description} failed: {exc}") from exc

    def _insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = {key: _iso(value) for key, value in record.items()}
        payload.setdefault("id", str(uuid.uuid4()))
        payload.setdefault("created_at", _now_iso())
        result = self._execute(f"insert into {table}", self.client.table(table).insert(payload))
        return self._first(result) or self._normalize(payload)

    def _get(self, table: str, record_id: str, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        query = self.client.table(table).select("*").eq("id", record_id)
        if user_id:
            query = query.eq("user_id", user_id)
        return self._first(self._execute(f"get {table}", query.limit(1)))

    def _count(self, description: str, query: Any) -> int:
        result = self._execute(description, query)
        count = getattr(result, "count", None)
        if count is None:
            return len(getattr(result, "data", None) or [])
        return int(count)

    @staticmethod
    def _page(query: Any, limit: Optional[int], offset: int) -> Any:
        if limit is not None:
            return query.range(offset, offset + limit - 1)
        return query

    # ------------------------------------------------------------------
    # Users & service accounts
    # ------------------------------------------------------------------
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        query = self.client.table("users").select("id,email,name").eq("id", user_id).limit(1)
        return self._first(self._execute("get user", query))

    def get_service_account(self, service_account_id: str) -> Optional[Dict[str, Any]]:
        query = (
            self.client.table("service_accounts")
            .select("id,name,active,user_id,permissions")
            .eq("id", service_account_id)
            .limit(1)
        )
        return self._first(self._execute("get service account", query))

    # ------------------------------------------------------------------
    # Automations
    # ------------------------------------------------------------------
    def list_due_automations(self, now: datetime) -> List[Dict[str, Any]]:
        query = (
            self.client.table("automations")
            .select("*")
            .eq("enabled", True)
            .eq("trigger_type", "schedule")
            .or_(f"next_run_at.is.null,next_run_at.lte.{now.isoformat()}")
            .order("created_at")
        )
        return self._rows(self._execute("list due automations", query))

    def list_event_automations(self, user_id: str) -> List[Dict[str, Any]]:
        query = (
            self.client.table("automations")
            .select("*")
            .eq("user_id", user_id)
            .eq("enabled", True)
            .eq("trigger_type", "event")
            .order("created_at")
        )
        return self._rows(self._execute("list event automations", query))

    def list_automations(self, user_id: str, *, category: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.client.table("automations").select("*").eq("user_id", user_id)
        if category:
            query = query.eq("category", category)
        return self._rows(self._execute("list automations", query.order("created_at", desc=True)))

    def get_automation(self, automation_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("automations", automation_id, user_id)

    def create_automation(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("automations", record)

    def update_automation(
        self, automation_id: str, updates: Dict[str, Any], user_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        payload = {key: _iso(value) for key, value in updates.items()}
        payload["updated_at"] = _now_iso()
        query = self.client.table("automations").update(payload).eq("id", automation_id)
        if user_id is not None:
            query = query.eq("user_id", user_id)
        return self._first(self._execute("update automation", query))

    def delete_automation(self, automation_id: str, user_id: str) -> bool:
        query = self.client.table("automations").delete().eq("id", automation_id).eq("user_id", user_id)
        return bool(self._rows(self._execute("delete automation", query)))

    def create_automation_run(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("automation_runs", record)

    def list_automation_runs(self, automation_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        query = (
            self.client.table("automation_runs")
            .select("*")
            .eq("automation_id", automation_id)
            .order("started_at", desc=True)
            .limit(limit)
        )
        return self._rows(self._execute("list automation runs", query))

    def list_automation_templates(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.client.table("automation_templates").select("*").eq("is_public", True)
        if category:
            query = query.eq("category", category)
        query = query.order("is_default", desc=True).order("order").order("created_at")
        return self._rows(self._execute("list automation templates", query))

    def get_automation_template(self, template_id: str) -> Optional[Dict[str, Any]]:
        return self._get("automation_templates", template_id, None)

    # ------------------------------------------------------------------
    # Invoices & quotes
    # ------------------------------------------------------------------
    def _document_query(
        self,
        table: str,
        query: Any,
        user_id: str,
        *,
        status: Optional[str],
        client_id: Optional[str],
        number_prefix: Optional[str],
        search: Optional[str],
        date_column: str,
        date_before: Optional[datetime],
    ) -> Any:
        query = query.eq("user_id", user_id)
        if status:
            query = query.eq("status", status)
        if client_id:
            query = query.eq("client_id", client_id)
        if number_prefix:
            query = query.like("number", f"{number_prefix}%")
        if date_before is not None:
            query = query.lt(date_column, date_before.isoformat())
        if search:
            query = query.or_(_ilike_any(("number", "description"), search))
        return query

    def count_invoices(
        self,
        user_id: str,
        *,
        status: Optional[str] = None,
        client_id: Optional[str] = None,
        due_before: Optional[datetime] = None,
        number_prefix: Optional[str] = None,
        search: Optional[str] = None,
    ) -> int:
        query = self._document_query(
            "invoices",
            self.client.table("invoices").select("id", count="exact"),
            user_id,
            status=status,
            client_id=client_id,
            number_prefix=number_prefix,
            search=search,
            date_column="due_date",
            date_before=due_before,
        )
        return self._count("count invoices", query)

    def list_invoices(
        self,
        user_id: str,
        *,
        status: Optional[str] = None,
        client_id: Optional[str] = None,
        due_before: Optional[datetime] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        query = self._document_query(
            "invoices",
            self.client.table("invoices").select("*"),
            user_id,
            status=status,
            client_id=client_id,
            number_prefix=None,
            search=search,
            date_column="due_date",
            date_before=due_before,
        )
        query = self._page(query.order("created_at", desc=True), limit, offset)
        return self._rows(self._execute("list invoices", query))

    def get_invoice(self, invoice_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("invoices", invoice_id, user_id)

    def create_invoice(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("invoices", record)

    def update_invoice(self, invoice_id: str, user_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        payload = {key: _iso(value) for key, value in updates.items()}
        payload["updated_at"] = _now_iso()
        query = self.client.table("invoices").update(payload).eq("id", invoice_id).eq("user_id", user_id)
        return self._first(self._execute("update invoice", query))

    def count_quotes(
        self,
        user_id: str,
        *,
        status: Optional[str] = None,
        client_id: Optional[str] = None,
        valid_before: Optional[datetime] = None,
        number_prefix: Optional[str] = None,
        search: Optional[str] = None,
    ) -> int:
        query = self._document_query(
            "quotes",
            self.client.table("quotes").select("id", count="exact"),
            user_id,
            status=status,
            client_id=client_id,
            number_prefix=number_prefix,
            search=search,
            date_column="valid_until",
            date_before=valid_before,
        )
        return self._count("count quotes", query)

    def list_quotes(
        self,
        user_id: str,
        *,
        status: Optional[str] = None,
        client_id: Optional[str] = None,
        valid_before: Optional[datetime] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        query = self._document_query(
            "quotes",
            self.client.table("quotes").select("*"),
            user_id,
            status=status,
            client_id=client_id,
            number_prefix=None,
            search=search,
            date_column="valid_until",
            date_before=valid_before,
        )
        query = self._page(query.order("created_at", desc=True), limit, offset)
        return self._rows(self._execute("list quotes", query))

    def get_quote(self, quote_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("quotes", quote_id, user_id)

    def create_quote(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("quotes", record)

    # ------------------------------------------------------------------
    # Clients, projects, time & kilometer entries
    # ------------------------------------------------------------------
    def _client_query(self, query: Any, user_id: str, search: Optional[str], tag: Optional[str]) -> Any:
        query = query.eq("user_id", user_id)
        if search:
            query = query.or_(_ilike_any(("name", "email", "company", "phone"), search))
        if tag:
            query = query.contains("tags", [tag])
        return query

    def list_clients(
        self,
        user_id: str,
        *,
        search: Optional[str] = None,
        tag: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        query = self._client_query(self.client.table("clients").select("*"), user_id, search, tag)
        query = self._page(query.order("name"), limit, offset)
        return self._rows(self._execute("list clients", query))

    def count_clients(self, user_id: str, *, search: Optional[str] = None, tag: Optional[str] = None) -> int:
        query = self._client_query(self.client.table("clients").select("id", count="exact"), user_id, search, tag)
        return self._count("count clients", query)

    def get_client(self, client_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("clients", client_id, user_id)

    def create_client(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("clients", record)

    def list_projects(self, user_id: str) -> List[Dict[str, Any]]:
        query = self.client.table("projects").select("*").eq("user_id", user_id).order("created_at")
        return self._rows(self._execute("list projects", query))

    def get_project(self, project_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("projects", project_id, user_id)

    def create_time_entry(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("time_entries", record)

    def create_kilometer_entry(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("kilometer_entries", record)

    # ------------------------------------------------------------------
    # Conversations & notifications
    # ------------------------------------------------------------------
    def list_conversations(self, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        query = (
            self.client.table("ai_conversations")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
        )
        return self._rows(self._execute("list conversations", query))

    def get_conversation(self, conversation_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("ai_conversations", conversation_id, user_id)

    def create_notification(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("notifications", record)

    # ------------------------------------------------------------------
    # Vector embeddings
    # ------------------------------------------------------------------
    def upsert_vector_embedding(self, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(record)
        payload["updated_at"] = _now_iso()
        query = self.client.table("vector_embeddings").upsert(
            payload,
            on_conflict="user_id,entity_type,entity_id,chunk_index",
        )
        return self._first(self._execute("upsert vector embedding", query)) or payload

    def list_vector_embeddings(
        self,
        user_id: str,
        entity_types: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        query = (
            self.client.table("vector_embeddings")
            .select("id,entity_type,entity_id,chunk_index,content,metadata,embedding")
            .eq("user_id", user_id)
        )
        if entity_types:
            query = query.in_("entity_type", list(entity_types))
        rows = self._rows(self._execute("list vector embeddings", query))
        for row in rows:
            embedding = row.get("embedding")
            if isinstance(embedding, str):
                try:
                    row["embedding"] = json.loads(embedding)
                except (TypeError, ValueError):
                    row["embedding"] = None
        return rows

    def delete_vector_embeddings(self, user_id: str, entity_type: str, entity_id: str) -> int:
        query = (
            self.client.table("vector_embeddings")
            .delete()
            .eq("user_id", user_id)
            .eq("entity_type", entity_type)
            .eq("entity_id", entity_id)
        )
        return len(self._rows(self._execute("delete vector embeddings", query)))

    def count_vector_embeddings(self, user_id: str, entity_type: str, entity_id: str) -> int:
        query = (
            self.client.table("vector_embeddings")
            .select("id", count="exact")
            .eq("user_id", user_id)
            .eq("entity_type", entity_type)
            .eq("entity_id", entity_id)
        )
        return self._count("count vector embeddings", query)


# Global database client instance
_database_client: Optional[object] = None


def get_database_client():
    """Get the global database client instance for the configured backend."""
    global _database_client
    if _database_client is None:
        if CONFIG.database_backend == "memory":
            from .memory import InMemoryDatabaseClient

            _database_client = InMemoryDatabaseClient()
        else:
            _database_client = SupabaseDatabaseClient()
    return _database_client


def set_database_client(client: Optional[object]) -> None:
    """Replace the global client (used by tests and local tooling)."""
    global _database_client
    _database_client = client


# Simple alias for readability
DatabaseClient = SupabaseDatabaseClient
