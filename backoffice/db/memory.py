"""In-process database backend used for local development and tests."""

from __future__ import annotations

import copy
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp or date into an aware UTC datetime."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _matches_search(record: Dict[str, Any], columns: Iterable[str], search: Optional[str]) -> bool:
    if not search:
        return True
    term = search.strip().lower()
    return any(term in str(record.get(column) or "").lower() for column in columns)


class InMemoryDatabaseClient:
    """Dict-backed implementation of the database client contract.

    Tables are plain lists of dict records. Reads return deep copies so
    callers cannot mutate stored state by accident.
    """

    TABLES = (
        "users",
        "service_accounts",
        "automations",
        "automation_runs",
        "automation_templates",
        "invoices",
        "quotes",
        "clients",
        "projects",
        "time_entries",
        "kilometer_entries",
        "ai_conversations",
        "notifications",
        "vector_embeddings",
    )

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.tables: Dict[str, List[Dict[str, Any]]] = {name: [] for name in self.TABLES}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def seed(self, table: str, *records: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Insert raw records, filling ``id`` and ``created_at`` when absent."""
        return [self._insert(table, record) for record in records]

    def _insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = {key: _iso(value) for key, value in record.items()}
        payload.setdefault("id", str(uuid.uuid4()))
        payload.setdefault("created_at", _now_iso())
        with self._lock:
            self.tables[table].append(payload)
        return copy.deepcopy(payload)

    def _select(self, table: str, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(row) for row in self.tables[table] if predicate(row)]

    def _get(self, table: str, record_id: str, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        rows = self._select(
            table,
            lambda row: row.get("id") == record_id and (user_id is None or row.get("user_id") == user_id),
        )
        return rows[0] if rows else None

    def _update(self, table: str, predicate: Callable[[Dict[str, Any]], bool], updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        payload = {key: _iso(value) for key, value in updates.items()}
        payload["updated_at"] = _now_iso()
        with self._lock:
            for row in self.tables[table]:
                if predicate(row):
                    row.update(payload)
                    return copy.deepcopy(row)
        return None

    @staticmethod
    def _sort(rows: List[Dict[str, Any]], key: str, *, desc: bool = False) -> List[Dict[str, Any]]:
        return sorted(rows, key=lambda row: str(row.get(key) or ""), reverse=desc)

    @staticmethod
    def _page(rows: List[Dict[str, Any]], limit: Optional[int], offset: int) -> List[Dict[str, Any]]:
        if limit is None:
            return rows[offset:]
        return rows[offset:offset + limit]

    # ------------------------------------------------------------------
    # Users & service accounts
    # ------------------------------------------------------------------
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._get("users", user_id, None)

    def get_service_account(self, service_account_id: str) -> Optional[Dict[str, Any]]:
        return self._get("service_accounts", service_account_id, None)

    # ------------------------------------------------------------------
    # Automations
    # ------------------------------------------------------------------
    def list_due_automations(self, now: datetime) -> List[Dict[str, Any]]:
        def due(row: Dict[str, Any]) -> bool:
            if not row.get("enabled") or row.get("trigger_type") != "schedule":
                return False
            next_run = parse_timestamp(row.get("next_run_at"))
            return next_run is None or next_run <= now

        return self._sort(self._select("automations", due), "created_at")

    def list_event_automations(self, user_id: str) -> List[Dict[str, Any]]:
        rows = self._select(
            "automations",
            lambda row: row.get("user_id") == user_id
            and bool(row.get("enabled"))
            and row.get("trigger_type") == "event",
        )
        return self._sort(rows, "created_at")

    def list_automations(self, user_id: str, *, category: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = self._select(
            "automations",
            lambda row: row.get("user_id") == user_id and (not category or row.get("category") == category),
        )
        return self._sort(rows, "created_at", desc=True)

    def get_automation(self, automation_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("automations", automation_id, user_id)

    def create_automation(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("automations", record)

    def update_automation(
        self, automation_id: str, updates: Dict[str, Any], user_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        return self._update(
            "automations",
            lambda row: row.get("id") == automation_id and (user_id is None or row.get("user_id") == user_id),
            updates,
        )

    def delete_automation(self, automation_id: str, user_id: str) -> bool:
        with self._lock:
            before = len(self.tables["automations"])
            self.tables["automations"] = [
                row
                for row in self.tables["automations"]
                if not (row.get("id") == automation_id and row.get("user_id") == user_id)
            ]
            return len(self.tables["automations"]) < before

    def create_automation_run(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("automation_runs", record)

    def list_automation_runs(self, automation_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        rows = self._select("automation_runs", lambda row: row.get("automation_id") == automation_id)
        return self._sort(rows, "started_at", desc=True)[:limit]

    def list_automation_templates(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = self._select(
            "automation_templates",
            lambda row: row.get("is_public", True) and (not category or row.get("category") == category),
        )
        return sorted(
            rows,
            key=lambda row: (not row.get("is_default"), row.get("order") or 0, str(row.get("created_at") or "")),
        )

    def get_automation_template(self, template_id: str) -> Optional[Dict[str, Any]]:
        return self._get("automation_templates", template_id, None)

    # ------------------------------------------------------------------
    # Invoices & quotes
    # ------------------------------------------------------------------
    @staticmethod
    def _document_filter(
        user_id: str,
        *,
        status: Optional[str],
        client_id: Optional[str],
        number_prefix: Optional[str],
        search: Optional[str],
        date_column: str,
        date_before: Optional[datetime],
    ) -> Callable[[Dict[str, Any]], bool]:
        def predicate(row: Dict[str, Any]) -> bool:
            if row.get("user_id") != user_id:
                return False
            if status and row.get("status") != status:
                return False
            if client_id and row.get("client_id") != client_id:
                return False
            if number_prefix and not str(row.get("number") or "").startswith(number_prefix):
                return False
            if date_before is not None:
                value = parse_timestamp(row.get(date_column))
                if value is None or not value < date_before:
                    return False
            return _matches_search(row, ("number", "description"), search)

        return predicate

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
        predicate = self._document_filter(
            user_id,
            status=status,
            client_id=client_id,
            number_prefix=number_prefix,
            search=search,
            date_column="due_date",
            date_before=due_before,
        )
        return len(self._select("invoices", predicate))

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
        predicate = self._document_filter(
            user_id,
            status=status,
            client_id=client_id,
            number_prefix=None,
            search=search,
            date_column="due_date",
            date_before=due_before,
        )
        rows = self._sort(self._select("invoices", predicate), "created_at", desc=True)
        return self._page(rows, limit, offset)

    def get_invoice(self, invoice_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("invoices", invoice_id, user_id)

    def create_invoice(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("invoices", record)

    def update_invoice(self, invoice_id: str, user_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self._update(
            "invoices",
            lambda row: row.get("id") == invoice_id and row.get("user_id") == user_id,
            updates,
        )

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
        predicate = self._document_filter(
            user_id,
            status=status,
            client_id=client_id,
            number_prefix=number_prefix,
            search=search,
            date_column="valid_until",
            date_before=valid_before,
        )
        return len(self._select("quotes", predicate))

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
        predicate = self._document_filter(
            user_id,
            status=status,
            client_id=client_id,
            number_prefix=None,
            search=search,
            date_column="valid_until",
            date_before=valid_before,
        )
        rows = self._sort(self._select("quotes", predicate), "created_at", desc=True)
        return self._page(rows, limit, offset)

    def get_quote(self, quote_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("quotes", quote_id, user_id)

    def create_quote(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("quotes", record)

    # ------------------------------------------------------------------
    # Clients, projects, time & kilometer entries
    # ------------------------------------------------------------------
    @staticmethod
    def _client_filter(user_id: str, search: Optional[str], tag: Optional[str]) -> Callable[[Dict[str, Any]], bool]:
        def predicate(row: Dict[str, Any]) -> bool:
            if row.get("user_id") != user_id:
                return False
            if tag and tag not in (row.get("tags") or []):
                return False
            return _matches_search(row, ("name", "email", "company", "phone"), search)

        return predicate

    def list_clients(
        self,
        user_id: str,
        *,
        search: Optional[str] = None,
        tag: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        rows = self._sort(self._select("clients", self._client_filter(user_id, search, tag)), "name")
        return self._page(rows, limit, offset)

    def count_clients(self, user_id: str, *, search: Optional[str] = None, tag: Optional[str] = None) -> int:
        return len(self._select("clients", self._client_filter(user_id, search, tag)))

    def get_client(self, client_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("clients", client_id, user_id)

    def create_client(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("clients", record)

    def list_projects(self, user_id: str) -> List[Dict[str, Any]]:
        rows = self._select("projects", lambda row: row.get("user_id") == user_id)
        return self._sort(rows, "created_at")

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
        rows = self._select("ai_conversations", lambda row: row.get("user_id") == user_id)
        return self._sort(rows, "created_at", desc=True)[:limit]

    def get_conversation(self, conversation_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._get("ai_conversations", conversation_id, user_id)

    def create_notification(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert("notifications", record)

    # ------------------------------------------------------------------
    # Vector embeddings
    # ------------------------------------------------------------------
    def upsert_vector_embedding(self, record: Dict[str, Any]) -> Dict[str, Any]:
        key = (record.get("user_id"), record.get("entity_type"), record.get("entity_id"), record.get("chunk_index", 0))
        with self._lock:
            for row in self.tables["vector_embeddings"]:
                existing = (row.get("user_id"), row.get("entity_type"), row.get("entity_id"), row.get("chunk_index", 0))
                if existing == key:
                    row.update(copy.deepcopy(record))
                    row["updated_at"] = _now_iso()
                    return copy.deepcopy(row)
        return self._insert("vector_embeddings", copy.deepcopy(record))

    def list_vector_embeddings(
        self,
        user_id: str,
        entity_types: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        return self._select(
            "vector_embeddings",
            lambda row: row.get("user_id") == user_id
            and (not entity_types or row.get("entity_type") in entity_types),
        )

    def delete_vector_embeddings(self, user_id: str, entity_type: str, entity_id: str) -> int:
        def matches(row: Dict[str, Any]) -> bool:
            return (
                row.get("user_id") == user_id
                and row.get("entity_type") == entity_type
                and row.get("entity_id") == entity_id
            )

        with self._lock:
            before = len(self.tables["vector_embeddings"])
            self.tables["vector_embeddings"] = [row for row in self.tables["vector_embeddings"] if not matches(row)]
            return before - len(self.tables["vector_embeddings"])

    def count_vector_embeddings(self, user_id: str, entity_type: str, entity_id: str) -> int:
        rows = self._select(
            "vector_embeddings",
            lambda row: row.get("user_id") == user_id
            and row.get("entity_type") == entity_type
            and row.get("entity_id") == entity_id,
        )
        return len(rows)


__all__ = ["InMemoryDatabaseClient", "parse_timestamp"]
