"""Pytest configuration and fixtures."""

import copy
import itertools
import json
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from postgrest.exceptions import APIError

from whatsapp_console.models.settings import ApiSettings
from whatsapp_console.services.whatsapp_service import WhatsAppService
from whatsapp_console.utils.timestamps import parse_timestamp, utc_now_iso

GRAPH_BASE = "https://graph.test/v21.0"
PHONE_NUMBER_ID = "106540352242922"
BUSINESS_ACCOUNT_ID = "102290129340398"
ACCESS_TOKEN = "EAAG-test-token"
VERIFY_TOKEN = "whatsapp_verify_testtoken"


# ============================================
# SUPABASE FAKE
# ============================================

def _comparable(value):
    """Timestamps and dates compare as datetimes, everything else as is"""
    if value is None:
        return None
    parsed = parse_timestamp(value) if isinstance(value, str) and "-" in value else None
    return parsed if parsed is not None else value


class FakeQuery:
    """Subset of the postgrest query builder used by the services."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.action = "select"
        self.columns = "*"
        self.payload: Any = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.ordering: List[tuple] = []
        self.row_limit: Optional[int] = None
        self.count_mode: Optional[str] = None

    def select(self, columns: str = "*", count: Optional[str] = None):
        self.action = "select"
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def _compare(self, column, value, check):
        threshold = _comparable(value)

        def _matches(row):
            current = _comparable(row.get(column))
            return current is not None and check(current, threshold)

        self.filters.append(_matches)
        return self

    def lt(self, column, value):
        return self._compare(column, value, lambda current, threshold: current < threshold)

    def gte(self, column, value):
        return self._compare(column, value, lambda current, threshold: current >= threshold)

    def lte(self, column, value):
        return self._compare(column, value, lambda current, threshold: current <= threshold)

    def order(self, column, desc=False):
        self.ordering.append((column, desc))
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        rows = self.db.tables.setdefault(self.table_name, [])
        return [row for row in rows if all(f(row) for f in self.filters)]

    def _project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self.columns.strip() == "*":
            return copy.deepcopy(row)
        wanted = [c.strip() for c in self.columns.split(",")]
        return {c: copy.deepcopy(row.get(c)) for c in wanted}

    def execute(self):
        self.db.executed.append((self.table_name, self.action))

        if self.table_name in self.db.missing_tables:
            raise APIError({
                "code": "PGRST205",
                "message": f"Could not find the table 'public.{self.table_name}' in the schema cache",
                "hint": None,
                "details": None,
            })
        if self.table_name in self.db.failing_tables:
            raise APIError({"code": "XX000", "message": "simulated failure", "hint": None, "details": None})

        if self.action == "select":
            rows = self._matching()
            total = len(rows) if self.count_mode else None
            for column, desc in reversed(self.ordering):
                rows = sorted(rows, key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
            if self.row_limit is not None:
                rows = rows[:self.row_limit]
            return SimpleNamespace(data=[self._project(r) for r in rows], count=total)

        if self.action == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for payload in payloads:
                row = dict(payload)
                row.setdefault("id", str(next(self.db.ids)))
                row.setdefault("created_at", utc_now_iso())
                self.db.tables.setdefault(self.table_name, []).append(row)
                inserted.append(copy.deepcopy(row))
            return SimpleNamespace(data=inserted)

        if self.action == "update":
            updated = []
            for row in self._matching():
                row.update(self.payload)
                updated.append(copy.deepcopy(row))
            return SimpleNamespace(data=updated)

        if self.action == "delete":
            doomed = self._matching()
            self.db.tables[self.table_name] = [r for r in self.db.tables[self.table_name] if r not in doomed]
            return SimpleNamespace(data=copy.deepcopy(doomed))

        raise AssertionError(f"unsupported action {self.action}")


class FakeSupabase:
    """In-memory stand-in for supabase.Client, keyed by table name."""

    def __init__(self, missing_tables=(), failing_tables=()):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.missing_tables = set(missing_tables)
        self.failing_tables = set(failing_tables)
        self.executed: List[tuple] = []
        self.ids = itertools.count(1000)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])

    def seed(self, name: str, *rows: Dict[str, Any]) -> None:
        self.tables.setdefault(name, []).extend(dict(r) for r in rows)


# ============================================
# GRAPH API STUB
# ============================================

class GraphStub:
    """Routes httpx requests to canned Graph API responses and records them."""

    def __init__(self):
        self.routes: Dict[tuple, Any] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, status_code: int = 200, json_body: Any = None,
            content: bytes = None, headers: Dict[str, str] = None, error: Exception = None,
            responder: Callable[[httpx.Request], httpx.Response] = None):
        self.routes[(method, path)] = SimpleNamespace(
            status_code=status_code, json_body=json_body, content=content, headers=headers,
            error=error, responder=responder
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": {"message": "Unknown path", "code": 803}})
        if route.error is not None:
            raise route.error
        if route.responder is not None:
            return route.responder(request)
        if route.content is not None:
            return httpx.Response(route.status_code, content=route.content, headers=route.headers)
        return httpx.Response(route.status_code, json=route.json_body, headers=route.headers)

    def factory(self, credentials: ApiSettings) -> WhatsAppService:
        return WhatsAppService(credentials, base_url=GRAPH_BASE, timeout=5, transport=httpx.MockTransport(self.handler))

    def sent_payloads(self, path: str) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.url.path == path and r.method == "POST"]

    @property
    def messages_path(self) -> str:
        return f"/v21.0/{PHONE_NUMBER_ID}/messages"

    @property
    def templates_path(self) -> str:
        return f"/v21.0/{BUSINESS_ACCOUNT_ID}/message_templates"


# ============================================
# FIXTURES
# ============================================

@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def settings_row():
    return {
        "id": "1",
        "business_account_id": BUSINESS_ACCOUNT_ID,
        "phone_number_id": PHONE_NUMBER_ID,
        "access_token": ACCESS_TOKEN,
        "webhook_verify_token": VERIFY_TOKEN,
        "created_at": "2026-01-01T00:00:00+00:00",
        "updated_at": "2026-01-01T00:00:00+00:00",
    }


@pytest.fixture
def configured_supabase(supabase, settings_row):
    supabase.seed("api_settings", settings_row)
    supabase.seed("conversations")
    return supabase


@pytest.fixture
def credentials(settings_row):
    return ApiSettings(**settings_row)


@pytest.fixture
def graph():
    return GraphStub()


@pytest.fixture
def sample_template():
    return {
        "id": "tpl-1",
        "name": "promo_offer",
        "language": "ar",
        "status": "APPROVED",
        "category": "MARKETING",
        "components": [
            {"type": "HEADER", "format": "IMAGE"},
            {"type": "BODY", "text": "Hello {{1}}, your code is {{2}}"},
        ],
    }
