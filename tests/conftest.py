"""Shared fixtures: an in-memory Supabase double and mocked Clerk collaborators."""

import copy
import itertools
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.dependencies import get_identity_provider, get_token_verifier
from app.core.exceptions import register_exception_handlers
from app.database.supabase_client import get_supabase
from app.modules.auth.schemas import Principal
from app.modules.auth.service import ClerkIdentityProvider, TokenVerifier, check_token_format
from app.modules.rides import routes as rides_routes
from app.modules.users import routes as users_routes

WRITE_OPS = ("insert", "update", "upsert")


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Records one chained postgrest-style query and runs it on execute()."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.filters: List[tuple] = []
        self.single = False
        self.order_by: Optional[tuple] = None
        self.row_range: Optional[tuple] = None
        self.on_conflict: Optional[str] = None
        self.ignore_duplicates = False

    def select(self, columns: str = "*"):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict: str = "", ignore_duplicates: bool = False):
        self.op, self.payload = "upsert", payload
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def eq(self, column: str, value):
        self.filters.append((column, value))
        return self

    def maybe_single(self):
        self.single = True
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def range(self, start: int, end: int):
        self.row_range = (start, end)
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(row.get(column) == value for column, value in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.op))
        failure = self.db.failures.get((self.table, self.op))
        if failure is not None:
            raise failure

        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "select":
            found = [copy.deepcopy(r) for r in rows if self._matches(r)]
            if self.order_by:
                column, desc = self.order_by
                found.sort(key=lambda r: str(r.get(column) or ""), reverse=desc)
            if self.row_range:
                start, end = self.row_range
                found = found[start:end + 1]
            if self.single:
                return FakeResponse(found[0]) if found else None
            return FakeResponse(found)

        if self.op == "insert":
            return FakeResponse([self.db.add_row(self.table, self.payload)])

        if self.op == "upsert":
            key = self.on_conflict
            existing = [r for r in rows if r.get(key) == self.payload.get(key)]
            if existing:
                if self.ignore_duplicates:
                    return FakeResponse([])
                existing[0].update(self.payload)
                return FakeResponse([copy.deepcopy(existing[0])])
            return FakeResponse([self.db.add_row(self.table, self.payload)])

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        raise AssertionError(f"unsupported op {self.op}")


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {"users": [], "rides": []}
        self.calls: List[tuple] = []
        self.failures: Dict[tuple, Exception] = {}
        self._ids = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def add_row(self, table: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(payload)
        if table == "rides":
            n = next(self._ids)
            row.setdefault("id", f"ride-{n}")
            row.setdefault("driver_id", None)
            row.setdefault("created_at", f"2026-01-01T00:00:{n:02d}+00:00")
        self.tables.setdefault(table, []).append(row)
        return copy.deepcopy(row)

    def writes(self, table: Optional[str] = None) -> List[tuple]:
        return [c for c in self.calls if c[1] in WRITE_OPS and (table is None or c[0] == table)]

    def user(self, clerk_id: str) -> Optional[Dict[str, Any]]:
        for row in self.tables["users"]:
            if row["clerk_id"] == clerk_id:
                return row
        return None


def make_user_row(clerk_id: str, role: str = "rider", **fields) -> Dict[str, Any]:
    row = {
        "clerk_id": clerk_id,
        "name": "Ada",
        "email": f"{clerk_id}@example.com",
        "role": role,
        "phone": None,
        "vehicle_number": None,
        "license_number": None,
        "updated_at": "2026-01-01T00:00:00+00:00",
    }
    row.update(fields)
    return row


def auth_headers(clerk_id: str) -> Dict[str, str]:
    """A token the fake verifier accepts; the middle segment is the subject."""
    return {"Authorization": f"Bearer header.{clerk_id}.signature"}


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def principals() -> Dict[str, Principal]:
    """Clerk users by id; unknown ids resolve to a principal with no email, name or role."""
    return {}


@pytest.fixture
def identity(principals: Dict[str, Principal]) -> MagicMock:
    provider = MagicMock(spec=ClerkIdentityProvider)
    provider.fetch_principal.side_effect = lambda pid: principals.get(pid, Principal(id=pid))
    return provider


@pytest.fixture
def verifier() -> MagicMock:
    def fake_verify(token):
        return check_token_format(token).split(".")[1]

    token_verifier = MagicMock(spec=TokenVerifier)
    token_verifier.verify.side_effect = fake_verify
    return token_verifier


@pytest.fixture
def test_app(fake_db: FakeSupabase, identity: MagicMock, verifier: MagicMock) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.dependency_overrides[get_supabase] = lambda: fake_db
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_token_verifier] = lambda: verifier
    app.include_router(rides_routes.router)
    app.include_router(users_routes.router)
    return app


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    return TestClient(test_app)
