"""
In-memory stand-in for the supabase-py client used by SupabaseStore.

Supports the builder calls the store makes (select / eq / neq / gte / lte /
in_ / is_ / order / limit / insert / delete) against plain lists of dicts.
Filters follow SQL NULL rules: eq/neq/gte/lte never match NULL.
"""

import pytest
from postgrest.exceptions import APIError

from db import IGNORE_TABLE, SupabaseStore


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table_name = table
        self.op = "select"
        self.columns = None
        self.payload = None
        self.filters = []
        self.order_by = []
        self.row_limit = None

    # builder --------------------------------------------------------------
    def select(self, columns="*"):
        self.op = "select"
        if columns.strip() != "*":
            self.columns = [c.strip() for c in columns.split(",")]
        return self

    def insert(self, row):
        self.op = "insert"
        self.payload = dict(row)
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, col, value):
        self.filters.append(lambda r: r.get(col) is not None and r.get(col) == value)
        return self

    def neq(self, col, value):
        self.filters.append(lambda r: r.get(col) is not None and r.get(col) != value)
        return self

    def gte(self, col, value):
        self.filters.append(lambda r: r.get(col) is not None and str(r.get(col)) >= str(value))
        return self

    def lte(self, col, value):
        self.filters.append(lambda r: r.get(col) is not None and str(r.get(col)) <= str(value))
        return self

    def in_(self, col, values):
        wanted = {str(v) for v in values}
        self.filters.append(lambda r: r.get(col) is not None and str(r.get(col)) in wanted)
        return self

    def is_(self, col, value):
        if value == "null":
            self.filters.append(lambda r: r.get(col) is None)
        return self

    def order(self, col, desc=False):
        self.order_by.append((col, desc))
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    # execution ------------------------------------------------------------
    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.client.calls.append((self.table_name, self.op))
        if self.table_name in self.client.failing:
            raise ConnectionError(f"connection refused ({self.table_name})")

        rows = self.client.tables.setdefault(self.table_name, [])

        if self.op == "insert":
            self.client.check_unique(self.table_name, self.payload)
            row = dict(self.payload)
            row.setdefault("id", self.client.next_id())
            rows.append(row)
            return FakeResponse([dict(row)])

        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.client.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            return FakeResponse(removed)

        out = [r for r in rows if self._matches(r)]
        for col, desc in reversed(self.order_by):
            out = sorted(out, key=lambda r: (r.get(col) is None, str(r.get(col) or "")), reverse=desc)
        if self.row_limit is not None:
            out = out[: self.row_limit]
        if self.columns is not None:
            out = [{c: r.get(c) for c in self.columns} for r in out]
        else:
            out = [dict(r) for r in out]
        return FakeResponse(out)


class FakeSupabase:
    """Minimal Supabase client: tables are lists of row dicts."""

    # Plain unique index: NULL scopes never collide, like Postgres
    UNIQUE = {IGNORE_TABLE: ("category", "issue_type", "press")}

    def __init__(self, tables=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.failing = set()
        self.calls = []
        self._id = 0

    def table(self, name):
        return FakeQuery(self, name)

    def next_id(self):
        self._id += 1
        return self._id

    def seed(self, table, rows):
        for row in rows:
            row = dict(row)
            row.setdefault("id", self.next_id())
            self.tables.setdefault(table, []).append(row)

    def check_unique(self, table, row):
        cols = self.UNIQUE.get(table)
        if not cols or any(row.get(c) is None for c in cols):
            return
        key = tuple(row.get(c) for c in cols)
        for existing in self.tables.get(table, []):
            if tuple(existing.get(c) for c in cols) == key:
                raise APIError({
                    "message": "duplicate key value violates unique constraint",
                    "code": "23505",
                    "details": None,
                    "hint": None,
                })


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def store(fake_db):
    return SupabaseStore(client=fake_db)
