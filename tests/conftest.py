"""
Shared fixtures: an in-memory stand-in for db2graphql.db.Database.

FakeDatabase implements the surface the adapter uses (table(), raw(),
execute()) over plain lists of dicts and records every query it runs, so
tests can count round trips. Catalog queries are answered from a small
declarative description of the tables.
"""

import re
from typing import Any, Dict, List, Optional

import pytest

from db2graphql.errors import ExpressionError

# =============================================================================
# Catalogs
# =============================================================================

# foo(bar integer primary key), bar(foo integer primary key, bar integer references foo.bar)
FOO_BAR_CATALOG = {
    "foo": {
        "columns": [("bar", "integer", "NO")],
        "primary_key": "bar",
    },
    "bar": {
        "columns": [("foo", "integer", "NO"), ("bar", "integer", "YES")],
        "primary_key": "foo",
        "foreign_keys": [("bar", "foo", "bar")],
    },
}

BLOG_CATALOG = {
    "users": {
        "columns": [("id", "integer", "NO"), ("name", "character varying", "NO"), ("avatar", "bytea", "YES")],
        "primary_key": "id",
    },
    "posts": {
        "columns": [
            ("id", "integer", "NO"),
            ("author_id", "integer", "NO"),
            ("editor_id", "integer", "YES"),
            ("title", "text", "NO"),
        ],
        "primary_key": "id",
        "foreign_keys": [("author_id", "users", "id"), ("editor_id", "users", "id")],
    },
    "comments": {
        "columns": [("id", "integer", "NO"), ("post_id", "integer", "NO"), ("body", "text", "YES")],
        "primary_key": "id",
        "foreign_keys": [("post_id", "posts", "id")],
    },
    "audit_log": {
        "columns": [("message", "text", "YES"), ("created_at", "timestamp with time zone", "YES")],
    },
}

CATEGORY_CATALOG = {
    "categories": {
        "columns": [("id", "integer", "NO"), ("parent_id", "integer", "YES"), ("name", "text", "NO")],
        "primary_key": "id",
        "foreign_keys": [("parent_id", "categories", "id")],
    },
}


# =============================================================================
# Fake query builder
# =============================================================================

_COMPARATORS = {
    "=": lambda a, b: a == b,
    "<>": lambda a, b: a != b,
    "!=": lambda a, b: a != b,
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
}

_RAW_CONDITION = re.compile(r'^\s*"?(\w+)"?\s*(<>|>=|<=|=|>|<)\s*(.+?)\s*$')


def _coerce(row_value: Any, value: Any) -> Any:
    """Convert a filter value (usually a string) to the type stored in the row."""
    if isinstance(row_value, bool) or row_value is None or value is None:
        return value
    if isinstance(row_value, (int, float)) and isinstance(value, str):
        try:
            return type(row_value)(value)
        except ValueError:
            return float(value)
    if isinstance(row_value, str) and not isinstance(value, str):
        return str(value)
    return value


def _like(pattern: str, flags: int = 0):
    regex = "".join(".*" if c == "%" else "." if c == "_" else re.escape(c) for c in pattern)
    return re.compile(regex, flags | re.DOTALL)


class FakeQuery:
    def __init__(self, db: "FakeDatabase", tablename: str):
        self.db = db
        self.tablename = tablename
        self.conditions = []
        self.orders = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._returning: List[str] = []

    def where(self, column, op, value):
        op = str(op).lower()
        if op in ("like", "ilike"):
            pattern = _like(value, re.IGNORECASE if op == "ilike" else 0)
            self.conditions.append(("like", column, lambda v: v is not None and bool(pattern.fullmatch(str(v)))))
        elif op in _COMPARATORS:
            compare = _COMPARATORS[op]
            self.conditions.append((op, column, lambda v: v is not None and compare(v, _coerce(v, value))))
        else:
            raise ExpressionError(f"Unsupported operator: {op}")
        return self

    def where_in(self, column, values):
        wanted = {str(v) for v in values}
        self.conditions.append(("in", column, lambda v: v is not None and str(v) in wanted))
        return self

    def where_raw(self, raw, params=None):
        params = list(params or [])
        match = _RAW_CONDITION.match(raw)
        if not match:
            raise AssertionError(f"FakeQuery cannot evaluate raw SQL: {raw}")
        column, op, value = match.groups()
        if value == "%s":
            value = params.pop(0)
        else:
            value = value.replace("%%", "%").strip("'")
        return self.where(column, op, value)

    def order_by(self, column, direction=None):
        self.orders.append((column, (direction or "asc").lower()))
        return self

    def limit(self, value):
        self._limit = int(value)
        return self

    def offset(self, value):
        self._offset = int(value)
        return self

    def returning(self, *columns):
        self._returning = list(columns)
        return self

    def to_sql(self):
        parts = [f"SELECT * FROM {self.tablename}"]
        if self.conditions:
            parts.append("WHERE " + " AND ".join(f"{c} {op}" for op, c, _ in self.conditions))
        return " ".join(parts), []

    # -------------------------------------------------------------------------

    def _rows(self) -> List[Dict[str, Any]]:
        return [
            row for row in self.db.tables.setdefault(self.tablename, [])
            if all(test(row.get(column)) for _, column, test in self.conditions)
        ]

    async def all(self):
        self.db.record("select", self.tablename, [c for _, c, _ in self.conditions])
        rows = self._rows()
        for column, direction in reversed(self.orders):
            rows = sorted(rows, key=lambda r: r.get(column), reverse=direction == "desc")
        if self._offset:
            rows = rows[self._offset:]
        if self._limit is not None:
            rows = rows[:self._limit]
        return [dict(r) for r in rows]

    async def first(self):
        self._limit = 1
        rows = await self.all()
        return rows[0] if rows else None

    async def count(self):
        self.db.record("count", self.tablename, [c for _, c, _ in self.conditions])
        return len(self._rows())

    async def insert(self, data):
        self.db.record("insert", self.tablename, dict(data))
        row = dict(data)
        pk = self.db.primary_keys.get(self.tablename)
        if pk and row.get(pk) is None:
            existing = [r.get(pk) or 0 for r in self.db.tables.setdefault(self.tablename, [])]
            row[pk] = max(existing, default=0) + 1
        self.db.tables.setdefault(self.tablename, []).append(row)
        if self._returning:
            return [{c: row.get(c) for c in self._returning}]
        return [dict(row)]

    async def update(self, data):
        self.db.record("update", self.tablename, dict(data))
        rows = self._rows()
        for row in rows:
            row.update(data)
        return len(rows)


# =============================================================================
# Fake database
# =============================================================================

class FakeDatabase:
    def __init__(self, catalog: Optional[Dict[str, Any]] = None, client: str = "pg"):
        self.client = client
        self.namespace = None
        self.catalog = catalog or {}
        self.primary_keys = {name: t.get("primary_key") for name, t in self.catalog.items()}
        self.tables: Dict[str, List[Dict[str, Any]]] = {name: [] for name in self.catalog}
        self.queries: List[tuple] = []
        self.statements: List[Any] = []
        self.fail_with: Optional[Exception] = None

    def record(self, kind: str, tablename: str, detail: Any = None) -> None:
        self.queries.append((kind, tablename, detail))

    def selects(self, tablename: Optional[str] = None) -> List[tuple]:
        return [q for q in self.queries if q[0] == "select" and (tablename is None or q[1] == tablename)]

    def seed(self, tablename: str, rows: List[Dict[str, Any]]) -> None:
        self.tables.setdefault(tablename, []).extend(dict(r) for r in rows)

    def table(self, tablename: str) -> FakeQuery:
        return FakeQuery(self, tablename)

    async def raw(self, query, params=None):
        """Answer information_schema queries from the catalog description."""
        if self.fail_with is not None:
            raise self.fail_with
        params = list(params or [])
        text = str(query)
        self.record("raw", None, text)
        lowered = text.lower()
        if "information_schema.tables" in lowered:
            excluded = set(params[1:])
            return [{"table_name": t} for t in sorted(self.catalog) if t not in excluded]
        tablename = params[1]
        table = self.catalog.get(tablename, {})
        if "primary key" in lowered:
            pk = table.get("primary_key")
            return [{"column_name": pk}] if pk else []
        if "foreign key" in lowered or "referential_constraints" in lowered:
            return [
                {
                    "column_name": column,
                    "foreign_table_schema": params[0],
                    "foreign_table_name": ftable,
                    "foreign_column_name": fcolumn,
                }
                for column, ftable, fcolumn in table.get("foreign_keys", [])
            ]
        if "information_schema.columns" in lowered:
            return [
                {"column_name": name, "data_type": data_type, "is_nullable": nullable}
                for name, data_type, nullable in table.get("columns", [])
            ]
        raise AssertionError(f"Unexpected raw query: {text}")

    async def execute(self, statement, params=None):
        self.statements.append((statement, params))
        return 0


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def foo_bar_db() -> FakeDatabase:
    """The two-table foo/bar catalog, both tables empty."""
    return FakeDatabase(FOO_BAR_CATALOG)


@pytest.fixture
def blog_db() -> FakeDatabase:
    """users / posts / comments with a few rows, plus a table without primary key."""
    db = FakeDatabase(BLOG_CATALOG)
    db.seed("users", [
        {"id": 1, "name": "Ada", "avatar": None},
        {"id": 2, "name": "Grace", "avatar": None},
        {"id": 3, "name": "Linus", "avatar": None},
    ])
    db.seed("posts", [
        {"id": 10, "author_id": 1, "editor_id": 2, "title": "Engines"},
        {"id": 11, "author_id": 2, "editor_id": None, "title": "Compilers"},
        {"id": 12, "author_id": 1, "editor_id": 1, "title": "Notes on the analytical engine"},
    ])
    db.seed("comments", [
        {"id": 100, "post_id": 10, "body": "first"},
        {"id": 101, "post_id": 10, "body": "second"},
        {"id": 102, "post_id": 11, "body": "third"},
    ])
    return db


@pytest.fixture
def category_db() -> FakeDatabase:
    """A self-referencing tree: 1 <- 2 <- 3 <- 4 <- 5."""
    db = FakeDatabase(CATEGORY_CATALOG)
    db.seed("categories", [
        {"id": 1, "parent_id": None, "name": "root"},
        {"id": 2, "parent_id": 1, "name": "a"},
        {"id": 3, "parent_id": 2, "name": "b"},
        {"id": 4, "parent_id": 3, "name": "c"},
        {"id": 5, "parent_id": 4, "name": "d"},
    ])
    return db
