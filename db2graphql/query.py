# query.py
"""
Chainable query builder over psycopg.sql.

Covers exactly what the generator needs from a query builder: filtered,
ordered and paginated selects, counts, single-row inserts and updates.
Identifiers are always quoted with sql.Identifier and values always travel
as parameters, except for where_raw() which passes its SQL through verbatim.
"""

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from psycopg import sql

from db2graphql.errors import ExpressionError
from db2graphql.utils.validation import validate_sort_direction

# Comparison operators accepted by where(); keys are matched case-insensitively
OPERATORS = {
    "=": "=",
    "<>": "<>",
    "!=": "<>",
    ">": ">",
    "<": "<",
    ">=": ">=",
    "<=": "<=",
    "like": "LIKE",
    "ilike": "ILIKE",
}

_MISSING = object()


def render_sql(query: Any) -> str:
    """Render a composed statement for log output."""
    if isinstance(query, sql.Composable):
        return query.as_string(None)
    return str(query)


class QueryBuilder:
    """
    Build and run a statement against one table.

    Example:
        rows = await db.table("posts").where("author_id", "=", 3).order_by("id", "desc").limit(10).all()
    """

    OPERATORS = OPERATORS
    EMPTY_SET = sql.SQL("FALSE")

    def __init__(self, db, tablename: str, namespace: str | None = None):
        self.db = db
        self.tablename = tablename
        self.namespace = namespace
        self._wheres: List[Tuple[sql.Composable, List[Any]]] = []
        self._orders: List[Tuple[str, str]] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._returning: List[str] = []

    # ─────────────────────────────────────────────────────────────────────────
    # Clauses
    # ─────────────────────────────────────────────────────────────────────────

    def where(self, column: str, op: Any, value: Any = _MISSING) -> "QueryBuilder":
        """Add ``column op value``; ``where(column, value)`` is shorthand for equality."""
        if value is _MISSING:
            op, value = "=", op
        operator = self.OPERATORS.get(str(op).lower())
        if operator is None:
            raise ExpressionError(f"Unsupported operator: {op}")
        clause = sql.SQL("{} {} %s").format(sql.Identifier(column), sql.SQL(operator))
        self._wheres.append((clause, [value]))
        return self

    def where_in(self, column: str, values: Sequence[Any]) -> "QueryBuilder":
        values = list(values)
        if not values:
            # IN () is not valid SQL; an empty set matches nothing
            self._wheres.append((self.EMPTY_SET, []))
            return self
        clause = sql.SQL("{} IN ({})").format(
            sql.Identifier(column),
            sql.SQL(", ").join(sql.Placeholder() * len(values))
        )
        self._wheres.append((clause, values))
        return self

    def where_raw(self, raw: str, params: Optional[Sequence[Any]] = None) -> "QueryBuilder":
        """Append raw SQL to the WHERE clause. The text is not escaped."""
        self._wheres.append((sql.SQL("(") + sql.SQL(raw) + sql.SQL(")"), list(params or [])))
        return self

    def order_by(self, column: str, direction: str | None = None) -> "QueryBuilder":
        self._orders.append((column, validate_sort_direction(direction)))
        return self

    def limit(self, value: Any) -> "QueryBuilder":
        self._limit = _to_int(value, "limit")
        return self

    def offset(self, value: Any) -> "QueryBuilder":
        self._offset = _to_int(value, "offset")
        return self

    def returning(self, *columns: str) -> "QueryBuilder":
        self._returning = list(columns)
        return self

    # ─────────────────────────────────────────────────────────────────────────
    # Compilation
    # ─────────────────────────────────────────────────────────────────────────

    def _table(self) -> sql.Identifier:
        if self.namespace:
            return sql.Identifier(self.namespace, self.tablename)
        return sql.Identifier(self.tablename)

    def _where_sql(self) -> Tuple[sql.Composable, List[Any]]:
        if not self._wheres:
            return sql.SQL(""), []
        params: List[Any] = []
        for _, clause_params in self._wheres:
            params.extend(clause_params)
        clause = sql.SQL(" WHERE ") + sql.SQL(" AND ").join(c for c, _ in self._wheres)
        return clause, params

    def _order_sql(self) -> sql.Composable:
        return sql.SQL(" ORDER BY ") + sql.SQL(", ").join(
            sql.SQL("{} {}").format(sql.Identifier(c), sql.SQL(d.upper())) for c, d in self._orders
        )

    def _returning_sql(self) -> sql.Composable:
        if not self._returning:
            return sql.SQL(" RETURNING *")
        return sql.SQL(" RETURNING ") + sql.SQL(", ").join(sql.Identifier(c) for c in self._returning)

    def to_sql(self) -> Tuple[sql.Composed, List[Any]]:
        """Compile the SELECT this builder describes."""
        where, params = self._where_sql()
        query = sql.SQL("SELECT * FROM {}").format(self._table()) + where
        if self._orders:
            query += self._order_sql()
        if self._limit is not None:
            query += sql.SQL(" LIMIT %s")
            params.append(self._limit)
        if self._offset is not None:
            query += sql.SQL(" OFFSET %s")
            params.append(self._offset)
        return query, params

    def count_sql(self) -> Tuple[sql.Composed, List[Any]]:
        where, params = self._where_sql()
        return sql.SQL("SELECT COUNT(*) AS total FROM {}").format(self._table()) + where, params

    def insert_sql(self, data: Dict[str, Any]) -> Tuple[sql.Composed, List[Any]]:
        if not data:
            query = sql.SQL("INSERT INTO {} DEFAULT VALUES").format(self._table())
            return query + self._returning_sql(), []
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            self._table(),
            sql.SQL(", ").join(sql.Identifier(k) for k in data),
            sql.SQL(", ").join(sql.Placeholder() * len(data))
        )
        return query + self._returning_sql(), list(data.values())

    def update_sql(self, data: Dict[str, Any]) -> Tuple[sql.Composed, List[Any]]:
        if not data:
            raise ValueError("Update data cannot be empty")
        where, where_params = self._where_sql()
        query = sql.SQL("UPDATE {} SET {}").format(
            self._table(),
            sql.SQL(", ").join(sql.SQL("{} = %s").format(sql.Identifier(k)) for k in data)
        )
        return query + where, list(data.values()) + where_params

    # ─────────────────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────────────────

    async def all(self) -> List[Dict[str, Any]]:
        query, params = self.to_sql()
        return await self.db.raw(query, params)

    async def first(self) -> Optional[Dict[str, Any]]:
        self._limit = 1
        rows = await self.all()
        return rows[0] if rows else None

    async def count(self) -> int:
        query, params = self.count_sql()
        rows = await self.db.raw(query, params)
        return int(rows[0]["total"]) if rows else 0

    async def insert(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Insert one row and return the RETURNING rows."""
        query, params = self.insert_sql(data)
        return await self.db.raw(query, params)

    async def update(self, data: Dict[str, Any]) -> int:
        """Update the rows matching the WHERE clause and return how many changed."""
        query, params = self.update_sql(data)
        return await self.db.execute(query, params)


class MSSqlQueryBuilder(QueryBuilder):
    """
    T-SQL flavour of the builder.

    ILIKE becomes LIKE (SQL Server collations are case-insensitive by
    default), paging uses OFFSET/FETCH and inserts report rows through OUTPUT.
    Statements are still composed with psycopg.sql; MSSqlDatabase renders
    them to qmark text before they reach the driver.
    """

    OPERATORS = {**OPERATORS, "ilike": "LIKE"}
    EMPTY_SET = sql.SQL("1 = 0")

    def to_sql(self) -> Tuple[sql.Composed, List[Any]]:
        where, params = self._where_sql()
        query = sql.SQL("SELECT * FROM {}").format(self._table()) + where
        paged = self._limit is not None or self._offset is not None
        if self._orders:
            query += self._order_sql()
        elif paged:
            # OFFSET/FETCH is only valid after an ORDER BY
            query += sql.SQL(" ORDER BY (SELECT NULL)")
        if paged:
            query += sql.SQL(" OFFSET %s ROWS")
            params.append(self._offset or 0)
        if self._limit is not None:
            query += sql.SQL(" FETCH NEXT %s ROWS ONLY")
            params.append(self._limit)
        return query, params

    def _output_sql(self) -> sql.Composable:
        if not self._returning:
            return sql.SQL(" OUTPUT INSERTED.*")
        return sql.SQL(" OUTPUT ") + sql.SQL(", ").join(
            sql.SQL("INSERTED.{}").format(sql.Identifier(c)) for c in self._returning
        )

    def insert_sql(self, data: Dict[str, Any]) -> Tuple[sql.Composed, List[Any]]:
        if not data:
            query = sql.SQL("INSERT INTO {}").format(self._table())
            return query + self._output_sql() + sql.SQL(" DEFAULT VALUES"), []
        query = sql.SQL("INSERT INTO {} ({})").format(
            self._table(),
            sql.SQL(", ").join(sql.Identifier(k) for k in data)
        )
        values = sql.SQL(" VALUES ({})").format(sql.SQL(", ").join(sql.Placeholder() * len(data)))
        return query + self._output_sql() + values, list(data.values())


def to_qmark(statement: Any) -> str:
    """Render a statement with ``%s`` placeholders (and ``%%`` escapes) in ``?`` style."""
    return re.sub(r"%([%s])", lambda m: "%" if m.group(1) == "%" else "?", render_sql(statement))


def _to_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ExpressionError(f"Invalid {name}: {value!r}") from None
    if number < 0:
        raise ExpressionError(f"Invalid {name}: {value!r}")
    return number
