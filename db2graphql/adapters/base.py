# base.py
"""
Dialect-independent adapter.

An adapter owns the Database collaborator and does three jobs for the rest
of the generator:

  - reads the catalog into a SchemaGraph (two passes: tables and columns
    first, foreign keys once every table exists)
  - maps dialect column types to GraphQL scalars
  - turns parsed filter/pagination expressions into queries and runs them

Dialects subclass Adapter, provide the four catalog queries and a TYPE_MAP.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import psycopg

from db2graphql.cache import QueryCache
from db2graphql.errors import SchemaIntrospectionError, TypeMappingError
from db2graphql.models.schema import ColumnAttrs, ForeignRef, ReverseRelation, SchemaGraph, TableNode
from db2graphql.query import QueryBuilder, render_sql
from db2graphql.utils.validation import validate_identifier

logger = logging.getLogger(__name__)


class Adapter:
    dialect = "base"

    # dialect data type -> GraphQL scalar
    TYPE_MAP: Dict[str, str] = {}

    def __init__(self, db, cache: Optional[QueryCache] = None):
        self.db = db
        self.graph: Optional[SchemaGraph] = None
        self.cache = cache if cache is not None else QueryCache()

    # ─────────────────────────────────────────────────────────────────────────
    # Catalog queries (dialect specific)
    # ─────────────────────────────────────────────────────────────────────────

    async def get_tables(self, namespace: str, exclude: List[str]) -> List[str]:
        raise NotImplementedError

    async def get_columns(self, namespace: str, tablename: str) -> List[Dict[str, Any]]:
        """Rows of ``{column_name, is_nullable, data_type}`` in ordinal order."""
        raise NotImplementedError

    async def get_primary_key(self, namespace: str, tablename: str) -> Optional[str]:
        raise NotImplementedError

    async def get_foreign_keys(self, namespace: str, tablename: str) -> List[Dict[str, Any]]:
        """Rows of ``{column_name, foreign_table_schema, foreign_table_name, foreign_column_name}``."""
        raise NotImplementedError

    @staticmethod
    def get_exclude_condition(exclude: Sequence[str]) -> str:
        """SQL fragment excluding tables by name; one placeholder per name."""
        if not exclude:
            return ""
        return "AND table_name NOT IN (" + ", ".join(["%s"] * len(exclude)) + ")"

    # ─────────────────────────────────────────────────────────────────────────
    # Catalog reader
    # ─────────────────────────────────────────────────────────────────────────

    async def get_schema(self, namespace: str = "public", exclude: Optional[List[str]] = None) -> SchemaGraph:
        """
        Introspect ``namespace`` and return its schema graph.

        Args:
            namespace: schema to read
            exclude: table names left out of the graph

        Returns:
            The new graph; it also replaces ``self.graph``

        Raises:
            SchemaIntrospectionError: when a catalog query fails or the graph is inconsistent
        """
        exclude = list(exclude or [])
        graph = SchemaGraph(namespace=namespace)
        try:
            tablenames = await self.get_tables(namespace, exclude)

            # First pass: every table with its columns and primary key
            for tablename in tablenames:
                node = TableNode(name=tablename, primary_key=await self.get_primary_key(namespace, tablename))
                for row in await self.get_columns(namespace, tablename):
                    node.columns[row["column_name"]] = ColumnAttrs(
                        name=row["column_name"],
                        data_type=row["data_type"],
                        is_nullable=row.get("is_nullable") in ("YES", True),
                    )
                graph.tables[tablename] = node

            # Second pass: both directions of every foreign key
            for tablename in tablenames:
                for row in await self.get_foreign_keys(namespace, tablename):
                    self._add_foreign_key(graph, tablename, row)
        except getattr(self.db, "errors", (psycopg.Error,)) as e:
            raise SchemaIntrospectionError(f"Catalog query failed for namespace {namespace}: {e}") from e

        graph.check_consistency()
        logger.info("Read %d tables from namespace %s", len(graph.tables), namespace)
        self.graph = graph
        self.cache.clear()
        return graph

    @staticmethod
    def _add_foreign_key(graph: SchemaGraph, tablename: str, row: Dict[str, Any]) -> None:
        node = graph.tables[tablename]
        column = node.columns.get(row["column_name"])
        if column is None:
            raise SchemaIntrospectionError(
                f"Foreign key on unknown column {tablename}.{row['column_name']}"
            )
        target_table = row["foreign_table_name"]
        target_schema = row.get("foreign_table_schema") or graph.namespace
        column.foreign = ForeignRef(
            schema=target_schema,
            tablename=target_table,
            columnname=row["foreign_column_name"],
        )
        if not graph.has_table(target_table) or target_schema != graph.namespace:
            # Target outside the graph: forward ref only
            return
        target = graph.tables[target_table]
        relation = ReverseRelation(
            foreign_schema=graph.namespace,
            foreign_table=tablename,
            foreign_column=column.name,
            local_column=row["foreign_column_name"],
        )
        if relation not in target.reverse:
            target.reverse.append(relation)

    def set_graph(self, graph: SchemaGraph) -> None:
        self.graph = graph
        self.cache.clear()

    def require_graph(self) -> SchemaGraph:
        if self.graph is None:
            raise SchemaIntrospectionError("Schema has not been read yet; call get_schema() first")
        return self.graph

    # ─────────────────────────────────────────────────────────────────────────
    # Type mapper
    # ─────────────────────────────────────────────────────────────────────────

    @classmethod
    def get_available_types(cls) -> List[str]:
        return list(cls.TYPE_MAP.keys())

    def map_column_type(self, column_name: str, attrs: Any) -> str:
        """
        Map a column to its GraphQL scalar.

        Raises:
            TypeMappingError: when the data type is not in TYPE_MAP
        """
        data_type = attrs["data_type"] if isinstance(attrs, dict) else attrs.data_type
        try:
            return self.TYPE_MAP[data_type]
        except KeyError:
            raise TypeMappingError(column_name, data_type) from None

    # ─────────────────────────────────────────────────────────────────────────
    # Expression application
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def apply_condition(query: QueryBuilder, condition: Sequence[str]) -> QueryBuilder:
        """Apply one parsed filter clause ``[op, column, value]`` to ``query``."""
        op, column, value = condition
        column = validate_identifier(column)
        if op == "~":
            return query.where(column, "ilike", "%" + value.replace(" ", "%") + "%")
        if op == "#":
            return query.where_in(column, [v.strip() for v in value.split(",")])
        if op == "<=>":
            # Passed through unescaped; callers own the value. A literal % is
            # doubled so it survives placeholder interpolation
            return query.where_raw(f"{column} = {value}".replace("%", "%%"))
        return query.where(column, op, value)

    @staticmethod
    def apply_pagination(query: QueryBuilder, params: Sequence[Sequence[str]]) -> QueryBuilder:
        for name, value in params:
            if name == "limit":
                query.limit(value)
            elif name == "offset":
                query.offset(value)
            elif name == "orderby":
                parts = value.split()
                if not parts:
                    continue
                query.order_by(validate_identifier(parts[0]), parts[1] if len(parts) > 1 else None)
        return query

    def add_where_from_args(self, tablename: str, query: QueryBuilder, args: Dict[str, Any]) -> QueryBuilder:
        for condition in (args.get("filter") or {}).get(tablename, []):
            self.apply_condition(query, condition)
        return query

    @staticmethod
    def add_where_from_args_where(query: QueryBuilder, args: Dict[str, Any]) -> QueryBuilder:
        """Apply the raw ``where: Condition`` argument (``{sql, val}``)."""
        where = args.get("where")
        if where and where.get("sql"):
            query.where_raw(where["sql"], where.get("val") or [])
        return query

    def add_pagination_from_args(self, tablename: str, query: QueryBuilder, args: Dict[str, Any]) -> QueryBuilder:
        return self.apply_pagination(query, (args.get("pagination") or {}).get(tablename, []))

    def _filtered(self, tablename: str, args: Dict[str, Any], paginate: bool = True) -> QueryBuilder:
        query = self.db.table(tablename)
        self.add_where_from_args(tablename, query, args)
        self.add_where_from_args_where(query, args)
        if paginate:
            self.add_pagination_from_args(tablename, query, args)
        return query

    # ─────────────────────────────────────────────────────────────────────────
    # Data access
    # ─────────────────────────────────────────────────────────────────────────

    async def page(self, tablename: str, args: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        args = args or {}
        query = self._filtered(tablename, args)
        return await self._cached_all(tablename, "page", [], args, query)

    async def page_total(self, tablename: str, args: Optional[Dict[str, Any]] = None) -> int:
        """Row count for the same filter as page(), ignoring pagination."""
        args = args or {}
        query = self._filtered(tablename, args, paginate=False)
        self._debug(args, "db count", query)
        return await query.count()

    async def first_of(self, tablename: str, args: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        args = args or {}
        query = self._filtered(tablename, args)
        self._debug(args, "db hit", query)
        return await query.first()

    async def find_by_key(self, tablename: str, value: Any, debug: bool = False) -> Optional[Dict[str, Any]]:
        pk = self.require_primary_key(tablename)
        return await self.first_of(tablename, {
            "filter": {tablename: [["=", pk, value]]},
            "_debug": debug,
        })

    async def load_items_in(
        self,
        tablename: str,
        columnname: str,
        ids: Sequence[Any],
        args: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Rows of ``tablename`` whose ``columnname`` is one of ``ids``, in a single query."""
        args = args or {}
        query = self._filtered(tablename, args).where_in(columnname, ids)
        return await self._cached_all(tablename, f"in:{columnname}", ids, args, query)

    async def count_items_in(
        self,
        tablename: str,
        columnname: str,
        ids: Sequence[Any],
        args: Optional[Dict[str, Any]] = None,
    ) -> int:
        args = args or {}
        query = self._filtered(tablename, args, paginate=False).where_in(columnname, ids)
        self._debug(args, "db count", query)
        return await query.count()

    async def put_item(self, tablename: str, data: Dict[str, Any], debug: bool = False) -> Any:
        """
        Insert or update one row and return its primary key value.

        A missing or falsy primary key inserts. Otherwise the row is updated
        by primary key; when the update touches no row the data is inserted.

        Raises:
            UnknownTableError: when the table is not in the graph
            SchemaIntrospectionError: when the table has no primary key
        """
        node = self.require_graph().table(tablename)
        pk = self.require_primary_key(tablename)
        known = node.column_names()
        data = {k: v for k, v in (data or {}).items() if k in known}
        # Any write may invalidate cached pages and relation loads
        self.cache.clear()

        key = data.get(pk)
        if key:
            changes = {k: v for k, v in data.items() if k != pk}
            if changes:
                query = self.db.table(tablename).where(pk, "=", key)
                if debug:
                    logger.info("db update: %s %s", tablename, changes)
                if await query.update(changes):
                    return key
            elif await self.db.table(tablename).where(pk, "=", key).count():
                return key
        else:
            data.pop(pk, None)

        query = self.db.table(tablename).returning(pk)
        if debug:
            logger.info("db insert: %s %s", tablename, data)
        rows = await query.insert(data)
        return rows[0][pk] if rows else key

    def require_primary_key(self, tablename: str) -> str:
        pk = self.require_graph().primary_key(tablename)
        if pk is None:
            raise SchemaIntrospectionError(f"Table {tablename} has no primary key")
        return pk

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    async def _cached_all(
        self,
        tablename: str,
        kind: str,
        ids: Sequence[Any],
        args: Dict[str, Any],
        query: QueryBuilder,
    ) -> List[Dict[str, Any]]:
        use_cache = args.get("_cache") is not False
        key = QueryCache.key(tablename, kind, ids, args)
        if use_cache:
            rows = self.cache.get(key)
            if rows is not None:
                if args.get("_debug"):
                    logger.info("cache hit: %s %s", tablename, kind)
                return rows
        self._debug(args, "db hit", query)
        rows = [dict(r) for r in await query.all()]
        if use_cache:
            self.cache.set(key, rows)
        return rows

    @staticmethod
    def _debug(args: Dict[str, Any], label: str, query: QueryBuilder) -> None:
        if not args.get("_debug"):
            return
        statement, params = query.to_sql()
        logger.info("%s: %s %s", label, render_sql(statement), params)

    def __repr__(self) -> str:
        tables = len(self.graph.tables) if self.graph else 0
        return f"<{type(self).__name__} dialect={self.dialect} tables={tables}>"

