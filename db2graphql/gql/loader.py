# loader.py
"""
Eager relation loading.

Given rows of one table, attach their related rows in both directions:

    forward   item["<column>_<table>"] = referenced row or None
    reverse   item["<table>"] = {"total": n, "tablename": table, "items": [...]}

Each relation is fetched with one ``WHERE column IN (...)`` query per level
and the results are matched back to the items by key value. The traversal is
breadth first and stops at ``max_depth``; cycles are cut by that bound.

A reverse relation may share its name with a column of the parent table
(``foo.bar`` vs the ``bar`` table). The column value is then kept under
SHADOWED_COLUMNS and read back through column_value().
"""

import logging
from collections import deque
from typing import Any, Dict, List, Optional, Tuple

from db2graphql.cache import RelationLoadCache

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 3
SHADOWED_COLUMNS = "__columns__"

# Request flags that travel with relation loads
LOAD_FLAGS = ("_cache", "_debug")

Batch = Tuple[str, List[Dict[str, Any]]]


def column_value(item: Dict[str, Any], column: str) -> Any:
    """Value of a table column on a row, even when a relation field replaced it."""
    shadowed = item.get(SHADOWED_COLUMNS)
    if shadowed and column in shadowed:
        return shadowed[column]
    return item.get(column)


def attach(item: Dict[str, Any], field: str, value: Any, columns) -> None:
    if field in columns and field in item:
        # First write wins: later attaches must not store a relation as the column value
        item.setdefault(SHADOWED_COLUMNS, {}).setdefault(field, item[field])
    item[field] = value


def page_of(tablename: str, items: List[Dict[str, Any]], total: Optional[int] = None) -> Dict[str, Any]:
    return {"total": len(items) if total is None else total, "tablename": tablename, "items": items}


class RelationLoader:

    def __init__(self, adapter, max_depth: int = DEFAULT_MAX_DEPTH):
        self.adapter = adapter
        self.max_depth = max_depth

    @property
    def graph(self):
        return self.adapter.require_graph()

    # ─────────────────────────────────────────────────────────────────────────
    # Traversal
    # ─────────────────────────────────────────────────────────────────────────

    async def load(
        self,
        items: List[Dict[str, Any]],
        tablename: str,
        depth: int = 1,
        cache: Optional[RelationLoadCache] = None,
        args: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Attach relations to ``items`` and, level by level, to the rows they pull in.

        Args:
            items: rows of ``tablename``; mutated in place
            tablename: table the rows belong to
            depth: level of ``items``; nothing is loaded past ``max_depth``
            cache: row cache shared by the request, a new one when omitted
            args: root field arguments; only the ``_cache``/``_debug`` flags are used

        Returns:
            ``items``
        """
        cache = cache if cache is not None else RelationLoadCache()
        flags = _flags(args)
        visited = set()
        queue = deque([(tablename, items, depth)])

        while queue:
            table, batch, level = queue.popleft()
            if level > self.max_depth or not batch:
                continue
            pk = self.graph.primary_key(table)
            fresh = []
            for item in batch:
                key = column_value(item, pk) if pk else id(item)
                if (table, key, level) in visited:
                    continue
                visited.add((table, key, level))
                if pk and key is not None:
                    cache.add(table, key, item)
                fresh.append(item)
            if not fresh:
                continue

            for child_table, children in await self._load_foreign(fresh, table, cache, flags):
                queue.append((child_table, children, level + 1))
            for child_table, children in await self._load_reverse(fresh, table, cache, flags):
                queue.append((child_table, children, level + 1))

        return items

    async def load_foreign(
        self,
        items: List[Dict[str, Any]],
        tablename: str,
        depth: int = 1,
        cache: Optional[RelationLoadCache] = None,
        args: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Attach forward relations of ``items`` only, one level, no recursion."""
        if depth <= self.max_depth:
            await self._load_foreign(items, tablename, cache or RelationLoadCache(), _flags(args))
        return items

    async def load_reverse(
        self,
        items: List[Dict[str, Any]],
        tablename: str,
        depth: int = 1,
        cache: Optional[RelationLoadCache] = None,
        args: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Attach reverse relations of ``items`` only, one level, no recursion."""
        if depth <= self.max_depth:
            await self._load_reverse(items, tablename, cache or RelationLoadCache(), _flags(args))
        return items

    # ─────────────────────────────────────────────────────────────────────────
    # One level
    # ─────────────────────────────────────────────────────────────────────────

    async def _load_foreign(self, items, tablename, cache, flags) -> List[Batch]:
        graph = self.graph
        node = graph.table(tablename)
        batches = []
        for column in graph.foreign_columns(tablename):
            ref = column.foreign
            field = node.foreign_field_name(column.name)
            keys = _distinct(column_value(item, column.name) for item in items)
            rows = await self._fetch(ref.tablename, ref.columnname, keys, cache, flags)

            by_key: Dict[str, Dict[str, Any]] = {}
            for row in rows:
                by_key.setdefault(str(column_value(row, ref.columnname)), row)
            for item in items:
                value = column_value(item, column.name)
                attach(item, field, by_key.get(str(value)) if value is not None else None, node.columns)

            logger.debug("Loaded %d %s rows for %s.%s", len(rows), ref.tablename, tablename, field)
            batches.append((ref.tablename, rows))
        return batches

    async def _load_reverse(self, items, tablename, cache, flags) -> List[Batch]:
        node = self.graph.table(tablename)
        # Read every key before attaching; a reverse field may shadow a key column
        keys_of = [
            {relation.local_column: column_value(item, relation.local_column) for relation in node.reverse}
            for item in items
        ]
        batches = []
        for relation, field in node.reverse_field_names():
            keys = _distinct(k[relation.local_column] for k in keys_of)
            rows = await self._fetch(relation.foreign_table, relation.foreign_column, keys, cache, flags)

            grouped: Dict[str, List[Dict[str, Any]]] = {}
            for row in rows:
                grouped.setdefault(str(column_value(row, relation.foreign_column)), []).append(row)
            for item, item_keys in zip(items, keys_of):
                value = item_keys[relation.local_column]
                children = grouped.get(str(value), []) if value is not None else []
                attach(item, field, page_of(relation.foreign_table, children), node.columns)

            logger.debug("Loaded %d %s rows into %s.%s", len(rows), relation.foreign_table, tablename, field)
            batches.append((relation.foreign_table, rows))
        return batches

    async def _fetch(self, tablename, columnname, keys, cache, flags) -> List[Dict[str, Any]]:
        """Rows of ``tablename`` with ``columnname`` in ``keys``, served from the row cache when possible."""
        if not keys:
            return []
        pk = self.graph.primary_key(tablename)
        if pk is not None and columnname == pk:
            rows, missing = cache.split(tablename, keys)
        else:
            rows, missing = [], keys
        if missing:
            for row in await self.adapter.load_items_in(tablename, columnname, missing, flags):
                if pk is not None:
                    row = cache.add(tablename, column_value(row, pk), row)
                rows.append(row)
        return rows


def _distinct(values) -> List[Any]:
    seen = set()
    result = []
    for value in values:
        if value is None or str(value) in seen:
            continue
        seen.add(str(value))
        result.append(value)
    return result


def _flags(args: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {k: args[k] for k in LOAD_FLAGS if args and k in args}
