# postgres.py
"""
PostgreSQL dialect: catalog queries against information_schema and the
data type table used by the type mapper.
"""

from typing import Any, Dict, List, Optional

from db2graphql.adapters.base import Adapter

# ─────────────────────────────────────────────────────────────────────────────
# Catalog SQL
# ─────────────────────────────────────────────────────────────────────────────

TABLES_QUERY = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = %s
      AND table_type = 'BASE TABLE'
      {exclude}
    ORDER BY table_name
"""

COLUMNS_QUERY = """
    SELECT column_name, is_nullable, data_type
    FROM information_schema.columns
    WHERE table_schema = %s
      AND table_name = %s
    ORDER BY ordinal_position
"""

PRIMARY_KEY_QUERY = """
    SELECT kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
    WHERE tc.constraint_type = 'PRIMARY KEY'
      AND tc.table_schema = %s
      AND tc.table_name = %s
    ORDER BY kcu.ordinal_position
"""

FOREIGN_KEYS_QUERY = """
    SELECT
        kcu.column_name,
        ccu.table_schema AS foreign_table_schema,
        ccu.table_name AS foreign_table_name,
        ccu.column_name AS foreign_column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage ccu
      ON ccu.constraint_name = tc.constraint_name
     AND ccu.constraint_schema = tc.constraint_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
      AND tc.table_schema = %s
      AND tc.table_name = %s
    ORDER BY kcu.ordinal_position
"""


class PostgreSQL(Adapter):
    dialect = "pg"

    TYPE_MAP = {
        "boolean": "Boolean",
        "numeric": "Float",
        "real": "Float",
        "double precision": "Float",
        "smallint": "Int",
        "integer": "Int",
        "bigint": "Int",
        "character varying": "String",
        "character": "String",
        "text": "String",
        "uuid": "String",
        "date": "String",
        "timestamp with time zone": "String",
        "timestamp without time zone": "String",
        "json": "String",
        "jsonb": "String",
        "USER-DEFINED": "String",
    }

    async def get_tables(self, namespace: str, exclude: List[str]) -> List[str]:
        query = TABLES_QUERY.format(exclude=self.get_exclude_condition(exclude))
        rows = await self.db.raw(query, [namespace, *exclude])
        return [row["table_name"] for row in rows]

    async def get_columns(self, namespace: str, tablename: str) -> List[Dict[str, Any]]:
        return await self.db.raw(COLUMNS_QUERY, [namespace, tablename])

    async def get_primary_key(self, namespace: str, tablename: str) -> Optional[str]:
        rows = await self.db.raw(PRIMARY_KEY_QUERY, [namespace, tablename])
        # Composite keys expose their first column
        return rows[0]["column_name"] if rows else None

    async def get_foreign_keys(self, namespace: str, tablename: str) -> List[Dict[str, Any]]:
        return await self.db.raw(FOREIGN_KEYS_QUERY, [namespace, tablename])
