# mssql.py
"""
SQL Server dialect: catalog queries against INFORMATION_SCHEMA and the data
type table used by the type mapper.

Runs on MSSqlDatabase, which renders the ``%s`` placeholders below to the
ODBC ``?`` style.
"""

from typing import Any, Dict, List, Optional

from db2graphql.adapters.base import Adapter

# ─────────────────────────────────────────────────────────────────────────────
# Catalog SQL
# ─────────────────────────────────────────────────────────────────────────────

TABLES_QUERY = """
    SELECT TABLE_NAME AS table_name
    FROM INFORMATION_SCHEMA.TABLES
    WHERE TABLE_SCHEMA = %s
      AND TABLE_TYPE = 'BASE TABLE'
      {exclude}
    ORDER BY TABLE_NAME
"""

COLUMNS_QUERY = """
    SELECT COLUMN_NAME AS column_name, IS_NULLABLE AS is_nullable, DATA_TYPE AS data_type
    FROM INFORMATION_SCHEMA.COLUMNS
    WHERE TABLE_SCHEMA = %s
      AND TABLE_NAME = %s
    ORDER BY ORDINAL_POSITION
"""

PRIMARY_KEY_QUERY = """
    SELECT kcu.COLUMN_NAME AS column_name
    FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
    JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
      ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
     AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
    WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
      AND tc.TABLE_SCHEMA = %s
      AND tc.TABLE_NAME = %s
    ORDER BY kcu.ORDINAL_POSITION
"""

# Referencing and referenced columns pair up by ordinal position
FOREIGN_KEYS_QUERY = """
    SELECT
        kcu.COLUMN_NAME AS column_name,
        ref.TABLE_SCHEMA AS foreign_table_schema,
        ref.TABLE_NAME AS foreign_table_name,
        ref.COLUMN_NAME AS foreign_column_name
    FROM INFORMATION_SCHEMA.REFERENTIAL_CONSTRAINTS rc
    JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
      ON kcu.CONSTRAINT_SCHEMA = rc.CONSTRAINT_SCHEMA
     AND kcu.CONSTRAINT_NAME = rc.CONSTRAINT_NAME
    JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE ref
      ON ref.CONSTRAINT_SCHEMA = rc.UNIQUE_CONSTRAINT_SCHEMA
     AND ref.CONSTRAINT_NAME = rc.UNIQUE_CONSTRAINT_NAME
     AND ref.ORDINAL_POSITION = kcu.ORDINAL_POSITION
    WHERE kcu.TABLE_SCHEMA = %s
      AND kcu.TABLE_NAME = %s
    ORDER BY kcu.ORDINAL_POSITION
"""


class MSSql(Adapter):
    dialect = "mssql"

    TYPE_MAP = {
        "bit": "Boolean",
        "numeric": "Float",
        "decimal": "Float",
        "float": "Float",
        "real": "Float",
        "money": "Float",
        "smallmoney": "Float",
        "int": "Int",
        "tinyint": "Int",
        "smallint": "Int",
        "bigint": "Int",
        "char": "String",
        "varchar": "String",
        "text": "String",
        "nchar": "String",
        "nvarchar": "String",
        "ntext": "String",
        "binary": "String",
        "varbinary": "String",
        "uniqueidentifier": "String",
        "date": "String",
        "time": "String",
        "datetime": "String",
        "datetime2": "String",
        "datetimeoffset": "String",
        "smalldatetime": "String",
        "xml": "String",
    }

    async def get_tables(self, namespace: str, exclude: List[str]) -> List[str]:
        query = TABLES_QUERY.format(exclude=self.get_exclude_condition(exclude))
        rows = await self.db.raw(query, [namespace, *exclude])
        return [row["table_name"] for row in rows]

    async def get_columns(self, namespace: str, tablename: str) -> List[Dict[str, Any]]:
        return await self.db.raw(COLUMNS_QUERY, [namespace, tablename])

    async def get_primary_key(self, namespace: str, tablename: str) -> Optional[str]:
        rows = await self.db.raw(PRIMARY_KEY_QUERY, [namespace, tablename])
        return rows[0]["column_name"] if rows else None

    async def get_foreign_keys(self, namespace: str, tablename: str) -> List[Dict[str, Any]]:
        return await self.db.raw(FOREIGN_KEYS_QUERY, [namespace, tablename])
