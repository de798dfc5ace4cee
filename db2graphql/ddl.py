# ddl.py
"""
DDL passthrough helpers.

Small schema-builder surface used to create demo tables and test fixtures:
create/drop tables and alter them column by column. No diffing and no
migration bookkeeping; each call runs one statement.
"""

import logging
from typing import Any, Dict, List, Optional

from psycopg import sql

logger = logging.getLogger(__name__)

# Common type names accepted in column definitions, mapped to PostgreSQL types
COLUMN_TYPE_MAPPING = {
    'TEXT': 'TEXT',
    'STRING': 'VARCHAR(255)',
    'VARCHAR': 'VARCHAR(255)',
    'INTEGER': 'INTEGER',
    'INT': 'INTEGER',
    'BIGINT': 'BIGINT',
    'INCREMENTS': 'SERIAL',
    'BIGINCREMENTS': 'BIGSERIAL',
    'DECIMAL': 'DECIMAL(10,2)',
    'FLOAT': 'DOUBLE PRECISION',
    'BOOLEAN': 'BOOLEAN',
    'BOOL': 'BOOLEAN',
    'DATE': 'DATE',
    'TIMESTAMP': 'TIMESTAMP WITH TIME ZONE',
    'DATETIME': 'TIMESTAMP WITH TIME ZONE',
    'JSON': 'JSONB',
    'JSONB': 'JSONB',
    'UUID': 'UUID',
}


def column_type(type_name: str) -> str:
    """Translate a friendly type name; unknown names pass through unchanged."""
    return COLUMN_TYPE_MAPPING.get(type_name.strip().upper(), type_name.strip())


def column_definition(name: str, definition: Dict[str, Any]) -> sql.Composed:
    """
    Build ``"name" TYPE [NOT NULL] [DEFAULT ...] [PRIMARY KEY] [REFERENCES ...]``.

    ``definition`` keys: type, nullable (default True), default (raw SQL),
    primary (bool), references ("table.column").
    """
    parts = [sql.Identifier(name), sql.SQL(column_type(definition.get('type', 'TEXT')))]
    if definition.get('primary'):
        parts.append(sql.SQL("PRIMARY KEY"))
    elif not definition.get('nullable', True):
        parts.append(sql.SQL("NOT NULL"))
    if definition.get('default') is not None:
        parts.append(sql.SQL("DEFAULT ") + sql.SQL(str(definition['default'])))
    if definition.get('references'):
        table, column = definition['references'].split('.', 1)
        parts.append(sql.SQL("REFERENCES {} ({})").format(sql.Identifier(table), sql.Identifier(column)))
    return sql.SQL(" ").join(parts)


class TableAlter:
    """ALTER TABLE helpers bound to one table."""

    def __init__(self, db, tablename: str):
        self.db = db
        self.tablename = tablename

    async def _alter(self, action: sql.Composable) -> None:
        await self.db.execute(sql.SQL("ALTER TABLE {} ").format(sql.Identifier(self.tablename)) + action)

    async def add_column(self, name: str, type_name: str, nullable: bool = True, default: Optional[str] = None) -> None:
        definition = column_definition(name, {'type': type_name, 'nullable': nullable, 'default': default})
        await self._alter(sql.SQL("ADD COLUMN ") + definition)

    async def drop_column(self, name: str) -> None:
        await self._alter(sql.SQL("DROP COLUMN {}").format(sql.Identifier(name)))

    async def unique(self, columns: List[str], name: Optional[str] = None) -> None:
        name = name or f"{self.tablename}_{'_'.join(columns)}_unique"
        await self._alter(sql.SQL("ADD CONSTRAINT {} UNIQUE ({})").format(
            sql.Identifier(name),
            sql.SQL(", ").join(sql.Identifier(c) for c in columns)
        ))

    async def foreign(self, column: str, references: str, name: Optional[str] = None) -> None:
        """Add a foreign key; ``references`` is ``"table.column"``."""
        table, ref_column = references.split('.', 1)
        name = name or f"{self.tablename}_{column}_foreign"
        await self._alter(sql.SQL("ADD CONSTRAINT {} FOREIGN KEY ({}) REFERENCES {} ({})").format(
            sql.Identifier(name),
            sql.Identifier(column),
            sql.Identifier(table),
            sql.Identifier(ref_column)
        ))

    async def index(self, columns: List[str], name: Optional[str] = None) -> None:
        name = name or f"{self.tablename}_{'_'.join(columns)}_index"
        await self.db.execute(sql.SQL("CREATE INDEX {} ON {} ({})").format(
            sql.Identifier(name),
            sql.Identifier(self.tablename),
            sql.SQL(", ").join(sql.Identifier(c) for c in columns)
        ))


class SchemaBuilder:
    """Entry point for DDL, reached through ``Database.schema``."""

    def __init__(self, db):
        self.db = db

    async def create_table(self, tablename: str, columns: Dict[str, Dict[str, Any]], if_not_exists: bool = True) -> None:
        """
        Create a table from a ``{column: definition}`` mapping.

        An empty mapping creates a table with a single ``id SERIAL PRIMARY KEY``.
        """
        if columns:
            column_defs = sql.SQL(", ").join(column_definition(n, d) for n, d in columns.items())
        else:
            column_defs = sql.SQL("id SERIAL PRIMARY KEY")
        prefix = "CREATE TABLE IF NOT EXISTS {} ({})" if if_not_exists else "CREATE TABLE {} ({})"
        statement = sql.SQL(prefix).format(sql.Identifier(tablename), column_defs)
        logger.info("Creating table %s", tablename)
        await self.db.execute(statement)

    async def drop_table(self, tablename: str, if_exists: bool = True, cascade: bool = False) -> None:
        prefix = "DROP TABLE IF EXISTS {}" if if_exists else "DROP TABLE {}"
        statement = sql.SQL(prefix).format(sql.Identifier(tablename))
        if cascade:
            statement += sql.SQL(" CASCADE")
        await self.db.execute(statement)

    def table(self, tablename: str) -> TableAlter:
        return TableAlter(self.db, tablename)
