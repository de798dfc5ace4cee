# db.py
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from pydantic_settings import BaseSettings, SettingsConfigDict

from db2graphql.models.connection import ODBC_CLIENTS, ConnectionConfig
from db2graphql.query import MSSqlQueryBuilder, QueryBuilder, render_sql, to_qmark

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────
class Settings(BaseSettings):
    DATABASE_URL: str  # Required - libpq conninfo or postgresql:// URL
    DB_CLIENT: str = "pg"
    DB_NAMESPACE: str = "public"
    # Comma separated list, e.g. "knex_migrations,knex_migrations_lock"
    DB_EXCLUDE_TABLES: str = ""
    DB_POOL_MAX_SIZE: int = 20

    MAX_RELATION_DEPTH: int = 3
    QUERY_CACHE_SIZE: int = 500
    QUERY_CACHE_TTL: int = 60 * 60 * 5

    # When set, every request must carry a matching X-API-Key header
    API_KEY: Optional[str] = None

    APP_NAME: str = "db2graphql"
    APP_DESCRIPTION: str = "GraphQL API generated from the database catalog"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def exclude_tables(self) -> List[str]:
        return [t.strip() for t in self.DB_EXCLUDE_TABLES.split(",") if t.strip()]


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment once; importing this module never requires them."""
    return Settings()


# ─────────────────────────────────────────────────────────────────────────────
# Database collaborator
# ─────────────────────────────────────────────────────────────────────────────

class Database:
    """
    Thin I/O wrapper handed to the dialect adapter.

    Exposes the capabilities the generator needs: a query builder per table,
    raw parameterized SQL for catalog queries and DDL execution. Every call
    borrows a connection from the pool; the pool commits when the block exits
    cleanly and rolls back otherwise.

    ``namespace`` qualifies every table the query builders touch. The facade
    sets it to the namespace it introspected.
    """

    QUERY_BUILDER = QueryBuilder
    # Driver exceptions the adapter reports as catalog failures
    errors: tuple = (psycopg.Error,)

    def __init__(self, pool, client: str = "pg", namespace: str | None = None):
        self.pool = pool
        self.client = client
        self.namespace = namespace

    def connection(self):
        return self.pool.connection()

    def table(self, tablename: str) -> QueryBuilder:
        return self.QUERY_BUILDER(self, tablename, namespace=self.namespace)

    async def raw(self, query: Any, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Run a parameterized statement and return its rows as dicts."""
        async with self.connection() as conn:
            cur = await conn.execute(query, params)
            if cur.description is None:
                return []
            return await cur.fetchall()

    async def execute(self, statement: Any, params: Optional[Sequence[Any]] = None) -> int:
        """Run a statement that returns no rows (DDL, DML) and return the row count."""
        logger.debug("db execute: %s %s", render_sql(statement), params)
        async with self.connection() as conn:
            cur = await conn.execute(statement, params)
            return cur.rowcount

    async def close(self) -> None:
        await self.pool.close()

    @property
    def schema(self):
        from db2graphql.ddl import SchemaBuilder
        return SchemaBuilder(self)


class MSSqlDatabase(Database):
    """
    SQL Server over an aioodbc pool.

    Statements are composed like the PostgreSQL ones and rendered to qmark
    text here; rows come back as dicts keyed by column name.
    """

    QUERY_BUILDER = MSSqlQueryBuilder

    def __init__(self, pool, client: str = "mssql", namespace: str | None = None, errors: tuple = ()):
        super().__init__(pool, client=client, namespace=namespace)
        self.errors = errors

    def connection(self):
        return self.pool.acquire()

    async def _run(self, statement: Any, params: Optional[Sequence[Any]]):
        text = to_qmark(statement)
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(text, list(params or []))
                rows = []
                if cur.description is not None:
                    columns = [c[0] for c in cur.description]
                    rows = [dict(zip(columns, row)) for row in await cur.fetchall()]
                rowcount = cur.rowcount
            await conn.commit()
        return rows, rowcount

    async def raw(self, query: Any, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        rows, _ = await self._run(query, params)
        return rows

    async def execute(self, statement: Any, params: Optional[Sequence[Any]] = None) -> int:
        logger.debug("db execute: %s %s", to_qmark(statement), params)
        _, rowcount = await self._run(statement, params)
        return rowcount

    async def close(self) -> None:
        self.pool.close()
        await self.pool.wait_closed()


# ─────────────────────────────────────────────────────────────────────────────
# Pool lifecycle
# ─────────────────────────────────────────────────────────────────────────────

# Global database, opened by the application lifespan
database: Database | None = None


def connection_config(settings: Settings) -> ConnectionConfig:
    """The connection descriptor described by the settings."""
    return ConnectionConfig(
        client=settings.DB_CLIENT,
        connection=settings.DATABASE_URL,
        exclude=settings.exclude_tables,
        namespace=settings.DB_NAMESPACE,
    )


async def open_database(config: ConnectionConfig, max_size: int = 20) -> Database:
    """
    Open a pool for ``config`` and return the Database wrapper around it.

    PostgreSQL rows come back as dicts (dict_row) so the generator can hand
    them to GraphQL as-is. SQL Server needs the ``mssql`` extra (aioodbc)
    and takes an ODBC connection string.
    """
    if config.client in ODBC_CLIENTS:
        import aioodbc
        import pyodbc

        pool = await aioodbc.create_pool(dsn=config.conninfo(), minsize=1, maxsize=max_size, autocommit=False)
        return MSSqlDatabase(pool, client=config.client, namespace=config.namespace, errors=(pyodbc.Error,))

    pool = AsyncConnectionPool(
        conninfo=config.conninfo(),
        open=False,
        max_size=max_size,
        kwargs={
            "row_factory": dict_row,
            "autocommit": False,
        }
    )
    await pool.open()
    return Database(pool, client=config.client, namespace=config.namespace)


async def init_db(settings: Settings | None = None) -> Database:
    """Open the application database described by the settings."""
    global database
    settings = settings or get_settings()
    database = await open_database(connection_config(settings), max_size=settings.DB_POOL_MAX_SIZE)
    return database


async def close_db() -> None:
    """Close the application database pool."""
    global database
    if database:
        await database.close()
        database = None
