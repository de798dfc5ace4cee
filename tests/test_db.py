"""Tests for the Database collaborator, connection descriptors and pool lifecycle."""

import pytest

import db2graphql.db as db_module
from db2graphql.db import Database, MSSqlDatabase, Settings, close_db, connection_config, init_db, open_database
from db2graphql.models.connection import ConnectionConfig
from db2graphql.query import MSSqlQueryBuilder, QueryBuilder, render_sql


# =============================================================================
# Stand-ins for driver pools
# =============================================================================

class RecordingPool:
    """Accepts the AsyncConnectionPool constructor and records how it was opened."""
    created = []

    def __init__(self, conninfo, open=True, max_size=None, kwargs=None):
        self.conninfo = conninfo
        self.max_size = max_size
        self.kwargs = kwargs or {}
        self.opened = False
        self.closed = False
        RecordingPool.created.append(self)

    async def open(self):
        self.opened = True

    async def close(self):
        self.closed = True


class OdbcCursor:
    def __init__(self, conn):
        self.conn = conn
        self.description = None
        self.rowcount = -1
        self._rows = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, text, params):
        self.conn.executed.append((text, params))
        if text.startswith("SELECT"):
            self.description = [("id", None), ("name", None)]
            self._rows = [(1, "Ada"), (2, "Grace")]
        else:
            self.rowcount = 3

    async def fetchall(self):
        return list(self._rows)


class OdbcConnection:
    def __init__(self):
        self.executed = []
        self.commits = 0

    def cursor(self):
        return OdbcCursor(self)

    async def commit(self):
        self.commits += 1


class OdbcAcquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *exc):
        return False


class OdbcPool:
    def __init__(self):
        self.conn = OdbcConnection()
        self.closed = False
        self.waited = False

    def acquire(self):
        return OdbcAcquire(self.conn)

    def close(self):
        self.closed = True

    async def wait_closed(self):
        self.waited = True


# =============================================================================
# Connection descriptor
# =============================================================================

class TestConnectionConfig:

    def test_string_connection_is_used_verbatim(self):
        config = ConnectionConfig(client="pg", connection="postgresql://u@localhost/shop")
        assert config.conninfo() == "postgresql://u@localhost/shop"

    def test_keyword_connection_renders_libpq_conninfo(self):
        config = ConnectionConfig(client="pg", connection={"host": "localhost", "dbname": "shop"})
        assert config.conninfo() == "host=localhost dbname=shop"

    def test_keyword_connection_renders_odbc_string(self):
        config = ConnectionConfig(client="MSSQL", connection={"DRIVER": "{ODBC Driver 18 for SQL Server}", "SERVER": "db"})
        assert config.conninfo() == "DRIVER={ODBC Driver 18 for SQL Server};SERVER=db"

    def test_settings_become_a_descriptor(self):
        settings = Settings(DATABASE_URL="dbname=shop", DB_NAMESPACE="shop", DB_EXCLUDE_TABLES="a, b")
        config = connection_config(settings)
        assert (config.client, config.connection, config.namespace, config.exclude) == ("pg", "dbname=shop", "shop", ["a", "b"])


# =============================================================================
# Database wrapper
# =============================================================================

class TestDatabase:

    def test_namespace_qualifies_tables(self):
        db = Database(None, client="pg")
        assert render_sql(db.table("foo").to_sql()[0]) == 'SELECT * FROM "foo"'

        db.namespace = "shop"
        query = db.table("foo")
        assert isinstance(query, QueryBuilder)
        assert render_sql(query.to_sql()[0]) == 'SELECT * FROM "shop"."foo"'

    def test_sql_server_tables_use_the_tsql_builder(self):
        db = MSSqlDatabase(OdbcPool(), namespace="dbo")
        assert isinstance(db.table("foo"), MSSqlQueryBuilder)
        assert render_sql(db.table("foo").limit(1).to_sql()[0]).startswith('SELECT * FROM "dbo"."foo" ORDER BY (SELECT NULL)')

    @pytest.mark.asyncio
    async def test_sql_server_rows_come_back_as_dicts(self):
        pool = OdbcPool()
        db = MSSqlDatabase(pool, namespace="dbo")

        rows = await db.table("users").where("id", ">", 0).limit(2).all()

        assert rows == [{"id": 1, "name": "Ada"}, {"id": 2, "name": "Grace"}]
        text, params = pool.conn.executed[0]
        assert text == 'SELECT * FROM "dbo"."users" WHERE "id" > ? ORDER BY (SELECT NULL) OFFSET ? ROWS FETCH NEXT ? ROWS ONLY'
        assert params == [0, 0, 2]
        assert pool.conn.commits == 1

    @pytest.mark.asyncio
    async def test_sql_server_execute_returns_rowcount(self):
        pool = OdbcPool()
        db = MSSqlDatabase(pool)
        assert await db.table("users").where("id", "=", 1).update({"name": "x"}) == 3
        assert pool.conn.executed == [('UPDATE "users" SET "name" = ? WHERE "id" = ?', ["x", 1])]

    @pytest.mark.asyncio
    async def test_sql_server_close_waits_for_pool(self):
        pool = OdbcPool()
        await MSSqlDatabase(pool).close()
        assert pool.closed and pool.waited


# =============================================================================
# Pool lifecycle
# =============================================================================

class TestLifecycle:

    @pytest.fixture(autouse=True)
    def recording_pool(self, monkeypatch):
        RecordingPool.created = []
        monkeypatch.setattr(db_module, "AsyncConnectionPool", RecordingPool)
        monkeypatch.setattr(db_module, "database", None)

    @pytest.mark.asyncio
    async def test_open_database_carries_namespace(self):
        config = ConnectionConfig(client="pg", connection={"dbname": "shop"}, namespace="shop")
        db = await open_database(config, max_size=5)

        pool = RecordingPool.created[0]
        assert (pool.conninfo, pool.max_size, pool.opened) == ("dbname=shop", 5, True)
        assert pool.kwargs["autocommit"] is False
        assert db.namespace == "shop"
        assert render_sql(db.table("foo").to_sql()[0]) == 'SELECT * FROM "shop"."foo"'

    @pytest.mark.asyncio
    async def test_init_and_close_db(self):
        settings = Settings(DATABASE_URL="dbname=shop", DB_NAMESPACE="shop", DB_POOL_MAX_SIZE=7)
        db = await init_db(settings)

        assert db_module.database is db
        assert db.namespace == "shop"
        assert RecordingPool.created[0].max_size == 7

        await close_db()
        assert db_module.database is None
        assert RecordingPool.created[0].closed

    @pytest.mark.asyncio
    async def test_sql_server_pool_is_opened_with_aioodbc(self, monkeypatch):
        aioodbc = pytest.importorskip("aioodbc")
        calls = []

        async def create_pool(**kwargs):
            calls.append(kwargs)
            return OdbcPool()

        monkeypatch.setattr(aioodbc, "create_pool", create_pool)
        config = ConnectionConfig(client="sqlserver", connection={"DSN": "shop"}, namespace="dbo")
        db = await open_database(config, max_size=4)

        assert isinstance(db, MSSqlDatabase)
        assert db.namespace == "dbo"
        assert calls == [{"dsn": "DSN=shop", "minsize": 1, "maxsize": 4, "autocommit": False}]
        assert RecordingPool.created == []
