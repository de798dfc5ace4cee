# facade.py
"""
Public entry point.

    api = DB2Graphql("shop", db, {"client": "pg", "exclude": ["migrations"]})
    await api.connect()
    api.add_query("hello", "String")
    api.add_resolver("Query", "hello", lambda parent, info: "world")
    result = await api.execute("{ hello getPageFoo { total } }")
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from graphql import GraphQLSchema

from db2graphql.adapters import Adapter, get_adapter_class
from db2graphql.cache import QueryCache
from db2graphql.db import connection_config
from db2graphql.errors import ConfigurationError
from db2graphql.gql.compiler import Compiler
from db2graphql.gql.executable import execute_query, make_executable_schema
from db2graphql.gql.loader import DEFAULT_MAX_DEPTH, RelationLoader
from db2graphql.gql.resolver import Resolver, ResolverTable
from db2graphql.models.connection import ConnectionConfig
from db2graphql.models.schema import SchemaGraph

logger = logging.getLogger(__name__)


class DB2Graphql:
    """
    Generate and serve a GraphQL API for a database namespace.

    Args:
        name: application name, used in logs
        db: Database collaborator; may be omitted to serve manual additions only
        config: ConnectionConfig or a dict with the same keys
        max_depth: eager relation depth
        cache: query cache shared by the adapter

    Raises:
        ConfigurationError: when the name is empty or the client has no adapter
    """

    def __init__(
        self,
        name: str,
        db=None,
        config: Union[ConnectionConfig, Dict[str, Any], None] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        cache: Optional[QueryCache] = None,
    ):
        if not name:
            raise ConfigurationError("Application name is required")
        self.name = name
        self.db = db
        if isinstance(config, dict):
            config = ConnectionConfig.model_validate(config)
        self.config = config or ConnectionConfig(client=getattr(db, "client", None) or "pg")

        self.adapter: Optional[Adapter] = None
        if db is not None:
            self.adapter = get_adapter_class(self.config.client)(db, cache=cache)
        self.compiler = Compiler(self.adapter)
        self.resolver = Resolver(self.adapter, RelationLoader(self.adapter, max_depth=max_depth))
        self._executable: Optional[GraphQLSchema] = None

    @classmethod
    def from_settings(cls, db, settings) -> "DB2Graphql":
        """Build the facade from db2graphql.db.Settings."""
        config = connection_config(settings)
        cache = QueryCache(maxsize=settings.QUERY_CACHE_SIZE, ttl=settings.QUERY_CACHE_TTL)
        return cls(settings.APP_NAME, db, config, max_depth=settings.MAX_RELATION_DEPTH, cache=cache)

    @property
    def graph(self) -> Optional[SchemaGraph]:
        return self.adapter.graph if self.adapter is not None else None

    # ─────────────────────────────────────────────────────────────────────────
    # Database schema
    # ─────────────────────────────────────────────────────────────────────────

    def _require_adapter(self) -> Adapter:
        if self.adapter is None:
            raise ConfigurationError("No database configured")
        return self.adapter

    def _require_connected(self) -> None:
        if self.graph is None:
            raise ConfigurationError(f"{self.name}: call connect() before using the database schema")

    async def connect(self, namespace: Optional[str] = None) -> SchemaGraph:
        """Read the catalog and bind the compiler and resolvers to it."""
        if namespace:
            self.config = self.config.model_copy(update={"namespace": namespace})
        return await self.refresh()

    async def refresh(self) -> SchemaGraph:
        """Re-read the catalog, swap the new graph in and point data queries at its namespace."""
        adapter = self._require_adapter()
        graph = await adapter.get_schema(self.config.namespace, self.config.exclude)
        adapter.db.namespace = graph.namespace
        self.compiler.set_graph(graph)
        self._executable = None
        logger.info("%s: schema loaded with %d tables", self.name, len(graph.tables))
        return graph

    async def get_database_schema(self, refresh: bool = False) -> SchemaGraph:
        if refresh or self.graph is None:
            return await self.refresh()
        return self.graph

    # ─────────────────────────────────────────────────────────────────────────
    # GraphQL schema
    # ─────────────────────────────────────────────────────────────────────────

    def get_schema(self, refresh: bool = False, with_database: bool = True) -> str:
        """SDL text of the generated and manual declarations."""
        if with_database:
            self._require_connected()
        return self.compiler.get_sdl(refresh=refresh, with_database=with_database)

    def get_resolvers(self, with_database: bool = True) -> ResolverTable:
        if with_database:
            self._require_connected()
        return self.resolver.get_resolvers(with_database=with_database)

    def get_executable_schema(self, refresh: bool = False) -> GraphQLSchema:
        if refresh or self._executable is None:
            with_database = self.adapter is not None
            self._executable = make_executable_schema(
                self.get_schema(refresh=refresh, with_database=with_database),
                self.get_resolvers(with_database=with_database),
            )
        return self._executable

    async def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        context: Any = None,
        operation_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await execute_query(self.get_executable_schema(), query, variables, context, operation_name)

    # ─────────────────────────────────────────────────────────────────────────
    # Manual additions
    # ─────────────────────────────────────────────────────────────────────────

    def add(self, type_name: str, field: str, returns: Union[str, List[str]], params: Optional[Dict[str, str]] = None) -> None:
        self.compiler.add(type_name, field, returns, params)
        self._executable = None

    def add_type(self, type_name: str, fields: Optional[Dict[str, Any]] = None) -> None:
        self.compiler.add_type(type_name, fields)
        self._executable = None

    def add_query(self, field: str, returns: Union[str, List[str]], params: Optional[Dict[str, str]] = None) -> None:
        self.compiler.add_query(field, returns, params)
        self._executable = None

    def add_mutation(self, field: str, returns: Union[str, List[str]], params: Optional[Dict[str, str]] = None) -> None:
        self.compiler.add_mutation(field, returns, params)
        self._executable = None

    def add_input(self, input_name: str, field: str, type: str) -> None:
        self.compiler.add_input(input_name, field, type)
        self._executable = None

    def add_resolver(self, namespace: str, name: str, callback: Callable) -> None:
        self.resolver.add(namespace, name, callback)
        self._executable = None

    def override(self, name: str, callback: Callable) -> None:
        """Replace a built-in resolver (getPage, getFirst or putItem)."""
        self.resolver.on(name, callback)
        self._executable = None

    def set_validator(self, validator: Callable, rejected: Optional[Callable] = None) -> None:
        self.resolver.set_validator(validator, rejected)
        self._executable = None

    def __repr__(self) -> str:
        return f"<DB2Graphql name={self.name!r} client={self.config.client!r} adapter={self.adapter!r}>"
