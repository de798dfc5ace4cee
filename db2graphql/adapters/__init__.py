# adapters/__init__.py
"""Dialect adapters, selected by the connection descriptor's ``client``."""

from typing import Dict, Type

from db2graphql.adapters.base import Adapter
from db2graphql.adapters.mssql import MSSql
from db2graphql.adapters.postgres import PostgreSQL
from db2graphql.errors import ConfigurationError

DRIVERS: Dict[str, Type[Adapter]] = {
    "pg": PostgreSQL,
    "postgres": PostgreSQL,
    "postgresql": PostgreSQL,
    "mssql": MSSql,
    "sqlserver": MSSql,
}


def get_adapter_class(client: str) -> Type[Adapter]:
    try:
        return DRIVERS[client.strip().lower()]
    except (KeyError, AttributeError):
        raise ConfigurationError(
            f"Database client not supported: {client}. Available: {', '.join(sorted(DRIVERS))}"
        ) from None


__all__ = ["Adapter", "DRIVERS", "MSSql", "PostgreSQL", "get_adapter_class"]
