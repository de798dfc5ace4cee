# db2graphql
"""Generate a GraphQL API from a relational database catalog."""

from db2graphql.facade import DB2Graphql

__version__ = "0.1.0"

__all__ = ["DB2Graphql", "__version__"]
