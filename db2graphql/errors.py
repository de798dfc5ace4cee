# errors.py
"""Exception types raised by db2graphql."""


class DB2GraphqlError(Exception):
    """Base class for every error raised by this package."""


# ─────────────────────────────────────────────────────────────────────────────
# Setup
# ─────────────────────────────────────────────────────────────────────────────

class ConfigurationError(DB2GraphqlError):
    """Unsupported dialect, missing database handle or facade used before connect()."""


class SchemaIntrospectionError(DB2GraphqlError):
    """A catalog query failed or produced an inconsistent schema graph."""


class UnknownTableError(DB2GraphqlError):
    def __init__(self, tablename: str):
        super().__init__(f"Table not found in schema: {tablename}")
        self.tablename = tablename


# ─────────────────────────────────────────────────────────────────────────────
# Compile / request time
# ─────────────────────────────────────────────────────────────────────────────

class TypeMappingError(DB2GraphqlError):
    def __init__(self, column_name: str, data_type: str):
        super().__init__(f"Undefined column type: {data_type} of column {column_name}")
        self.column_name = column_name
        self.data_type = data_type


class ExpressionError(DB2GraphqlError):
    """Malformed filter or pagination expression."""


class ResolverError(DB2GraphqlError):
    """Invalid resolver override or registration."""


class AuthorizationError(DB2GraphqlError):
    """Raised when the resolver validator rejects a call and no rejected hook is set."""
