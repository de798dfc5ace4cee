# models/__init__.py
from db2graphql.models.connection import ConnectionConfig
from db2graphql.models.graphql import CompiledSchema, FieldDecl, GraphQLRequest, GraphQLResponse
from db2graphql.models.schema import ColumnAttrs, ForeignRef, ReverseRelation, SchemaGraph, TableNode

__all__ = [
    "ColumnAttrs",
    "CompiledSchema",
    "ConnectionConfig",
    "FieldDecl",
    "ForeignRef",
    "GraphQLRequest",
    "GraphQLResponse",
    "ReverseRelation",
    "SchemaGraph",
    "TableNode",
]
