# gql/__init__.py
"""GraphQL generation: expressions, relation loading, SDL compiler and resolvers."""

from db2graphql.gql.compiler import Compiler
from db2graphql.gql.context import GraphQLContext, IocContext
from db2graphql.gql.executable import execute_query, make_executable_schema
from db2graphql.gql.loader import RelationLoader
from db2graphql.gql.resolver import Resolver

__all__ = [
    "Compiler",
    "GraphQLContext",
    "IocContext",
    "RelationLoader",
    "Resolver",
    "execute_query",
    "make_executable_schema",
]
