# executable.py
"""
Bind the generated SDL and resolver table into a graphql-core schema and run
operations against it.
"""

import logging
from typing import Any, Dict, Optional

from graphql import GraphQLObjectType, GraphQLSchema, build_schema, graphql

from db2graphql.errors import ConfigurationError
from db2graphql.gql.context import GraphQLContext, ensure_context
from db2graphql.gql.resolver import ResolverTable

logger = logging.getLogger(__name__)


def make_executable_schema(sdl: str, resolvers: ResolverTable) -> GraphQLSchema:
    """
    Build a schema from ``sdl`` and assign ``resolvers[type][field]`` to each field.

    Resolvers for types or fields missing from the SDL are skipped.

    Raises:
        ConfigurationError: when the SDL has no Query type
    """
    if not sdl.strip():
        raise ConfigurationError("Cannot build an executable schema from an empty SDL")
    schema = build_schema(sdl)
    if schema.query_type is None:
        raise ConfigurationError("Schema has no Query type")

    for type_name, fields in resolvers.items():
        gql_type = schema.type_map.get(type_name)
        if not isinstance(gql_type, GraphQLObjectType):
            if fields:
                logger.debug("No object type %s in schema, skipping %d resolvers", type_name, len(fields))
            continue
        for field_name, resolve in fields.items():
            field = gql_type.fields.get(field_name)
            if field is None:
                logger.debug("No field %s.%s in schema, skipping resolver", type_name, field_name)
                continue
            field.resolve = resolve
    return schema


async def execute_query(
    schema: GraphQLSchema,
    query: str,
    variables: Optional[Dict[str, Any]] = None,
    context: Any = None,
    operation_name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Execute an operation and return ``{"data": ..., "errors": [...]}``.

    Resolver exceptions come back as formatted errors; ``errors`` is omitted
    when there are none.
    """
    context_value: GraphQLContext = ensure_context(context)
    result = await graphql(
        schema,
        query,
        context_value=context_value,
        variable_values=variables,
        operation_name=operation_name,
    )
    response: Dict[str, Any] = {"data": result.data}
    if result.errors:
        for error in result.errors:
            logger.warning("GraphQL error: %s", error.message, exc_info=error.original_error)
        response["errors"] = [error.formatted for error in result.errors]
    return response
