# graphql.py
"""GraphQL endpoints: run operations and expose the generated SDL."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from db2graphql.errors import ConfigurationError
from db2graphql.facade import DB2Graphql
from db2graphql.gql.context import GraphQLContext
from db2graphql.models.graphql import GraphQLRequest, GraphQLResponse

router = APIRouter(prefix="/graphql", tags=["graphql"])

# ─────────────────────────────────────────────────────────────────────────────
# Documentation & Error Helpers
# ─────────────────────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    detail: str

RESP_ERRORS = {
    400: {"model": ErrorResponse, "description": "Bad Request"},
    401: {"model": ErrorResponse, "description": "Unauthorized"},
    406: {"model": ErrorResponse, "description": "Not Acceptable"},
    503: {"model": ErrorResponse, "description": "Schema Not Loaded"},
}

# ─────────────────────────────────────────────────────────────────────────────
# Dependencies
# ─────────────────────────────────────────────────────────────────────────────

def get_api(request: Request) -> DB2Graphql:
    """The facade created by the application lifespan."""
    api = getattr(request.app.state, "graphql", None)
    if api is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GraphQL schema is not loaded"
        )
    return api

# ─────────────────────────────────────────────────────────────────────────────
# Endpoints
# ─────────────────────────────────────────────────────────────────────────────

@router.post("", response_model=GraphQLResponse, response_model_exclude_none=True, responses=RESP_ERRORS)
async def execute_graphql(
    payload: GraphQLRequest,
    request: Request,
    api: DB2Graphql = Depends(get_api),
):
    """
    Execute a GraphQL operation.

    GraphQL-level failures (syntax, validation, resolver errors) come back with
    status 200 and an ``errors`` list; only malformed request bodies are 4xx.
    """
    try:
        api.get_executable_schema()
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    result = await api.execute(
        payload.query,
        variables=payload.variables,
        context=GraphQLContext(request=request),
        operation_name=payload.operation_name,
    )
    return GraphQLResponse(**result)


@router.get("/schema", response_class=PlainTextResponse, responses=RESP_ERRORS)
async def get_sdl(api: DB2Graphql = Depends(get_api)):
    """Generated SDL as text/plain."""
    try:
        return api.get_schema(with_database=api.adapter is not None)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
