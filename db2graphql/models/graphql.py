# graphql.py
"""
Models for the compiled GraphQL schema and the HTTP transport.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# ═══════════════════════════════════════════════════════════════════════════════
# Compiled schema
# ═══════════════════════════════════════════════════════════════════════════════

class FieldDecl(BaseModel):
    """A field of an emitted type. ``type`` given as a one-item list renders as ``[Type]``."""
    name: str
    type: Union[str, List[str]]
    params: Dict[str, str] = Field(default_factory=dict)

    def render_type(self) -> str:
        if isinstance(self.type, list):
            return "[" + self.type[0] + "]"
        return self.type

    def render_params(self) -> str:
        return render_params(self.params)

    def render(self) -> str:
        return f"{self.name}{self.render_params()}: {self.render_type()}"


def render_params(params: Dict[str, str], join: str = ", ") -> str:
    items = [f"{k}: {v}" for k, v in params.items()]
    return "(" + join.join(items) + ")" if items else ""


class CompiledSchema(BaseModel):
    types: Dict[str, Dict[str, FieldDecl]] = Field(default_factory=dict)
    inputs: Dict[str, Dict[str, str]] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP transport
# ═══════════════════════════════════════════════════════════════════════════════

# ─────────────────────────────────────────────────────────────────────────────
# Request Models
# ─────────────────────────────────────────────────────────────────────────────

class GraphQLRequest(BaseModel):
    """Request body for executing a GraphQL operation."""
    query: str = Field(..., min_length=1, max_length=100000, description="GraphQL document")
    variables: Optional[Dict[str, Any]] = Field(None, description="Variable values")
    operation_name: Optional[str] = Field(None, alias="operationName", description="Operation to run")

    model_config = ConfigDict(
        extra='ignore',
        populate_by_name=True,
        json_schema_extra={
            "examples": [{
                "query": "{ getPageFoo(pagination: \"limit=10\") { total items { bar } } }"
            }]
        }
    )


# ─────────────────────────────────────────────────────────────────────────────
# Response Models
# ─────────────────────────────────────────────────────────────────────────────

class GraphQLResponse(BaseModel):
    """Result of a GraphQL execution."""
    data: Optional[Dict[str, Any]] = Field(None, description="Execution result")
    errors: Optional[List[Dict[str, Any]]] = Field(None, description="Formatted GraphQL errors")
