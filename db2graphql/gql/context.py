# context.py
"""
Per-request context handed to graphql-core as ``context_value``.

Resolvers read it through ``info.context``. It carries the request (when
called over HTTP), the relation cache and the lazy-load batcher shared by
every resolver of the request, and the arguments of each root field keyed
by its response name.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from db2graphql.cache import RelationLoadCache
from db2graphql.gql.batch import RelationBatcher


@dataclass
class IocContext:
    """Handles given to override and custom resolvers."""
    resolver: Any
    tablename: Optional[str]
    db: Any


@dataclass
class GraphQLContext:
    request: Any = None
    cache: RelationLoadCache = field(default_factory=RelationLoadCache)
    batches: RelationBatcher = field(default_factory=RelationBatcher)
    root_args: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    # Set only on the per-call copy an override or custom resolver receives
    ioc: Optional[IocContext] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def root_args_for(self, path) -> Dict[str, Any]:
        """Arguments of the root field ``path`` (a graphql-core Path) descends from."""
        while path.prev is not None:
            path = path.prev
        return self.root_args.get(path.key, {})


def ensure_context(context: Any) -> GraphQLContext:
    """Accept a GraphQLContext, a plain dict of extras or None."""
    if isinstance(context, GraphQLContext):
        return context
    if context is None:
        return GraphQLContext()
    if isinstance(context, dict):
        return GraphQLContext(request=context.get("request"), extra=dict(context))
    raise TypeError(f"Unsupported GraphQL context: {type(context).__name__}")
