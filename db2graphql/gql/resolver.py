# resolver.py
"""
Resolver table for the generated schema.

Root fields (per table):
    Query.getPage<T>, Query.getFirst<T>, Mutation.putItem<T>
Relation fields (per table type):
    forward  <column>_<table>   referenced row
    reverse  <table>            Page of referencing rows, accepts the root arguments

Resolvers follow the graphql-core convention ``resolve(parent, info, **args)``
and expect a GraphQLContext as ``info.context``. Built-ins can be replaced
with on(); every resolver passes through the validator first.
"""

import inspect
import json
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from db2graphql.errors import AuthorizationError, ResolverError
from db2graphql.gql.context import GraphQLContext, IocContext
from db2graphql.gql.expressions import parse_args
from db2graphql.gql.loader import LOAD_FLAGS, RelationLoader, column_value, page_of
from db2graphql.utils.naming import type_name

logger = logging.getLogger(__name__)

OVERRIDES = ("getPage", "getFirst", "putItem")

# Arguments that change which related rows are returned
RELATION_ARGS = ("filter", "pagination", "where")

ResolverTable = Dict[str, Dict[str, Callable]]


async def default_validator(name, parent, args, context) -> bool:
    return True


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


def _context(info) -> GraphQLContext:
    context = info.context
    if not isinstance(context, GraphQLContext):
        raise ResolverError("Resolvers expect a GraphQLContext as context_value")
    return context


class Resolver:

    def __init__(self, adapter, loader: Optional[RelationLoader] = None):
        self.adapter = adapter
        self.loader = loader or RelationLoader(adapter)
        self.overrides: Dict[str, Callable] = {}
        self.custom: ResolverTable = {}
        self.validator: Callable = default_validator
        self.rejected: Optional[Callable] = None

    @property
    def db(self):
        return self.adapter.db if self.adapter is not None else None

    # ─────────────────────────────────────────────────────────────────────────
    # Extension points
    # ─────────────────────────────────────────────────────────────────────────

    def on(self, name: str, callback: Callable) -> None:
        """
        Replace a built-in (``getPage``, ``getFirst`` or ``putItem``) for every table.

        The callback is called as ``callback(parent, info, **args)`` with
        ``info.context.ioc`` holding the resolver, the table name and the db.

        Raises:
            ResolverError: unknown built-in name or non-callable callback
        """
        if name not in OVERRIDES:
            raise ResolverError(f"Override not found: {name}")
        if not callable(callback):
            raise ResolverError(f"Override must be a function. Found {type(callback).__name__}")
        self.overrides[name] = callback

    def add(self, namespace: str, name: str, callback: Callable) -> None:
        """Register a custom resolver; ``info.context.ioc`` carries the resolver and db."""
        if not callable(callback):
            raise ResolverError(f"Resolver must be a function. Found {type(callback).__name__}")
        self.custom.setdefault(namespace, {})[name] = callback

    def set_validator(self, validator: Callable, rejected: Optional[Callable] = None) -> None:
        """
        Gate every resolver call.

        ``validator(name, parent, args, context)`` returns (or resolves to) a
        truthy value to let the call through; ``name`` is ``"<Type>.<field>"``.
        When it fails, ``rejected`` with the same arguments provides the field
        value, or AuthorizationError is raised when no rejected hook is set.
        """
        if not callable(validator):
            raise ResolverError("Validator must be a function")
        if rejected is not None and not callable(rejected):
            raise ResolverError("Rejected hook must be a function")
        self.validator = validator
        self.rejected = rejected

    # ─────────────────────────────────────────────────────────────────────────
    # Resolver table
    # ─────────────────────────────────────────────────────────────────────────

    def get_resolvers(self, with_database: bool = True) -> ResolverTable:
        resolvers: ResolverTable = {"Query": {}, "Mutation": {}}
        graph = self.adapter.graph if (with_database and self.adapter is not None) else None

        if graph is not None:
            for tablename, node in graph.tables.items():
                gql_type = type_name(tablename)
                query, mutation = resolvers["Query"], resolvers["Mutation"]
                query["getPage" + gql_type] = self._builtin("Query", "getPage" + gql_type, "getPage", tablename, self.get_page)
                if node.primary_key is not None:
                    query["getFirst" + gql_type] = self._builtin("Query", "getFirst" + gql_type, "getFirst", tablename, self.get_first)
                    mutation["putItem" + gql_type] = self._builtin("Mutation", "putItem" + gql_type, "putItem", tablename, self.put_item)

                fields = resolvers.setdefault(gql_type, {})
                for column in graph.foreign_columns(tablename):
                    field = node.foreign_field_name(column.name)
                    fields[field] = self._guard(f"{gql_type}.{field}", self._foreign_resolver(tablename, field))
                for relation, field in node.reverse_field_names():
                    fields[field] = self._guard(f"{gql_type}.{field}", self._reverse_resolver(tablename, relation, field))

        for namespace, fields in self.custom.items():
            target = resolvers.setdefault(namespace, {})
            for name, callback in fields.items():
                target[name] = self._guard(f"{namespace}.{name}", self._custom(callback))
        return resolvers

    def _guard(self, name: str, resolve: Callable) -> Callable:
        async def guarded(parent, info, **args):
            context = _context(info)
            if not await _maybe_await(self.validator(name, parent, args, context)):
                if self.rejected is None:
                    raise AuthorizationError(f"Not authorized: {name}")
                return await _maybe_await(self.rejected(name, parent, args, context))
            return await resolve(parent, info, **args)
        return guarded

    def _builtin(self, namespace: str, field: str, builtin: str, tablename: str, handler: Callable) -> Callable:
        async def resolve(parent, info, **args):
            context = _context(info)
            context.root_args[info.path.key] = dict(args)
            override = self.overrides.get(builtin)
            if override is not None:
                return await _maybe_await(override(parent, self._scoped(info, tablename), **args))
            return await handler(tablename, args, context)
        return self._guard(f"{namespace}.{field}", resolve)

    def _custom(self, callback: Callable) -> Callable:
        async def resolve(parent, info, **args):
            return await _maybe_await(callback(parent, self._scoped(info, None), **args))
        return resolve

    def _scoped(self, info, tablename: Optional[str]):
        """A copy of ``info`` whose context carries this call's IocContext."""
        context = replace(_context(info), ioc=IocContext(resolver=self, tablename=tablename, db=self.db))
        return info._replace(context=context)

    # ─────────────────────────────────────────────────────────────────────────
    # Built-ins
    # ─────────────────────────────────────────────────────────────────────────

    async def get_page(self, tablename: str, args: Dict[str, Any], context: GraphQLContext) -> Dict[str, Any]:
        parsed = parse_args(args, tablename)
        total = await self.adapter.page_total(tablename, parsed)
        items = await self.adapter.page(tablename, parsed)
        await self.loader.load(items, tablename, cache=context.cache, args=parsed)
        return page_of(tablename, items, total)

    async def get_first(self, tablename: str, args: Dict[str, Any], context: GraphQLContext) -> Optional[Dict[str, Any]]:
        parsed = parse_args(args, tablename)
        item = await self.adapter.first_of(tablename, parsed)
        if item is None:
            return None
        await self.loader.load([item], tablename, cache=context.cache, args=parsed)
        return item

    async def put_item(self, tablename: str, args: Dict[str, Any], context: GraphQLContext) -> Optional[Dict[str, Any]]:
        """Store ``args["input"]`` and return the row as stored."""
        debug = bool(args.get("_debug"))
        data = dict(args.get("input") or {})
        key = await self.adapter.put_item(tablename, data, debug=debug)
        item = await self.adapter.find_by_key(tablename, key, debug=debug)
        if item is not None:
            # Fresh cache: rows loaded before the write may be stale
            await self.loader.load([item], tablename, args={"_debug": debug})
        return item

    # ─────────────────────────────────────────────────────────────────────────
    # Relation fields
    # ─────────────────────────────────────────────────────────────────────────
    #
    # Fields attached by the eager loader are returned as they are. The rest
    # queue their parent on the request batcher so that every sibling waiting
    # for the same relation is served by one IN query.

    def _foreign_resolver(self, tablename: str, field: str) -> Callable:
        async def resolve(parent, info, **args):
            if field not in parent:
                context = _context(info)
                flags = _flags(context.root_args_for(info.path), args)

                async def run(parents):
                    await self.loader.load_foreign(parents, tablename, cache=context.cache, args=flags)
                    return [None] * len(parents)

                await context.batches.load(("foreign", tablename, _freeze(flags)), parent, run)
            return parent.get(field)
        return resolve

    def _reverse_resolver(self, tablename: str, relation, field: str) -> Callable:
        async def resolve(parent, info, **args):
            context = _context(info)
            flags = _flags(context.root_args_for(info.path), args)
            narrowed = any(args.get(name) for name in RELATION_ARGS)
            if not narrowed:
                attached = parent.get(field)
                if _is_page(attached):
                    return attached

                async def run(parents):
                    await self.loader.load_reverse(parents, tablename, cache=context.cache, args=flags)
                    return [None] * len(parents)

                await context.batches.load(("reverse", tablename, _freeze(flags)), parent, run)
                return parent.get(field)

            parsed = parse_args(args, relation.foreign_table)
            if args.get("pagination"):
                # Limits and offsets apply per parent, so these cannot share a query
                return await self._narrowed_page(relation, [parent], parsed, context)
            key = ("narrowed", tablename, field, _freeze(parsed))
            return await context.batches.load(
                key, parent, lambda parents: self._narrowed_pages(relation, parents, parsed, context)
            )
        return resolve

    async def _narrowed_page(self, relation, parents, parsed, context) -> Dict[str, Any]:
        key = column_value(parents[0], relation.local_column)
        if key is None:
            return page_of(relation.foreign_table, [])
        table, column = relation.foreign_table, relation.foreign_column
        total = await self.adapter.count_items_in(table, column, [key], parsed)
        items = await self.adapter.load_items_in(table, column, [key], parsed)
        await self.loader.load(items, table, depth=2, cache=context.cache, args=parsed)
        return page_of(table, items, total)

    async def _narrowed_pages(self, relation, parents, parsed, context) -> List[Dict[str, Any]]:
        """One filtered query for all ``parents``; each gets the page of its own rows."""
        table, column = relation.foreign_table, relation.foreign_column
        keys = [column_value(parent, relation.local_column) for parent in parents]
        wanted = list({str(k): k for k in keys if k is not None}.values())
        rows = await self.adapter.load_items_in(table, column, wanted, parsed) if wanted else []
        await self.loader.load(rows, table, depth=2, cache=context.cache, args=parsed)

        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for row in rows:
            grouped.setdefault(str(column_value(row, column)), []).append(row)
        return [
            page_of(table, grouped.get(str(key), []) if key is not None else [])
            for key in keys
        ]


def _is_page(value: Any) -> bool:
    return isinstance(value, dict) and "items" in value and "tablename" in value


def _flags(root_args: Dict[str, Any], args: Dict[str, Any]) -> Dict[str, Any]:
    """``_cache``/``_debug`` of the root field, overridden by the field's own."""
    merged = {k: root_args[k] for k in LOAD_FLAGS if k in root_args}
    merged.update({k: args[k] for k in LOAD_FLAGS if k in args})
    return merged


def _freeze(args: Dict[str, Any]) -> str:
    return json.dumps(args, sort_keys=True, default=str)
