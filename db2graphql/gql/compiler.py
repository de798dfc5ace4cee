# compiler.py
"""
Schema graph -> GraphQL SDL.

For every table with at least one mappable column the compiler emits:

    type <T>             columns, forward and reverse relation fields
    type Page<T>         { total, tablename, items: [<T>] }
    Query.getPage<T>     paginated list
    Query.getFirst<T>    single row          (tables with a primary key)
    Mutation.putItem<T>  insert or update    (tables with a primary key)
    input Input<T>       writable columns    (tables with a primary key)

plus ``input Condition``. Manual additions are kept apart from generated
declarations and merged in after them.
"""

import logging
from typing import Dict, List, Optional, Union

from db2graphql.errors import TypeMappingError
from db2graphql.models.graphql import CompiledSchema, FieldDecl
from db2graphql.models.schema import SchemaGraph
from db2graphql.utils.naming import input_type_name, page_type_name, type_name

logger = logging.getLogger(__name__)

# Arguments of every root field and every reverse relation field
ROOT_PARAMS = {
    "filter": "String",
    "pagination": "String",
    "where": "Condition",
    "_debug": "Boolean",
    "_cache": "Boolean",
}

CONDITION_INPUT = "Condition"
CONDITION_FIELDS = {"sql": "String!", "val": "[String!]!"}

ROOT_TYPES = ("Query", "Mutation")

FieldSpec = Union[str, List[str], FieldDecl]


class Compiler:
    """
    Compile a schema graph and manual additions into SDL.

    Example:
        compiler = Compiler(adapter)
        compiler.add_query("hello", "String")
        sdl = compiler.get_sdl()
    """

    def __init__(self, adapter, graph: Optional[SchemaGraph] = None):
        self.adapter = adapter
        self.graph = graph if graph is not None else getattr(adapter, "graph", None)
        self.manual = CompiledSchema()
        self._memo: Dict[bool, str] = {}

    def set_graph(self, graph: SchemaGraph) -> None:
        self.graph = graph
        self._memo.clear()

    # ─────────────────────────────────────────────────────────────────────────
    # Manual additions
    # ─────────────────────────────────────────────────────────────────────────

    def add(self, type_name: str, field: str, returns: Union[str, List[str]], params: Optional[Dict[str, str]] = None) -> None:
        """Add (or replace) ``field`` on ``type_name``; the type is created when missing."""
        fields = self.manual.types.setdefault(type_name, {})
        fields[field] = FieldDecl(name=field, type=returns, params=params or {})
        self._memo.clear()

    def add_type(self, type_name: str, fields: Optional[Dict[str, FieldSpec]] = None) -> None:
        declared = self.manual.types.setdefault(type_name, {})
        for name, decl in (fields or {}).items():
            declared[name] = decl if isinstance(decl, FieldDecl) else FieldDecl(name=name, type=decl)
        self._memo.clear()

    def add_query(self, field: str, returns: Union[str, List[str]], params: Optional[Dict[str, str]] = None) -> None:
        self.add("Query", field, returns, params)

    def add_mutation(self, field: str, returns: Union[str, List[str]], params: Optional[Dict[str, str]] = None) -> None:
        self.add("Mutation", field, returns, params)

    def add_input(self, input_name: str, field: str, type: str) -> None:
        self.manual.inputs.setdefault(input_name, {})[field] = type
        self._memo.clear()

    # ─────────────────────────────────────────────────────────────────────────
    # Generation
    # ─────────────────────────────────────────────────────────────────────────

    def build_generated(self) -> CompiledSchema:
        """Declarations derived from the schema graph alone."""
        compiled = CompiledSchema()
        graph = self.graph
        if graph is None:
            return compiled

        column_fields = {name: self._column_fields(node) for name, node in graph.tables.items()}
        emitted = {name for name, fields in column_fields.items() if fields}
        query: Dict[str, FieldDecl] = {}
        mutation: Dict[str, FieldDecl] = {}

        for tablename, node in graph.tables.items():
            if tablename not in emitted:
                logger.debug("Skipping table %s: no mappable columns", tablename)
                continue
            gql_type = type_name(tablename)
            page_name = page_type_name(tablename)
            fields = dict(column_fields[tablename])

            for column in graph.foreign_columns(tablename):
                if column.foreign.tablename not in emitted:
                    continue
                name = node.foreign_field_name(column.name)
                fields[name] = FieldDecl(name=name, type=type_name(column.foreign.tablename))

            for relation, name in node.reverse_field_names():
                if relation.foreign_table not in emitted:
                    continue
                # Replaces a column field of the same name
                fields[name] = FieldDecl(name=name, type=page_type_name(relation.foreign_table), params=dict(ROOT_PARAMS))

            compiled.types[gql_type] = fields
            compiled.types[page_name] = {
                "total": FieldDecl(name="total", type="Int"),
                "tablename": FieldDecl(name="tablename", type="String"),
                "items": FieldDecl(name="items", type=[gql_type]),
            }

            get_page = "getPage" + gql_type
            query[get_page] = FieldDecl(name=get_page, type=page_name, params=dict(ROOT_PARAMS))
            if node.primary_key is None:
                continue
            get_first = "getFirst" + gql_type
            query[get_first] = FieldDecl(name=get_first, type=gql_type, params=dict(ROOT_PARAMS))

            input_name = input_type_name(tablename)
            put_item = "putItem" + gql_type
            mutation[put_item] = FieldDecl(
                name=put_item,
                type=gql_type,
                params={"_debug": "Boolean", "input": input_name + "!"},
            )
            compiled.inputs[input_name] = {name: decl.render_type() for name, decl in column_fields[tablename].items()}

        if query:
            compiled.types["Query"] = query
        if mutation:
            compiled.types["Mutation"] = mutation
        return compiled

    def _column_fields(self, node) -> Dict[str, FieldDecl]:
        fields = {}
        for name, attrs in node.columns.items():
            try:
                scalar = self.adapter.map_column_type(name, attrs)
            except TypeMappingError as e:
                logger.debug("Dropping column %s.%s: %s", node.name, name, e)
                continue
            fields[name] = FieldDecl(name=name, type=scalar)
        return fields

    def build_schema(self, with_database: bool = True) -> CompiledSchema:
        """
        Merge generated and manual declarations.

        Order: generated object types, manual object types, Query, Mutation,
        generated inputs, manual inputs, Condition.
        """
        generated = self.build_generated() if with_database else CompiledSchema()
        merged = CompiledSchema()

        for type_name, fields in generated.types.items():
            if type_name not in ROOT_TYPES:
                merged.types[type_name] = dict(fields)
        for type_name, fields in self.manual.types.items():
            if type_name not in ROOT_TYPES:
                merged.types.setdefault(type_name, {}).update(fields)
        for root in ROOT_TYPES:
            fields = dict(generated.types.get(root, {}))
            fields.update(self.manual.types.get(root, {}))
            if fields:
                merged.types[root] = fields

        for input_name, fields in generated.inputs.items():
            merged.inputs[input_name] = dict(fields)
        for input_name, fields in self.manual.inputs.items():
            merged.inputs.setdefault(input_name, {}).update(fields)
        if (merged.types or merged.inputs) and CONDITION_INPUT not in merged.inputs:
            merged.inputs[CONDITION_INPUT] = dict(CONDITION_FIELDS)
        return merged

    # ─────────────────────────────────────────────────────────────────────────
    # SDL
    # ─────────────────────────────────────────────────────────────────────────

    def get_sdl(self, refresh: bool = False, with_database: bool = True) -> str:
        """Return the SDL text, memoised until refresh or the next addition."""
        if refresh or with_database not in self._memo:
            self._memo[with_database] = render_sdl(self.build_schema(with_database=with_database))
        return self._memo[with_database]


def render_sdl(compiled: CompiledSchema) -> str:
    blocks = []
    for type_name, fields in compiled.types.items():
        if not fields:
            continue
        body = "\n".join("  " + decl.render() for decl in fields.values())
        blocks.append(f"type {type_name} {{\n{body}\n}}")
    for input_name, fields in compiled.inputs.items():
        if not fields:
            continue
        body = "\n".join(f"  {name}: {type}" for name, type in fields.items())
        blocks.append(f"input {input_name} {{\n{body}\n}}")
    return "\n\n".join(blocks) + ("\n" if blocks else "")
