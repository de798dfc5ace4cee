# schema.py
"""
Schema graph models built by the catalog reader.

A SchemaGraph holds one TableNode per introspected table. Foreign keys are
recorded in both directions: on the owning column (ColumnAttrs.foreign) and
on the referenced table (TableNode.reverse). Both directions are written in
the same pass, so a graph built by the catalog reader is always closed.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from db2graphql.errors import SchemaIntrospectionError, UnknownTableError
from db2graphql.utils.naming import foreign_field_name


class ForeignRef(BaseModel):
    """Target of a foreign key column."""
    schema_name: str = Field(..., alias="schema", description="Namespace of the referenced table")
    tablename: str = Field(..., description="Referenced table")
    columnname: str = Field(..., description="Referenced column")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ColumnAttrs(BaseModel):
    """A column as read from the catalog."""
    name: str
    data_type: str = Field(..., description="Dialect data type string, e.g. 'character varying'")
    is_nullable: bool = Field(default=True)
    foreign: Optional[ForeignRef] = Field(None, description="Set when the column is part of a foreign key")


class ReverseRelation(BaseModel):
    """
    Inbound foreign key seen from the referenced table.

    ``foreign_table.foreign_column`` references ``local_column`` of the table
    that owns this entry.
    """
    foreign_schema: Optional[str] = None
    foreign_table: str
    foreign_column: str
    local_column: str

    model_config = ConfigDict(frozen=True)


class TableNode(BaseModel):
    name: str
    primary_key: Optional[str] = Field(None, description="Primary key column, None when the table has none")
    columns: Dict[str, ColumnAttrs] = Field(default_factory=dict)
    reverse: List[ReverseRelation] = Field(default_factory=list)

    def column_names(self) -> List[str]:
        return list(self.columns.keys())

    def foreign_columns(self) -> List[ColumnAttrs]:
        return [c for c in self.columns.values() if c.foreign is not None]

    def foreign_field_name(self, column_name: str) -> str:
        column = self.columns[column_name]
        if column.foreign is None:
            raise ValueError(f"Column {self.name}.{column_name} is not a foreign key")
        return foreign_field_name(column_name, column.foreign.tablename)

    def reverse_field_names(self) -> List[tuple[ReverseRelation, str]]:
        """
        Pair every reverse relation with the field name it is exposed under.

        The first relation coming from a table is named after that table; any
        further relation from the same table gets the referencing column as
        suffix (``<table>_<column>``).
        """
        named = []
        taken: set[str] = set()
        for relation in self.reverse:
            name = relation.foreign_table
            if name in taken:
                name = f"{relation.foreign_table}_{relation.foreign_column}"
            taken.add(name)
            named.append((relation, name))
        return named


class SchemaGraph(BaseModel):
    """Normalized in-memory view of a database namespace."""
    namespace: str = Field(default="public")
    tables: Dict[str, TableNode] = Field(default_factory=dict)

    def table(self, tablename: str) -> TableNode:
        try:
            return self.tables[tablename]
        except KeyError:
            raise UnknownTableError(tablename) from None

    def has_table(self, tablename: str) -> bool:
        return tablename in self.tables

    def table_names(self) -> List[str]:
        return list(self.tables.keys())

    def primary_key(self, tablename: str) -> Optional[str]:
        return self.table(tablename).primary_key

    def foreign_columns(self, tablename: str) -> List[ColumnAttrs]:
        """Foreign key columns of a table whose target table is part of this graph."""
        return [
            c for c in self.table(tablename).foreign_columns()
            if c.foreign.tablename in self.tables
        ]

    def check_consistency(self) -> None:
        """
        Verify every forward reference inside the graph has its reverse entry.

        Raises:
            SchemaIntrospectionError: naming the first dangling relation found
        """
        for tablename, node in self.tables.items():
            for column in node.foreign_columns():
                target = self.tables.get(column.foreign.tablename)
                if target is None:
                    continue
                expected = (tablename, column.name, column.foreign.columnname)
                found = any(
                    (r.foreign_table, r.foreign_column, r.local_column) == expected
                    for r in target.reverse
                )
                if not found:
                    raise SchemaIntrospectionError(
                        f"Missing reverse relation on {target.name} for "
                        f"{tablename}.{column.name} -> {column.foreign.tablename}.{column.foreign.columnname}"
                    )
            for relation in node.reverse:
                source = self.tables.get(relation.foreign_table)
                column = source.columns.get(relation.foreign_column) if source else None
                if column is None or column.foreign is None or column.foreign.tablename != tablename:
                    raise SchemaIntrospectionError(
                        f"Reverse relation on {tablename} has no matching foreign key: "
                        f"{relation.foreign_table}.{relation.foreign_column}"
                    )
