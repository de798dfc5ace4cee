# naming.py
"""Naming helpers used to derive GraphQL type, field and operation names from tables."""


def capitalize(value: str) -> str:
    """Upper-case the first character, leave the rest untouched."""
    return value[:1].upper() + value[1:]


def to_camel_case(value: str) -> str:
    """
    Convert a snake_case table name to the PascalCase name used for its GraphQL type.

    Empty segments (leading, trailing or doubled underscores) are dropped:
    ``user_roles`` -> ``UserRoles``, ``_audit__log`` -> ``AuditLog``.
    """
    return "".join(capitalize(part) for part in value.split("_") if part)


def type_name(tablename: str) -> str:
    return to_camel_case(tablename)


def page_type_name(tablename: str) -> str:
    return "Page" + to_camel_case(tablename)


def input_type_name(tablename: str) -> str:
    return "Input" + to_camel_case(tablename)


def foreign_field_name(column_name: str, target_table: str) -> str:
    # Column prefix keeps two keys into the same table apart
    return f"{column_name}_{target_table}"
