# validation.py
"""Shared validation utilities for identifiers coming from client expressions."""

import re

from db2graphql.errors import ExpressionError

# Column/table identifiers accepted from filter and pagination expressions.
# Quoted through psycopg.sql.Identifier anyway, so any Unicode name is fine;
# whitespace and control characters are rejected.
IDENTIFIER_PATTERN = re.compile(r'^[^\s\x00-\x1f\x7f]+$')

SORT_DIRECTIONS = {"asc", "desc"}


def validate_identifier(name: str) -> str:
    """
    Validate an identifier has no whitespace or control characters.

    Args:
        name: Column or table name taken from a client expression

    Returns:
        The stripped identifier

    Raises:
        ExpressionError: if the identifier is empty or contains invalid characters
    """
    name = (name or "").strip()
    if not name or not IDENTIFIER_PATTERN.match(name):
        raise ExpressionError(f"Invalid identifier: {name!r}")
    return name


def validate_sort_direction(direction: str | None) -> str:
    """Normalise a sort direction to ``asc``/``desc``; missing means ``asc``."""
    if not direction:
        return "asc"
    direction = direction.strip().lower()
    if direction not in SORT_DIRECTIONS:
        raise ExpressionError(f"Invalid sort direction: {direction!r}. Use asc or desc")
    return direction
