# expressions.py
"""
Filter and pagination mini-languages.

Both languages describe a single table per string; the table is the one
owning the field being resolved and is supplied by the caller.

Filter:      ``column OP value (';' column OP value)*``
             OP is one of ``<=> >= <= = > < ~ #``
Pagination:  ``name=value (';' name=value)*``
             name is one of ``limit offset orderby`` (others are ignored later)

Parsed forms are keyed by table name so they can be handed to the adapter
together with the table they apply to:

    parse_filter_expression("id>=1;name~jo", "users")
    -> {"users": [[">=", "id", "1"], ["~", "name", "jo"]]}
"""

import re
from typing import Any, Dict, List

from db2graphql.errors import ExpressionError

# Longest first so "<=>" is not read as "<="
FILTER_OPERATORS = ("<=>", ">=", "<=", "=", ">", "<", "~", "#")
FILTER_OPERATOR = re.compile("|".join(re.escape(op) for op in FILTER_OPERATORS))

FilterExpression = Dict[str, List[List[str]]]
PaginationExpression = Dict[str, List[List[str]]]


def parse_filter_expression(expression: str, tablename: str) -> FilterExpression:
    """
    Parse a filter string into ``{tablename: [[op, column, value], ...]}``.

    Raises:
        ExpressionError: when a clause has no operator or no column
    """
    tablename = tablename.strip()
    conditions = []
    for clause in _clauses(expression):
        match = FILTER_OPERATOR.search(clause)
        if not match:
            raise ExpressionError(f"Filter operation not supported in: {clause}")
        op = match.group(0)
        column = clause[:match.start()].strip()
        value = clause[match.end():].strip()
        if not column:
            raise ExpressionError(f"Filter column missing in: {clause}")
        conditions.append([op, column, value])
    return {tablename: conditions}


def parse_pagination_expression(expression: str, tablename: str) -> PaginationExpression:
    """
    Parse a pagination string into ``{tablename: [[name, value], ...]}``.

    Names are lower-cased. Unknown names are kept and ignored when the query
    is built.
    """
    tablename = tablename.strip()
    params = []
    for clause in _clauses(str(expression)):
        if "=" not in clause:
            raise ExpressionError(f"Pagination parameter must be name=value in: {clause}")
        name, value = clause.split("=", 1)
        params.append([name.strip().lower(), value.strip()])
    return {tablename: params}


def parse_args(args: Dict[str, Any] | None, tablename: str) -> Dict[str, Any]:
    """Copy resolver args, replacing filter/pagination strings with their parsed forms."""
    parsed = dict(args or {})
    if parsed.get("filter"):
        parsed["filter"] = parse_filter_expression(parsed["filter"], tablename)
    else:
        parsed.pop("filter", None)
    if parsed.get("pagination"):
        parsed["pagination"] = parse_pagination_expression(parsed["pagination"], tablename)
    else:
        parsed.pop("pagination", None)
    return parsed


def _clauses(expression: str) -> List[str]:
    # A trailing ';' leaves an empty clause behind; skip blanks
    return [c for c in expression.split(";") if c.strip()]
