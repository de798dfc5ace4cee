# utils/__init__.py
"""Shared utilities for naming and validation."""

from db2graphql.utils.naming import capitalize, to_camel_case
from db2graphql.utils.validation import validate_identifier, validate_sort_direction

__all__ = ["capitalize", "to_camel_case", "validate_identifier", "validate_sort_direction"]
