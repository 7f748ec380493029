"""
Naming conventions used when mapping models to tables and columns.
"""

import re


_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def camel_to_snake(name: str) -> str:
    """
    Convert ``CamelCase`` names to ``snake_case`` for table naming.
    """
    return _BOUNDARY_RE.sub("_", name).lower()


def foreign_key_column(attribute: str) -> str:
    """
    Default column for an association attribute: ``team`` -> ``team_id``.
    """
    if attribute.endswith("_id"):
        return attribute
    return f"{attribute}_id"
