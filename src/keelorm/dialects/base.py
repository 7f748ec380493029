"""
Dialect strategy interfaces describing SQL rendering behaviours.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class DialectCapabilities:
    """
    Feature flags describing backend capabilities.
    """

    supports_returning: bool = False
    enforces_foreign_keys: bool = True


class Dialect(Protocol):
    """
    Strategy interface consumed across query, schema, and adapter layers.
    """

    @property
    def name(self) -> str: ...

    @property
    def capabilities(self) -> DialectCapabilities: ...

    def quote_identifier(self, identifier: str) -> str: ...

    def format_table(self, table_name: str) -> str: ...

    def limit_clause(self, limit: int | None, offset: int | None) -> str: ...

    def parameter_placeholder(self, position: int | None = None) -> str: ...

    def render_column_definition(self, column: str, column_type: str, *, nullable: bool) -> str: ...

    def render_generated_key(self, column: str) -> str: ...


def render_nullable_column(dialect: Dialect, column: str, column_type: str, *, nullable: bool) -> str:
    null_clause = "" if nullable else " NOT NULL"
    return f"{dialect.quote_identifier(column)} {column_type}{null_clause}"


def qualified_table(dialect: Dialect, table_name: str) -> str:
    if "." in table_name:
        schema, table = table_name.split(".", 1)
        return f"{dialect.quote_identifier(schema)}.{dialect.quote_identifier(table)}"
    return dialect.quote_identifier(table_name)
