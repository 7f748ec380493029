"""
SQLite dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import DialectCapabilities, render_nullable_column


class SQLiteDialect:
    """
    SQLite dialect using qmark param style. Foreign keys are enforced once
    the adapter switches ``PRAGMA foreign_keys`` on.
    """

    name: Final[str] = "sqlite"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_returning=False,
        enforces_foreign_keys=True,
    )

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace('"', '""')
        return f'"{escaped}"'

    def format_table(self, table_name: str) -> str:
        return self.quote_identifier(table_name)

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        parts: list[str] = []
        if limit is not None:
            parts.append(f"LIMIT {limit}")
        if offset is not None:
            if limit is None:
                parts.append("LIMIT -1")
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "?"

    def render_column_definition(self, column: str, column_type: str, *, nullable: bool) -> str:
        return render_nullable_column(self, column, column_type, nullable=nullable)

    def render_generated_key(self, column: str) -> str:
        # INTEGER PRIMARY KEY aliases the rowid
        return f"{self.quote_identifier(column)} INTEGER PRIMARY KEY AUTOINCREMENT"
