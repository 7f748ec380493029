"""
MySQL dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import DialectCapabilities, qualified_table, render_nullable_column


class MySQLDialect:
    """
    MySQL dialect using percent-style placeholders. Foreign keys are only
    enforced by InnoDB tables, which the schema builder requests.
    """

    name: Final[str] = "mysql"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_returning=False,
        enforces_foreign_keys=True,
    )

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace("`", "``")
        return f"`{escaped}`"

    def format_table(self, table_name: str) -> str:
        return qualified_table(self, table_name)

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        parts: list[str] = []
        if limit is not None:
            parts.append(f"LIMIT {limit}")
        if offset is not None:
            if limit is None:
                parts.append("LIMIT 18446744073709551615")
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "%s"

    def render_column_definition(self, column: str, column_type: str, *, nullable: bool) -> str:
        return render_nullable_column(self, column, column_type, nullable=nullable)

    def render_generated_key(self, column: str) -> str:
        return f"{self.quote_identifier(column)} INTEGER NOT NULL AUTO_INCREMENT PRIMARY KEY"
