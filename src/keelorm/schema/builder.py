"""
Schema builder converting model metadata into DDL statements.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List

from ..core.model import Model
from ..dialects.base import Dialect
from ..utils import get_logger

if TYPE_CHECKING:
    from ..persistence.store import BackingStore


class SchemaBuilder:
    """
    Produces dialect-specific SQL for creating and dropping model tables.

    Association fields declared with ``db_constraint=True`` become
    ``FOREIGN KEY`` constraints, so the store itself rejects dangling keys.
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect
        self.logger = get_logger("schema.builder")

    def create_table_sql(self, model: type[Model]) -> str:
        pieces = self._render_columns(model)
        meta = model._meta
        if meta.generated_key_field is None:
            key_columns = ", ".join(
                self.dialect.quote_identifier(f.column_name()) for f in meta.primary_key_fields
            )
            pieces.append(f"PRIMARY KEY ({key_columns})")
        pieces.extend(self._render_foreign_keys(model))
        table_name = self.dialect.format_table(meta.table_name)
        sql = f"CREATE TABLE IF NOT EXISTS {table_name} ({', '.join(pieces)})"
        if self.dialect.name == "mysql":
            sql += " ENGINE=InnoDB"
        return sql

    def drop_table_sql(self, model: type[Model]) -> str:
        table_name = self.dialect.format_table(model._meta.table_name)
        self.logger.warning(
            "DROP TABLE generated for %s; confirm destructive migration before applying.",
            table_name,
        )
        return f"DROP TABLE IF EXISTS {table_name}"

    def create_tables(self, store: "BackingStore", models: Iterable[type[Model]]) -> None:
        """
        Create tables for ``models`` in the given order; referenced tables
        must come first.
        """
        for model in models:
            store.execute(self.create_table_sql(model))
            self.logger.info("Created table %s", model._meta.table_name)

    def drop_tables(self, store: "BackingStore", models: Iterable[type[Model]]) -> None:
        """
        Drop tables for ``models`` in reverse order.
        """
        for model in reversed(list(models)):
            store.execute(self.drop_table_sql(model))

    def _render_columns(self, model: type[Model]) -> List[str]:
        pieces: List[str] = []
        for field in model._meta.get_fields():
            column_name = field.column_name()
            if field.is_generated:
                pieces.append(self.dialect.render_generated_key(column_name))
                continue
            column_type = field.db_type
            if not column_type:
                raise ValueError(f"Field '{field.name}' missing db_type for schema generation.")
            column_def = self.dialect.render_column_definition(
                column_name,
                column_type,
                nullable=field.nullable,
            )
            if field.unique and not field.primary_key:
                column_def = f"{column_def} UNIQUE"
            pieces.append(column_def)
        return pieces

    def _render_foreign_keys(self, model: type[Model]) -> List[str]:
        constraints: List[str] = []
        quote = self.dialect.quote_identifier
        for field in model._meta.relation_fields():
            if not field.db_constraint:
                continue
            remote = field.require_remote_model()
            constraints.append(
                f"FOREIGN KEY ({quote(field.column_name())}) REFERENCES "
                f"{self.dialect.format_table(remote._meta.table_name)} "
                f"({quote(field.target_key_field().column_name())})"
            )
        return constraints


