"""
SQL compilation utilities translating expressions and entity state into SQL.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from ..core.keys import EntityKey
from ..core.proxy import LazyProxy
from ..core.relations import ManyToOne, RelatedField
from ..dialects.base import Dialect
from .expressions import Q, split_lookup

if TYPE_CHECKING:
    from ..core.fields import Field
    from ..core.model import Model


LOOKUP_OPERATORS = {
    "exact": "=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
}

BASE_ALIAS = "t0"
PATH_SEPARATOR = "__"


def related_alias(path: str, column: str) -> str:
    return f"{path}{PATH_SEPARATOR}{column}"


class SQLCompiler:
    """
    Compile QuerySet state into a SELECT statement and its parameters.

    The queried table is aliased ``t0``; every association path needed by
    ``select_related`` or by a lookup such as ``team__name`` adds one
    ``LEFT JOIN`` aliased ``t1``, ``t2`` and so on. Columns of eagerly
    fetched tables come back labelled ``<path>__<column>``.
    """

    def __init__(
        self,
        model: type["Model"],
        dialect: Dialect,
        where: Q | None = None,
        ordering: tuple[str, ...] = (),
        limit: int | None = None,
        offset: int | None = None,
        select_related: Tuple[str, ...] = (),
    ) -> None:
        self.model = model
        self.dialect = dialect
        self.where = where
        self.ordering = ordering
        self.limit = limit
        self.offset = offset
        self.select_related = select_related
        self._joins: Dict[str, Tuple[type["Model"], str, str]] = {}

    def compile(self) -> Tuple[str, List[Any]]:
        self._joins = {}
        select_list = self._build_select_list()
        where_sql, params = self._build_where()
        sql_parts: List[str] = [f"SELECT {select_list}", "FROM", self._from_clause()]
        if where_sql:
            sql_parts.extend(["WHERE", where_sql])

        if self.ordering:
            order_sql = ", ".join(self._compile_ordering(name) for name in self.ordering)
            sql_parts.extend(["ORDER BY", order_sql])

        limit_clause = self.dialect.limit_clause(self.limit, self.offset)
        if limit_clause:
            sql_parts.append(limit_clause)
        return " ".join(sql_parts), params

    def compile_count(self) -> Tuple[str, List[Any]]:
        self._joins = {}
        where_sql, params = self._build_where()
        sql = f"SELECT COUNT(*) FROM {self._from_clause()}"
        if where_sql:
            sql += f" WHERE {where_sql}"
        return sql, params

    def eager_paths(self) -> List[str]:
        """
        ``select_related`` paths expanded with their prefixes, parents first.
        """
        paths: List[str] = []
        for path in self.select_related:
            segments = path.split(PATH_SEPARATOR)
            for depth in range(1, len(segments) + 1):
                prefix = PATH_SEPARATOR.join(segments[:depth])
                if prefix not in paths:
                    paths.append(prefix)
        return paths

    def relation_for_path(self, path: str) -> ManyToOne:
        model = self.model
        field_obj: Optional[ManyToOne] = None
        for segment in path.split(PATH_SEPARATOR):
            candidate = model._meta.get_field(segment)
            if not isinstance(candidate, ManyToOne):
                raise ValueError(
                    f"select_related path '{path}': '{segment}' on '{model.__name__}' "
                    "is not a lazy object reference."
                )
            field_obj = candidate
            model = candidate.require_remote_model()
        if field_obj is None:
            raise ValueError(f"Invalid relation path '{path}'")
        return field_obj

    # Helpers -----------------------------------------------------------
    def _table_for_model(self, model: type["Model"]) -> str:
        return self.dialect.format_table(model._meta.table_name)

    def _qualified(self, alias: str, column: str) -> str:
        return f"{alias}.{self.dialect.quote_identifier(column)}"

    def _from_clause(self) -> str:
        parts = [f"{self._table_for_model(self.model)} {BASE_ALIAS}"]
        parts.extend(join_sql for _, _, join_sql in self._joins.values())
        return " ".join(parts)

    def _build_select_list(self) -> str:
        quote = self.dialect.quote_identifier
        columns: List[str] = [
            f"{self._qualified(BASE_ALIAS, f.column_name())} AS {quote(f.column_name())}"
            for f in self.model._meta.get_fields()
        ]
        for path in self.eager_paths():
            self.relation_for_path(path)
            related_model, alias = self._join(path.split(PATH_SEPARATOR))
            for field_obj in related_model._meta.get_fields():
                label = related_alias(path, field_obj.column_name())
                columns.append(f"{self._qualified(alias, field_obj.column_name())} AS {quote(label)}")
        return ", ".join(columns)

    def _build_where(self) -> Tuple[str, List[Any]]:
        if self.where is None or self.where.is_empty():
            return "", []
        return self._compile_q(self.where)

    def _join(self, segments: Sequence[str]) -> Tuple[type["Model"], str]:
        path = PATH_SEPARATOR.join(segments)
        if path in self._joins:
            model, alias, _ = self._joins[path]
            return model, alias
        if len(segments) > 1:
            parent_model, parent_alias = self._join(segments[:-1])
        else:
            parent_model, parent_alias = self.model, BASE_ALIAS
        field_obj = parent_model._meta.get_field(segments[-1])
        if not isinstance(field_obj, RelatedField):
            raise ValueError(
                f"Field '{segments[-1]}' on '{parent_model.__name__}' is not an association."
            )
        remote = field_obj.require_remote_model()
        alias = f"t{len(self._joins) + 1}"
        pk_column = field_obj.target_key_field().column_name()
        join_sql = (
            f"LEFT JOIN {self._table_for_model(remote)} {alias} ON "
            f"{self._qualified(parent_alias, field_obj.column_name())} = {self._qualified(alias, pk_column)}"
        )
        self._joins[path] = (remote, alias, join_sql)
        return remote, alias

    def _resolve_field(self, path: Sequence[str]) -> Tuple["Field", str]:
        if len(path) > 1:
            model, alias = self._join(path[:-1])
        else:
            model, alias = self.model, BASE_ALIAS
        return model._meta.get_field(path[-1]), alias

    # Compilation helpers -----------------------------------------------
    def _compile_ordering(self, expression: str) -> str:
        descending = expression.startswith("-")
        name = expression[1:] if descending else expression
        field_obj, alias = self._resolve_field(name.split(PATH_SEPARATOR))
        clause = self._qualified(alias, field_obj.column_name())
        if descending:
            clause += " DESC"
        return clause

    def _compile_q(self, q: Q) -> Tuple[str, List[Any]]:
        parts: List[str] = []
        params: List[Any] = []

        for child in q.children:
            if isinstance(child, Q):
                if child.is_empty():
                    continue
                child_sql, child_params = self._compile_q(child)
                parts.append(f"({child_sql})")
                params.extend(child_params)
            else:
                expression, value = child
                sql, child_params = self._compile_lookup(expression, value)
                parts.append(sql)
                params.extend(child_params)

        if not parts:
            return "", []
        sql = f" {q.connector} ".join(parts)
        if q.negated:
            sql = f"NOT ({sql})"
        return sql, params

    def _compile_lookup(self, expression: str, value: Any) -> Tuple[str, List[Any]]:
        path, lookup = split_lookup(expression)
        field_obj, alias = self._resolve_field(path)
        column = self._qualified(alias, field_obj.column_name())
        placeholder = self.dialect.parameter_placeholder()

        if lookup == "isnull":
            return (f"{column} IS NULL" if value else f"{column} IS NOT NULL"), []
        if value is None:
            if lookup != "exact":
                raise ValueError("NULL comparison only supported for equality.")
            return f"{column} IS NULL", []
        if lookup == "in":
            values = [db_value(field_obj, item) for item in value]
            if not values:
                return "1 = 0", []
            placeholders = ", ".join(placeholder for _ in values)
            return f"{column} IN ({placeholders})", values
        if lookup == "contains":
            return f"{column} LIKE {placeholder}", [f"%{value}%"]
        if lookup == "iexact":
            return f"LOWER({column}) = {placeholder}", [str(value).lower()]

        operator = LOOKUP_OPERATORS.get(lookup)
        if operator is None:
            raise ValueError(f"Unsupported lookup '{lookup}'")
        return f"{column} {operator} {placeholder}", [db_value(field_obj, value)]


def db_value(field_obj: "Field", value: Any) -> Any:
    """
    Convert a lookup operand to its column value. Entities and proxies
    given for an association compare by their key.
    """
    from ..core.model import Model

    if isinstance(value, LazyProxy):
        value = value.key.value
    elif isinstance(value, Model):
        value = value.identity.value
    elif isinstance(value, EntityKey):
        value = value.value
    return field_obj.to_db(field_obj.to_python(value))


class StatementCompiler:
    """
    Render single-row statements addressed by entity key.
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect

    def _table(self, model: type["Model"]) -> str:
        return self.dialect.format_table(model._meta.table_name)

    def _key_clause(self, model: type["Model"], key: EntityKey) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        for field_obj, component in zip(model._meta.primary_key_fields, key.values):
            clauses.append(
                f"{self.dialect.quote_identifier(field_obj.column_name())} = "
                f"{self.dialect.parameter_placeholder()}"
            )
            params.append(field_obj.to_db(component))
        return " AND ".join(clauses), params

    def select_by_key(self, model: type["Model"], key: EntityKey) -> Tuple[str, List[Any]]:
        select_list = ", ".join(
            self.dialect.quote_identifier(f.column_name()) for f in model._meta.get_fields()
        )
        where_sql, params = self._key_clause(model, key)
        return f"SELECT {select_list} FROM {self._table(model)} WHERE {where_sql}", params

    def exists(self, model: type["Model"], key: EntityKey) -> Tuple[str, List[Any]]:
        where_sql, params = self._key_clause(model, key)
        return f"SELECT 1 FROM {self._table(model)} WHERE {where_sql}", params

    def insert(self, instance: "Model") -> Tuple[str, List[Any], Optional[str]]:
        """
        Return the INSERT statement, its parameters and the generated key
        column to read back, if any.
        """
        columns: List[str] = []
        params: List[Any] = []
        generated: Optional[str] = None
        for field_obj in instance._meta.get_fields():
            value = instance._field_values.get(field_obj.require_name())
            if field_obj.is_generated and value is None:
                generated = field_obj.column_name()
                continue
            columns.append(self.dialect.quote_identifier(field_obj.column_name()))
            params.append(field_obj.to_db(value))

        table = self._table(type(instance))
        if columns:
            placeholders = ", ".join(self.dialect.parameter_placeholder() for _ in columns)
            sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        elif self.dialect.name == "mysql":
            sql = f"INSERT INTO {table} () VALUES ()"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
        if generated and self.dialect.capabilities.supports_returning:
            sql += f" RETURNING {self.dialect.quote_identifier(generated)}"
        return sql, params, generated

    def update(self, instance: "Model", field_names: Sequence[str]) -> Tuple[str, List[Any]]:
        meta = instance._meta
        set_clauses: List[str] = []
        params: List[Any] = []
        for name in field_names:
            field_obj = meta.get_field(name)
            set_clauses.append(
                f"{self.dialect.quote_identifier(field_obj.column_name())} = "
                f"{self.dialect.parameter_placeholder()}"
            )
            params.append(field_obj.to_db(instance._field_values.get(name)))
        where_sql, key_params = self._key_clause(type(instance), instance.identity)
        sql = f"UPDATE {self._table(type(instance))} SET {', '.join(set_clauses)} WHERE {where_sql}"
        return sql, params + key_params

    def delete(self, instance: "Model") -> Tuple[str, List[Any]]:
        where_sql, params = self._key_clause(type(instance), instance.identity)
        return f"DELETE FROM {self._table(type(instance))} WHERE {where_sql}", params
