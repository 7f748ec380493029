"""
QuerySet implementation providing a chainable query API, and native
statement execution.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..core.model import EntityState
from .compiler import PATH_SEPARATOR, SQLCompiler
from .expressions import Q

if TYPE_CHECKING:
    from ..core.model import Model
    from ..dialects.base import Dialect
    from ..persistence.session import Session


class QuerySet:
    """
    Lazily evaluated query over one model, bound to a session.

    Results are hydrated through the session's identity map, so a row that
    is already managed comes back as the managed instance. Associations
    named in :meth:`select_related` are fetched by the same statement and
    arrive as initialised proxies; all others stay uninitialised.
    """

    def __init__(
        self,
        model: type["Model"],
        session: "Session",
        *,
        where: Optional[Q] = None,
        ordering: Tuple[str, ...] = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        select_related: Tuple[str, ...] = (),
    ) -> None:
        self.model = model
        self._session = session
        self._where = where or Q()
        self._ordering = ordering
        self._limit = limit
        self._offset = offset
        self._select_related = select_related
        self._result_cache: Optional[List["Model"]] = None

    @property
    def dialect(self) -> "Dialect":
        return self._session.dialect

    # Public API --------------------------------------------------------
    def filter(self, **lookups: Any) -> "QuerySet":
        return self._clone(where=self._where & Q(**lookups))

    def exclude(self, **lookups: Any) -> "QuerySet":
        return self._clone(where=self._where & ~Q(**lookups))

    def where(self, q_object: Q) -> "QuerySet":
        return self._clone(where=self._where & q_object)

    def order_by(self, *fields: str) -> "QuerySet":
        return self._clone(ordering=tuple(fields))

    def limit(self, value: int) -> "QuerySet":
        if value < 0:
            raise ValueError("limit() requires a non-negative value.")
        return self._clone(limit=value)

    def offset(self, value: int) -> "QuerySet":
        if value < 0:
            raise ValueError("offset() requires a non-negative value.")
        return self._clone(offset=value)

    def select_related(self, *paths: str) -> "QuerySet":
        if not paths:
            raise ValueError("select_related() requires at least one association path.")
        combined = tuple(dict.fromkeys(self._select_related + paths))
        clone = self._clone(select_related=combined)
        compiler = clone._compiler()
        for path in combined:
            compiler.relation_for_path(path)
        return clone

    def to_sql(self) -> tuple[str, list[Any]]:
        return self._compiler().compile()

    def all(self) -> List["Model"]:
        return list(self._fetch())

    def first(self) -> Optional["Model"]:
        ordering = self._ordering or tuple(
            f.require_name() for f in self.model._meta.primary_key_fields
        )
        results = self._clone(ordering=ordering, limit=1).all()
        return results[0] if results else None

    def count(self) -> int:
        """
        Number of entities :meth:`all` would return. Windowed queries, and
        models with rows pending removal, are counted from the fetched rows.
        """
        if self._result_cache is not None:
            return len(self._result_cache)
        session = self._session
        session._before_query()
        if self._limit is not None or self._offset is not None or self._has_pending_removals():
            return len(self._fetch())
        sql, params = self._compiler().compile_count()
        rows = session.store.fetch_tuples(sql, params)
        return int(rows[0][0]) if rows else 0

    def __iter__(self) -> Iterator["Model"]:
        return iter(self._fetch())

    def __len__(self) -> int:
        return len(self._fetch())

    def __repr__(self) -> str:
        return f"<QuerySet {self.model.__name__}>"

    # Internal helpers --------------------------------------------------
    def _has_pending_removals(self) -> bool:
        return any(type(entity) is self.model for entity in self._session.unit_of_work.deleted)

    def _compiler(self) -> SQLCompiler:
        return SQLCompiler(
            model=self.model,
            dialect=self.dialect,
            where=self._where,
            ordering=self._ordering,
            limit=self._limit,
            offset=self._offset,
            select_related=self._select_related,
        )

    def _clone(self, **overrides: Any) -> "QuerySet":
        return QuerySet(
            self.model,
            self._session,
            where=overrides.get("where", self._where),
            ordering=overrides.get("ordering", self._ordering),
            limit=overrides.get("limit", self._limit),
            offset=overrides.get("offset", self._offset),
            select_related=overrides.get("select_related", self._select_related),
        )

    def _fetch(self) -> List["Model"]:
        if self._result_cache is not None:
            return self._result_cache
        session = self._session
        session._before_query()
        compiler = self._compiler()
        sql, params = compiler.compile()
        rows = session.store.fetch_many(sql, params)
        eager_paths = compiler.eager_paths()

        instances: List["Model"] = []
        for row in rows:
            base_data, related_chunks = self._split_row(row)
            instance = session._materialize(self.model, base_data)
            if instance.state is EntityState.REMOVED:
                continue
            if eager_paths:
                self._hydrate_related(compiler, instance, related_chunks, eager_paths)
            instances.append(instance)
        self._result_cache = instances
        return instances

    def _split_row(self, data: Dict[str, Any]) -> tuple[Dict[str, Any], Dict[str, Dict[str, Any]]]:
        base_columns = {f.column_name() for f in self.model._meta.get_fields()}
        base_data: Dict[str, Any] = {}
        related_chunks: Dict[str, Dict[str, Any]] = {}
        for key, value in data.items():
            if key in base_columns:
                base_data[key] = value
            elif PATH_SEPARATOR in key:
                path, _, column = key.rpartition(PATH_SEPARATOR)
                related_chunks.setdefault(path, {})[column] = value
        return base_data, related_chunks

    def _hydrate_related(
        self,
        compiler: SQLCompiler,
        instance: "Model",
        related_chunks: Dict[str, Dict[str, Any]],
        paths: Sequence[str],
    ) -> None:
        session = self._session
        resolved: Dict[str, Optional["Model"]] = {}
        for path in paths:
            parent_path, _, _ = path.rpartition(PATH_SEPARATOR)
            owner = resolved.get(parent_path) if parent_path else instance
            if owner is None:
                resolved[path] = None
                continue
            field_obj = compiler.relation_for_path(path)
            remote = field_obj.require_remote_model()
            data = related_chunks.get(path, {})
            pk_column = field_obj.target_key_field().column_name()
            if data.get(pk_column) is None:
                resolved[path] = None
                continue
            related = session._materialize(remote, data)
            proxy = getattr(owner, field_obj.require_name())
            if proxy is None:
                resolved[path] = None
                continue
            if not proxy.is_initialized and proxy.key == related.identity:
                proxy._initialize(related)
            resolved[path] = proxy.entity


_NAMED_PARAMETER = re.compile(
    r"'(?:[^']|'')*'"  # single-quoted literal
    r'|"(?:[^"]|"")*"'  # quoted identifier
    r"|::"  # postgres cast
    r"|:([A-Za-z_][A-Za-z0-9_]*)"
)


class NativeQuery:
    """
    Verbatim statement executed against the store, bypassing the identity map.

    Positional parameters are passed through untouched, so the statement
    uses the dialect's own placeholders. Named parameters (``:name``) are
    rewritten to positional placeholders first.
    """

    def __init__(
        self,
        sql: str,
        params: Sequence[Any] | Mapping[str, Any] | None,
        dialect: "Dialect",
    ) -> None:
        self.sql = sql
        self.params = params
        self.dialect = dialect

    def translate(self) -> tuple[str, list[Any]]:
        if self.params is None:
            return self.sql, []
        if not isinstance(self.params, Mapping):
            return self.sql, list(self.params)

        named = self.params
        ordered: list[Any] = []

        def substitute(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name is None:
                return match.group(0)
            if name not in named:
                raise ValueError(f"Missing value for named parameter ':{name}'")
            ordered.append(named[name])
            return self.dialect.parameter_placeholder(len(ordered))

        sql = _NAMED_PARAMETER.sub(substitute, self.sql)
        return sql, ordered

    def execute(self, session: "Session") -> List[tuple]:
        sql, params = self.translate()
        return session.store.fetch_tuples(sql, params)
