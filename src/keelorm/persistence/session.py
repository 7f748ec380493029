"""
Session management coordinating the backing store, unit of work, and
identity map.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, TypeVar, overload

from ..adapters.base import DatabaseAdapter
from ..adapters.config import ConnectionConfig
from ..core.keys import EntityKey, InvalidKeyError
from ..core.model import EntityState, Model
from ..core.proxy import LazyProxy
from ..core.relations import relation_registry
from ..dialects.base import Dialect
from ..errors import (
    DanglingReferenceError,
    IdentityConflictError,
    PersistenceError,
    SessionClosedError,
    TransientReferenceError,
)
from ..query.queryset import NativeQuery, QuerySet
from ..utils import get_logger, time_call
from ..utils.performance import StoreStats
from .flush import FlushPlan, FlushPlanner, OperationKind
from .identity_map import IdentityMap
from .store import BackingStore, StatementResult
from .unit_of_work import UnitOfWork, UnitOfWorkState

TModel = TypeVar("TModel", bound=Model)


class Session:
    """
    Explicit unit of work over one database connection.

    Entities become managed through :meth:`persist`, :meth:`find` or a
    query, and stay managed until :meth:`clear` or :meth:`close` detaches
    them. Changes reach the database only on :meth:`flush`, which runs the
    whole pending set in one transaction.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        *,
        connection_config: Optional[ConnectionConfig] = None,
        autoflush: bool = False,
        check_id_references: bool = False,
        performance_threshold: int | None = None,
    ) -> None:
        relation_registry.configure()
        self.adapter = adapter
        self.dialect: Dialect = adapter.dialect
        self.connection_config = connection_config or ConnectionConfig(url="sqlite:///:memory:")
        self.autoflush = autoflush
        self.check_id_references = check_id_references
        self.unit_of_work = UnitOfWork()
        self.store = BackingStore(adapter, performance_threshold=performance_threshold)
        self.logger = get_logger("persistence.session")
        self._epoch = 0
        self.adapter.connect(self.connection_config)

    # ------------------------------------------------------------------ #
    # Context management
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "Session":
        self._ensure_open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                self.flush()
        finally:
            self.close()

    # ------------------------------------------------------------------ #
    @property
    def identity_map(self) -> IdentityMap:
        return self.unit_of_work.identity_map

    @property
    def stats(self) -> StoreStats:
        return self.store.stats

    @property
    def is_closed(self) -> bool:
        return self.unit_of_work.state is UnitOfWorkState.CLOSED

    def __contains__(self, entity: object) -> bool:
        return (
            isinstance(entity, Model)
            and entity._session is self
            and entity.state is EntityState.MANAGED
        )

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #
    def find(self, model: Type[TModel], key: Any = None, **components: Any) -> Optional[TModel]:
        """
        Return the managed instance for ``key``, loading it on a cache miss.

        ``None`` is returned when no row exists or the cached instance is
        scheduled for removal.
        """
        self._ensure_open()
        identity = model._meta.make_key(key, **components)
        if not identity.is_complete:
            raise InvalidKeyError(f"Key {identity!r} of {model.__name__} has missing components")
        cached = self.identity_map.get(model, identity)
        if cached is not None:
            return None if cached.state is EntityState.REMOVED else cached
        row = self.store.fetch_one(model, identity)
        if row is None:
            return None
        return self._materialize(model, row)

    @overload
    def query(self, target: Type[TModel]) -> QuerySet: ...

    @overload
    def query(
        self, target: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> List[tuple]: ...

    def query(self, target, params=None):
        """
        ``query(Model)`` starts an object query; ``query(sql, params)`` runs
        a native statement and returns raw tuples, untouched by the
        identity map.
        """
        self._ensure_open()
        if isinstance(target, str):
            self._before_query()
            return NativeQuery(target, params, self.dialect).execute(self)
        if isinstance(target, type) and issubclass(target, Model):
            if params is not None:
                raise TypeError("Object queries take lookups through filter(), not params.")
            return QuerySet(target, self)
        raise TypeError(f"Cannot query {target!r}; pass a model class or a SQL string.")

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> StatementResult:
        """
        Run a statement outside the unit of work, e.g. DDL.
        """
        self._ensure_open()
        return self.store.execute(sql, params)

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def persist(self, *entities: Model) -> None:
        """
        Make transient entities managed and schedule their inserts.

        Lazy references must point at entities managed by this session or
        passed in the same call; otherwise :class:`TransientReferenceError`
        is raised and nothing is registered.
        """
        self._ensure_open()
        batch = {id(entity) for entity in entities}
        claimed: Dict[tuple, Model] = {}
        for entity in entities:
            self._validate_persist(entity, batch, claimed)

        for entity in entities:
            if entity.state is EntityState.TRANSIENT:
                entity._attach(self)
                self.unit_of_work.register_new(entity)
                self.identity_map.add(entity)
            elif entity.state is EntityState.REMOVED:
                entity._state = EntityState.MANAGED
                self.unit_of_work.cancel_delete(entity)

    def _validate_persist(self, entity: Model, batch: set, claimed: Dict[tuple, Model]) -> None:
        if not isinstance(entity, Model):
            raise TypeError(f"Cannot persist {type(entity).__name__}; it is not a Model.")
        entity._check_usable("persist")
        if entity.state is not EntityState.TRANSIENT:
            if entity._session is not self:
                raise PersistenceError(
                    f"{type(entity).__name__} {entity.identity!r} belongs to another session"
                )
            return

        for field_obj in entity._meta.lazy_relation_fields():
            target = field_obj.referenced_entity(entity)
            if target is None or id(target) in batch:
                continue
            target._check_usable(f"persist {type(entity).__name__} referencing it")
            if target._session is not self or target.state in (
                EntityState.TRANSIENT,
                EntityState.REMOVED,
            ):
                raise TransientReferenceError(entity, field_obj.require_name(), target)

        identity = entity.identity
        if identity.is_complete:
            slot = (type(entity), identity)
            existing = self.identity_map.get(*slot) or claimed.get(slot)
            if existing is not None and existing is not entity:
                raise IdentityConflictError(
                    f"{type(entity).__name__} {identity!r} is already managed by this session"
                )
            claimed[slot] = entity

    def remove(self, entity: Model) -> None:
        """
        Schedule a delete. An entity persisted but never flushed is simply
        unscheduled and becomes transient again.
        """
        self._ensure_open()
        entity._check_usable("remove")
        if entity._session is not self or entity.state is EntityState.TRANSIENT:
            raise PersistenceError(
                f"Cannot remove {type(entity).__name__}; it is not managed by this session"
            )
        if entity.state is EntityState.REMOVED:
            return
        if self.unit_of_work.register_deleted(entity):
            entity._state = EntityState.REMOVED
            return
        self.identity_map.remove(entity)
        entity._state = EntityState.TRANSIENT
        entity._session = None

    def mark_dirty(self, entity: Model) -> None:
        self._ensure_open()
        if entity._session is self and entity.state is EntityState.MANAGED:
            self.unit_of_work.register_dirty(entity)

    # ------------------------------------------------------------------ #
    # Flush / lifecycle
    # ------------------------------------------------------------------ #
    def flush(self) -> None:
        """
        Write every pending change in one transaction.

        On failure the transaction is rolled back, every entity in the
        batch gets its pre-flush field values back and the pending set is
        kept, so the caller can correct the data and flush again.
        """
        self._ensure_open()
        uow = self.unit_of_work
        uow.collect_dirty(self.identity_map.values())
        if not uow.has_pending():
            return

        plan = FlushPlanner(
            uow,
            self.store,
            session=self,
            check_id_references=self.check_id_references,
        ).plan()
        saved = [
            (op.entity, dict(op.entity._field_values), dict(op.entity._initial_state))
            for op in plan
        ]
        pending = uow.snapshot()
        uow.state = UnitOfWorkState.FLUSHING
        try:
            with time_call("session.flush", self.logger, threshold_ms=500):
                with self.store.atomic():
                    plan.execute(self.store)
        except Exception:
            for entity, values, initial in saved:
                entity._field_values = values
                entity._initial_state = initial
            uow.restore(pending)
            self.logger.warning("Flush of %s operations rolled back", len(plan))
            raise
        finally:
            uow.state = UnitOfWorkState.ACTIVE
        self._after_flush(plan)

    def _after_flush(self, plan: FlushPlan) -> None:
        for op in plan:
            entity = op.entity
            if op.kind is OperationKind.DELETE:
                self.identity_map.remove(entity)
                entity._state = EntityState.TRANSIENT
                entity._session = None
                continue
            entity._snapshot()
            self.identity_map.add(entity)
        self.unit_of_work.clear_pending()
        self.logger.debug("Flushed %s operations", len(plan))

    def clear(self) -> None:
        """
        Detach every entity and drop pending changes without writing them.
        """
        self._ensure_open()
        self._detach_all()

    def close(self) -> None:
        if self.is_closed:
            return
        try:
            self._detach_all()
        finally:
            self.unit_of_work.state = UnitOfWorkState.CLOSED
            self.adapter.close()

    def _detach_all(self) -> None:
        uow = self.unit_of_work
        if uow.has_pending():
            self.logger.debug(
                "Discarding %s pending operations",
                len(uow.new) + len(uow.dirty) + len(uow.deleted),
            )
        for entity in uow.tracked():
            entity._detach()
        uow.clear()
        self._epoch += 1

    # ------------------------------------------------------------------ #
    # Hooks used by proxies, fields and querysets
    # ------------------------------------------------------------------ #
    def _ensure_open(self) -> None:
        if self.is_closed:
            raise SessionClosedError("Session is closed")

    def _is_current(self, epoch: int) -> bool:
        return not self.is_closed and epoch == self._epoch

    def _before_query(self) -> None:
        self._ensure_open()
        if self.autoflush:
            self.flush()

    def _make_proxy(self, model: Type[Model], raw: Any) -> LazyProxy:
        self._ensure_open()
        return LazyProxy(model, model._meta.make_key(raw), self, self._epoch)

    def _load_reference(self, model: Type[Model], key: EntityKey) -> Model:
        self._ensure_open()
        row = self.store.fetch_one(model, key)
        if row is None:
            pending = self.identity_map.get(model, key)
            if pending is not None:
                return pending
            raise DanglingReferenceError(model, key)
        return self._materialize(model, row)

    def _materialize(self, model: Type[TModel], row: Mapping[str, Any]) -> TModel:
        """
        Hydrate a row keyed by column name; an instance already managed for
        the same identity wins over the fresh row.
        """
        values: Dict[str, Any] = {}
        for field_obj in model._meta.get_fields():
            column = field_obj.column_name()
            if column in row:
                values[field_obj.require_name()] = field_obj.to_python(row[column])
        instance = model._from_row(values)
        existing = self.identity_map.get(model, instance.identity)
        if existing is not None:
            return existing  # type: ignore[return-value]
        instance._attach(self)
        self.identity_map.add(instance)
        return instance


__all__ = ["Session"]
