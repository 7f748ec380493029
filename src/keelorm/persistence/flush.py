"""
Flush planning: turn the pending set into an ordered, dependency-safe batch.

Ordering rules:

* an insert or update that references a row being inserted in the same
  batch runs after that insert (parents before children); updates never
  change keys, so they create no such dependency;
* a delete, or an update moving a reference away, runs before the delete of
  the row it used to reference (children before parents).

Ties are broken by the scheduling sequence recorded by the unit of work.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Set, Tuple

from ..core.keys import EntityKey
from ..core.model import EntityState, Model
from ..core.relations import IdReference, ManyToOne, RelatedField
from ..errors import (
    FlushCycleError,
    StaleReferenceError,
    StoreConstraintError,
    TransientReferenceError,
)
from ..utils import get_logger

if TYPE_CHECKING:
    from .store import BackingStore
    from .unit_of_work import UnitOfWork


logger = get_logger("persistence.flush")


class OperationKind(Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(eq=False)
class FlushOperation:
    kind: OperationKind
    entity: Model
    sequence: int

    def __repr__(self) -> str:
        return f"<{self.kind.value} {type(self.entity).__name__} {self.entity.identity!r}>"


@dataclass(frozen=True)
class Reference:
    field: RelatedField
    model: type
    key: Optional[EntityKey]
    entity: Optional[Model] = None


def sync_references(entity: Model) -> None:
    """
    Copy the current key of every referenced entity into the raw column
    value. Keys generated earlier in the batch become visible this way.
    """
    for field_obj in entity._meta.lazy_relation_fields():
        target = field_obj.referenced_entity(entity)
        if target is not None:
            entity._field_values[field_obj.require_name()] = target.identity.value


def pending_reference_names(entity: Model) -> List[str]:
    """
    Lazy fields whose raw column value lags behind the referenced entity.
    """
    names: List[str] = []
    for field_obj in entity._meta.lazy_relation_fields():
        target = field_obj.referenced_entity(entity)
        if target is None:
            continue
        key = target.identity
        name = field_obj.require_name()
        if not key.is_complete or key.value != entity._field_values.get(name):
            names.append(name)
    return names


def has_pending_reference(entity: Model) -> bool:
    return bool(pending_reference_names(entity))


def _references(entity: Model, values: Dict[str, object], *, live: bool) -> Iterator[Reference]:
    for field_obj in entity._meta.relation_fields():
        name = field_obj.require_name()
        remote = field_obj.require_remote_model()
        target = field_obj.referenced_entity(entity) if live and isinstance(field_obj, ManyToOne) else None
        if target is not None:
            key = target.identity
            yield Reference(field_obj, remote, key if key.is_complete else None, target)
            continue
        raw = values.get(name)
        if raw is not None:
            yield Reference(field_obj, remote, remote._meta.make_key(raw))


class FlushPlan:
    """
    Ordered operations executed inside one store transaction.
    """

    def __init__(self, operations: List[FlushOperation]) -> None:
        self.operations = operations

    def __iter__(self) -> Iterator[FlushOperation]:
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    def __repr__(self) -> str:
        return f"<FlushPlan {self.operations!r}>"

    def execute(self, store: "BackingStore") -> None:
        statements = store.statements
        for operation in self.operations:
            entity = operation.entity
            if operation.kind is OperationKind.INSERT:
                sync_references(entity)
                sql, params, generated = statements.insert(entity)
                result = store.execute(sql, params, returning=generated)
                if generated is not None:
                    key_field = entity._meta.generated_key_field
                    entity._field_values[key_field.require_name()] = key_field.to_python(
                        result.generated_key
                    )
                    # self-references only learn the generated key now
                    lagging = pending_reference_names(entity)
                    if lagging:
                        sync_references(entity)
                        sql, params = statements.update(entity, lagging)
                        store.execute(sql, params)
            elif operation.kind is OperationKind.UPDATE:
                sync_references(entity)
                key_names = set(entity._meta.key_shape.names)
                changed = [name for name in entity.changed_fields() if name not in key_names]
                if not changed:
                    continue
                sql, params = statements.update(entity, changed)
                store.execute(sql, params)
            else:
                sql, params = statements.delete(entity)
                store.execute(sql, params)


class FlushPlanner:
    """
    Build a :class:`FlushPlan` from a unit of work, failing before any
    write when the pending set cannot be flushed.
    """

    def __init__(
        self,
        unit_of_work: "UnitOfWork",
        store: "BackingStore",
        *,
        session: object = None,
        check_id_references: bool = False,
    ) -> None:
        self.unit_of_work = unit_of_work
        self.store = store
        self.session = session
        self.check_id_references = check_id_references

    def plan(self) -> FlushPlan:
        operations = self._collect()
        self._check_lazy_targets(operations)
        writes_by_object, writes_by_key, deletes_by_key = self._index(operations)
        self._check_id_references(operations, writes_by_key, deletes_by_key)
        edges = self._edges(operations, writes_by_object, writes_by_key, deletes_by_key)
        ordered = self._order(operations, edges)
        logger.debug("Planned flush of %s operations", len(ordered))
        return FlushPlan(ordered)

    # Collection ----------------------------------------------------------
    def _collect(self) -> List[FlushOperation]:
        uow = self.unit_of_work
        operations = [
            FlushOperation(OperationKind.INSERT, entity, seq) for entity, seq in uow.new.items()
        ]
        for entity, seq in uow.dirty.items():
            if entity.is_dirty() or has_pending_reference(entity):
                operations.append(FlushOperation(OperationKind.UPDATE, entity, seq))
        operations.extend(
            FlushOperation(OperationKind.DELETE, entity, seq) for entity, seq in uow.deleted.items()
        )
        return operations

    @staticmethod
    def _index(
        operations: List[FlushOperation],
    ) -> Tuple[
        Dict[int, FlushOperation],
        Dict[Tuple[type, EntityKey], FlushOperation],
        Dict[Tuple[type, EntityKey], FlushOperation],
    ]:
        writes_by_object: Dict[int, FlushOperation] = {}
        writes_by_key: Dict[Tuple[type, EntityKey], FlushOperation] = {}
        deletes_by_key: Dict[Tuple[type, EntityKey], FlushOperation] = {}
        for op in operations:
            key = op.entity.identity
            slot = (type(op.entity), key)
            if op.kind is OperationKind.DELETE:
                deletes_by_key[slot] = op
                continue
            writes_by_object[id(op.entity)] = op
            if key.is_complete:
                writes_by_key[slot] = op
        return writes_by_object, writes_by_key, deletes_by_key

    # Fail-fast checks ----------------------------------------------------
    def _check_lazy_targets(self, operations: List[FlushOperation]) -> None:
        for op in operations:
            if op.kind is OperationKind.DELETE:
                continue
            entity = op.entity
            for field_obj in entity._meta.lazy_relation_fields():
                target = field_obj.referenced_entity(entity)
                if target is None:
                    continue
                if target.state is EntityState.DETACHED:
                    raise StaleReferenceError(
                        f"{type(entity).__name__}.{field_obj.name} references a detached "
                        f"{type(target).__name__}"
                    )
                if target._session is not self.session or target.state in (
                    EntityState.TRANSIENT,
                    EntityState.REMOVED,
                ):
                    raise TransientReferenceError(entity, field_obj.require_name(), target)

    def _needs_check(self, field_obj: RelatedField) -> bool:
        if not isinstance(field_obj, IdReference):
            return False
        if self.check_id_references or not field_obj.db_constraint:
            return True
        return not self.store.dialect.capabilities.enforces_foreign_keys

    def _check_id_references(
        self,
        operations: List[FlushOperation],
        writes_by_key: Dict[Tuple[type, EntityKey], FlushOperation],
        deletes_by_key: Dict[Tuple[type, EntityKey], FlushOperation],
    ) -> None:
        identity_map = self.unit_of_work.identity_map
        for op in operations:
            if op.kind is OperationKind.DELETE:
                continue
            entity = op.entity
            changed = set(entity.changed_fields()) if op.kind is OperationKind.UPDATE else None
            for ref in _references(entity, entity._field_values, live=False):
                if not self._needs_check(ref.field) or ref.key is None:
                    continue
                if changed is not None and ref.field.name not in changed:
                    continue
                slot = (ref.model, ref.key)
                if slot in deletes_by_key:
                    raise StoreConstraintError(
                        f"{type(entity).__name__}.{ref.field.name} references "
                        f"{ref.model.__name__} {ref.key!r}, which is being deleted"
                    )
                if slot in writes_by_key:
                    continue
                managed = identity_map.get(ref.model, ref.key)
                if managed is not None and managed.state is EntityState.MANAGED:
                    continue
                if not self.store.exists(ref.model, ref.key):
                    raise StoreConstraintError(
                        f"{type(entity).__name__}.{ref.field.name} references missing "
                        f"{ref.model.__name__} {ref.key!r}"
                    )

    # Ordering ------------------------------------------------------------
    @staticmethod
    def _edges(
        operations: List[FlushOperation],
        writes_by_object: Dict[int, FlushOperation],
        writes_by_key: Dict[Tuple[type, EntityKey], FlushOperation],
        deletes_by_key: Dict[Tuple[type, EntityKey], FlushOperation],
    ) -> Dict[int, Set[int]]:
        position = {id(op): index for index, op in enumerate(operations)}
        edges: Dict[int, Set[int]] = {index: set() for index in range(len(operations))}

        def link(before: Optional[FlushOperation], after: FlushOperation) -> None:
            if before is None or before is after:
                return
            edges[position[id(before)]].add(position[id(after)])

        for op in operations:
            entity = op.entity
            if op.kind is not OperationKind.DELETE:
                for ref in _references(entity, entity._field_values, live=True):
                    parent = None
                    if ref.entity is not None:
                        parent = writes_by_object.get(id(ref.entity))
                    if parent is None and ref.key is not None:
                        parent = writes_by_key.get((ref.model, ref.key))
                    if parent is not None and parent.kind is OperationKind.INSERT:
                        link(parent, op)
            if op.kind is not OperationKind.INSERT:
                for ref in _references(entity, entity._initial_state, live=False):
                    if ref.key is not None:
                        parent_delete = deletes_by_key.get((ref.model, ref.key))
                        if parent_delete is not None:
                            link(op, parent_delete)
        return edges

    @staticmethod
    def _order(operations: List[FlushOperation], edges: Dict[int, Set[int]]) -> List[FlushOperation]:
        indegree = {index: 0 for index in edges}
        for targets in edges.values():
            for target in targets:
                indegree[target] += 1

        ready = [(operations[i].sequence, i) for i, degree in indegree.items() if degree == 0]
        heapq.heapify(ready)
        ordered: List[FlushOperation] = []
        while ready:
            _, index = heapq.heappop(ready)
            ordered.append(operations[index])
            for target in edges[index]:
                indegree[target] -= 1
                if indegree[target] == 0:
                    heapq.heappush(ready, (operations[target].sequence, target))

        if len(ordered) != len(operations):
            stuck = sorted(
                (operations[i] for i, degree in indegree.items() if degree > 0),
                key=lambda op: op.sequence,
            )
            raise FlushCycleError(stuck)
        return ordered
