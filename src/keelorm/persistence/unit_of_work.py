"""
Unit of Work implementation batching persistence operations.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List

from ..core.model import Model
from .identity_map import IdentityMap


class UnitOfWorkState(Enum):
    ACTIVE = "active"
    FLUSHING = "flushing"
    CLOSED = "closed"


@dataclass
class PendingSnapshot:
    new: Dict[Model, int]
    dirty: Dict[Model, int]
    deleted: Dict[Model, int]


class UnitOfWork:
    """
    Tracks new, dirty, and deleted objects within a session.

    Each registration is stamped with a scheduling sequence number; the
    flush planner uses it to break ties so the write order stays stable.
    """

    def __init__(self) -> None:
        self.identity_map = IdentityMap()
        self.state = UnitOfWorkState.ACTIVE
        self.new: Dict[Model, int] = {}
        self.dirty: Dict[Model, int] = {}
        self.deleted: Dict[Model, int] = {}
        self._sequence = itertools.count(1)

    # Registration methods ----------------------------------------------
    def register_new(self, instance: Model) -> None:
        self.new.setdefault(instance, next(self._sequence))

    def register_dirty(self, instance: Model) -> None:
        if instance in self.new or instance in self.deleted:
            return
        self.dirty.setdefault(instance, next(self._sequence))

    def register_deleted(self, instance: Model) -> bool:
        """
        Schedule a delete. Returns ``False`` when the instance was only
        pending insertion, in which case it is simply unscheduled.
        """
        if self.new.pop(instance, None) is not None:
            return False
        self.dirty.pop(instance, None)
        self.deleted.setdefault(instance, next(self._sequence))
        return True

    def cancel_delete(self, instance: Model) -> None:
        self.deleted.pop(instance, None)
        if instance.is_dirty():
            self.register_dirty(instance)

    def collect_dirty(self, candidates: Iterable[Model]) -> None:
        for instance in candidates:
            if instance not in self.new and instance not in self.deleted and instance.is_dirty():
                self.register_dirty(instance)

    # Bookkeeping -------------------------------------------------------
    def has_pending(self) -> bool:
        return bool(self.new or self.dirty or self.deleted)

    def tracked(self) -> List[Model]:
        """
        Every instance the unit of work knows about, managed or pending.
        """
        seen: Dict[int, Model] = {}
        for instance in itertools.chain(self.identity_map.values(), self.new, self.deleted):
            seen.setdefault(id(instance), instance)
        return list(seen.values())

    def snapshot(self) -> PendingSnapshot:
        return PendingSnapshot(dict(self.new), dict(self.dirty), dict(self.deleted))

    def restore(self, snapshot: PendingSnapshot) -> None:
        self.new = dict(snapshot.new)
        self.dirty = dict(snapshot.dirty)
        self.deleted = dict(snapshot.deleted)

    def clear_pending(self) -> None:
        self.new.clear()
        self.dirty.clear()
        self.deleted.clear()

    def clear(self) -> None:
        self.clear_pending()
        self.identity_map.clear()
