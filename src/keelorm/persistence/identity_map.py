"""
Identity map ensuring a single in-memory instance per row.
"""

from __future__ import annotations

from threading import RLock
from typing import Dict, List, Optional, Tuple, Type

from ..core.keys import EntityKey
from ..core.model import Model
from ..errors import IdentityConflictError


class IdentityMap:
    """
    Stores model instances keyed by (model, :class:`EntityKey`).
    """

    def __init__(self) -> None:
        self._store: Dict[Tuple[Type[Model], EntityKey], Model] = {}
        self._lock = RLock()

    def add(self, instance: Model) -> None:
        """
        Register an instance under its current identity. Registering a
        different instance for an occupied identity raises
        :class:`IdentityConflictError`.
        """
        key = instance.identity
        if not key.is_complete:
            return
        slot = (type(instance), key)
        with self._lock:
            existing = self._store.get(slot)
            if existing is not None and existing is not instance:
                raise IdentityConflictError(
                    f"{type(instance).__name__} {key!r} is already managed by this session"
                )
            self._store[slot] = instance

    def get(self, model: Type[Model], key: EntityKey) -> Optional[Model]:
        with self._lock:
            return self._store.get((model, key))

    def remove(self, instance: Model) -> None:
        key = instance.identity
        with self._lock:
            if self._store.get((type(instance), key)) is instance:
                del self._store[(type(instance), key)]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def values(self) -> List[Model]:
        with self._lock:
            return list(self._store.values())

    def __contains__(self, instance: Model) -> bool:
        key = instance.identity
        if not key.is_complete:
            return False
        with self._lock:
            return self._store.get((type(instance), key)) is instance

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
