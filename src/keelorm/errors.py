"""
Exceptions raised by the persistence runtime.
"""

from __future__ import annotations

from typing import Any, Sequence


class PersistenceError(RuntimeError):
    """Base class for unit-of-work failures."""


class TransientReferenceError(PersistenceError):
    """
    An association points at an entity that is neither managed nor being
    persisted in the same call. Entities scheduled for removal count as
    unmanaged.
    """

    def __init__(self, owner: Any, attribute: str, target: Any) -> None:
        self.owner = owner
        self.attribute = attribute
        self.target = target
        super().__init__(
            f"{type(owner).__name__}.{attribute} references {type(target).__name__}, "
            "which is not managed by this session; persist the target first."
        )


class DanglingReferenceError(PersistenceError):
    """A lazy reference was resolved but its target row no longer exists."""

    def __init__(self, model: type, key: Any) -> None:
        self.model = model
        self.key = key
        super().__init__(f"No {model.__name__} row for {key!r}")


class StoreConstraintError(PersistenceError):
    """
    The backing store rejected a write (foreign key, uniqueness, not-null).
    The whole flush batch has been rolled back.
    """

    def __init__(self, message: str, *, sql: str | None = None, params: Sequence[Any] | None = None) -> None:
        self.sql = sql
        self.params = list(params) if params is not None else None
        super().__init__(message)


class FlushCycleError(PersistenceError):
    """Pending operations depend on each other in a cycle."""

    def __init__(self, operations: Sequence[Any]) -> None:
        self.operations = list(operations)
        described = ", ".join(repr(op) for op in self.operations)
        super().__init__(f"Cyclic dependency between pending operations: {described}")


class StaleReferenceError(PersistenceError):
    """An entity or proxy was used after its session was cleared or closed."""


class SessionClosedError(StaleReferenceError):
    """The session itself was used after close()."""


class IdentityConflictError(PersistenceError):
    """A second instance was registered for an identity already managed."""


class ModelConfigurationError(Exception):
    """Raised when a model class or its mapping metadata is inconsistent."""
