"""
Deferred-load placeholders for lazy many-to-one associations.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from ..errors import StaleReferenceError
from .keys import EntityKey

if TYPE_CHECKING:
    from ..persistence.session import Session
    from .model import Model


class ProxyState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


class LazyProxy:
    """
    Stand-in for the target of a lazy association.

    An uninitialised proxy knows only the target model and key. The first
    attribute access (or :meth:`resolve`) loads the row through the owning
    session, after which the proxy forwards to that entity for good.
    """

    __slots__ = ("_model", "_key", "_session", "_epoch", "_state", "_entity")

    def __init__(
        self,
        model: type["Model"],
        key: EntityKey,
        session: "Session",
        epoch: int,
    ) -> None:
        object.__setattr__(self, "_model", model)
        object.__setattr__(self, "_key", key)
        object.__setattr__(self, "_session", session)
        object.__setattr__(self, "_epoch", epoch)
        object.__setattr__(self, "_state", ProxyState.UNINITIALIZED)
        object.__setattr__(self, "_entity", None)

    @classmethod
    def wrap(cls, entity: "Model") -> "LazyProxy":
        """
        Build an already-initialised proxy around an entity the caller holds.
        """
        proxy = cls.__new__(cls)
        object.__setattr__(proxy, "_model", type(entity))
        object.__setattr__(proxy, "_key", None)
        object.__setattr__(proxy, "_session", None)
        object.__setattr__(proxy, "_epoch", 0)
        object.__setattr__(proxy, "_state", ProxyState.INITIALIZED)
        object.__setattr__(proxy, "_entity", entity)
        return proxy

    # Introspection -------------------------------------------------------
    @property
    def model(self) -> type["Model"]:
        return self._model

    @property
    def state(self) -> ProxyState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state is ProxyState.INITIALIZED

    @property
    def key(self) -> EntityKey:
        if self._entity is not None:
            return self._entity.identity
        return self._key

    @property
    def entity(self) -> Optional["Model"]:
        """The resolved entity, or ``None`` while uninitialised. Never loads."""
        return self._entity

    # State transition ----------------------------------------------------
    def resolve(self) -> "Model":
        self._check_usable()
        if self._state is ProxyState.INITIALIZED:
            return self._entity
        entity = self._session._load_reference(self._model, self._key)
        self._initialize(entity)
        return entity

    def _initialize(self, entity: "Model") -> None:
        if self._state is ProxyState.INITIALIZED:
            return
        object.__setattr__(self, "_entity", entity)
        object.__setattr__(self, "_state", ProxyState.INITIALIZED)

    def _check_usable(self) -> None:
        session = self._session
        if session is not None and not session._is_current(self._epoch):
            raise StaleReferenceError(
                f"Proxy for {self._model.__name__} {self._key!r} outlived its session"
            )
        entity = self._entity
        if entity is not None and entity._is_detached():
            raise StaleReferenceError(
                f"Proxy target {self._model.__name__} is detached from its session"
            )

    # Forwarding ----------------------------------------------------------
    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return getattr(self.resolve(), name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self.resolve(), name, value)

    # Equality ------------------------------------------------------------
    def _target(self) -> Optional["Model"]:
        """
        The instance this proxy stands for, if one is in memory: the resolved
        entity, or the identity-map instance it would resolve to. Never loads.
        """
        if self._entity is not None:
            return self._entity
        session = self._session
        if session is None or not session._is_current(self._epoch):
            return None
        return session.identity_map.get(self._model, self._key)

    def __eq__(self, other: object) -> bool:
        from .model import Model

        if isinstance(other, LazyProxy):
            mine, theirs = self._target(), other._target()
            if mine is not None or theirs is not None:
                return mine is theirs
            return self._model is other._model and _same_identity(self.key, other.key)
        if isinstance(other, Model):
            return self._target() is other
        return NotImplemented

    def __hash__(self) -> int:
        # equal proxies and entities share the entity's own hash
        target = self._target()
        if target is not None:
            return hash(target)
        return hash((self._model, self.key))

    def __repr__(self) -> str:
        return f"<LazyProxy {self._model.__name__} {self.key!r} {self._state.value}>"


def _same_identity(left: EntityKey, right: EntityKey) -> bool:
    return left.is_complete and right.is_complete and left == right
