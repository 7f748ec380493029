"""
Entity identity values.

Every primary key, scalar or composite, is represented by an
:class:`EntityKey`: an ordered tuple of named components compared
structurally. :class:`KeyShape` knows which components a model declares and
turns user input, instances and database rows into canonical keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterator, Mapping, Tuple

if TYPE_CHECKING:
    from .model import Model


class InvalidKeyError(ValueError):
    """Raised when a key value does not match the model's key shape."""


@dataclass(frozen=True)
class EntityKey:
    """
    Canonical, hashable identity composed of named components.
    """

    names: Tuple[str, ...]
    values: Tuple[Any, ...]

    def __post_init__(self) -> None:
        if len(self.names) != len(self.values):
            raise InvalidKeyError(
                f"Key components {self.names!r} do not match values {self.values!r}"
            )
        if not self.names:
            raise InvalidKeyError("A key needs at least one component.")

    @classmethod
    def of(cls, **components: Any) -> "EntityKey":
        return cls(tuple(components), tuple(components.values()))

    @property
    def is_composite(self) -> bool:
        return len(self.names) > 1

    @property
    def is_complete(self) -> bool:
        return all(value is not None for value in self.values)

    @property
    def value(self) -> Any:
        """
        The bare value for scalar keys, the component tuple otherwise.
        """
        if self.is_composite:
            return self.values
        return self.values[0]

    def as_dict(self) -> Dict[str, Any]:
        return dict(zip(self.names, self.values))

    def __getitem__(self, name: str) -> Any:
        try:
            return self.values[self.names.index(name)]
        except ValueError as exc:
            raise KeyError(name) from exc

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        return iter(zip(self.names, self.values))

    def __repr__(self) -> str:
        parts = ", ".join(f"{name}={value!r}" for name, value in self)
        return f"EntityKey({parts})"


class KeyShape:
    """
    Ordered primary-key component names of one model.
    """

    def __init__(self, names: Tuple[str, ...]) -> None:
        if not names:
            raise InvalidKeyError("A key shape needs at least one component.")
        self.names = tuple(names)

    @property
    def is_composite(self) -> bool:
        return len(self.names) > 1

    def encode(self, value: Any = None, **components: Any) -> EntityKey:
        """
        Build a key from a scalar, a tuple in component order, a mapping,
        an existing :class:`EntityKey`, or keyword components.
        """
        if components:
            if value is not None:
                raise InvalidKeyError("Pass either a key value or key components, not both.")
            return self._from_mapping(components)
        if isinstance(value, EntityKey):
            if value.names != self.names:
                raise InvalidKeyError(
                    f"Key components {value.names!r} do not match {self.names!r}"
                )
            return value
        if isinstance(value, Mapping):
            return self._from_mapping(value)
        if isinstance(value, (tuple, list)):
            if len(value) != len(self.names):
                raise InvalidKeyError(
                    f"Expected {len(self.names)} key components {self.names!r}, got {len(value)}"
                )
            return EntityKey(self.names, tuple(value))
        if self.is_composite:
            raise InvalidKeyError(
                f"Composite key {self.names!r} cannot be built from scalar {value!r}"
            )
        return EntityKey(self.names, (value,))

    def from_instance(self, instance: "Model") -> EntityKey:
        return EntityKey(self.names, tuple(instance._field_values.get(name) for name in self.names))

    def _from_mapping(self, data: Mapping[str, Any]) -> EntityKey:
        missing = [name for name in self.names if name not in data]
        extra = [name for name in data if name not in self.names]
        if missing or extra:
            raise InvalidKeyError(
                f"Key components must be exactly {self.names!r}"
                f" (missing={missing!r}, unexpected={extra!r})"
            )
        return EntityKey(self.names, tuple(data[name] for name in self.names))

    def __repr__(self) -> str:
        return f"KeyShape{self.names!r}"
