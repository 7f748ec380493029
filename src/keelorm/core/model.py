"""
Model base classes and metadata orchestration for KeelORM.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Type, TypeVar

from ..errors import ModelConfigurationError, StaleReferenceError
from ..utils import camel_to_snake
from .fields import AutoField, Field
from .keys import EntityKey, KeyShape
from .relations import AssociationDescriptor, ManyToOne, RelatedField, relation_registry

if TYPE_CHECKING:
    from ..persistence.session import Session


class EntityState(Enum):
    TRANSIENT = "transient"
    MANAGED = "managed"
    REMOVED = "removed"
    DETACHED = "detached"


@dataclass
class ModelOptions:
    """
    Container for model metadata calculated by :class:`ModelMeta`.
    """

    model: Type["Model"]
    table_name: str = ""
    fields: "OrderedDict[str, Field]" = field(default_factory=OrderedDict)
    primary_key_fields: List[Field] = field(default_factory=list)

    def add_field(self, field_obj: Field) -> None:
        if field_obj.name in self.fields:
            raise ModelConfigurationError(
                f"Duplicate field name '{field_obj.name}' on model '{self.model.__name__}'"
            )
        column = field_obj.column_name()
        for existing in self.fields.values():
            if existing.column_name() == column:
                raise ModelConfigurationError(
                    f"Fields '{existing.name}' and '{field_obj.name}' of '{self.model.__name__}' "
                    f"both map to column '{column}'"
                )
        self.fields[field_obj.name] = field_obj
        if field_obj.primary_key:
            self.primary_key_fields.append(field_obj)

    @property
    def key_shape(self) -> KeyShape:
        return KeyShape(tuple(f.require_name() for f in self.primary_key_fields))

    @property
    def generated_key_field(self) -> Optional[Field]:
        for pk_field in self.primary_key_fields:
            if pk_field.is_generated:
                return pk_field
        return None

    def get_field(self, name: str) -> Field:
        try:
            return self.fields[name]
        except KeyError as exc:
            raise KeyError(f"Unknown field '{name}' on model '{self.model.__name__}'") from exc

    def get_fields(self) -> Iterable[Field]:
        return self.fields.values()

    def field_for_column(self, column: str) -> Optional[Field]:
        for field_obj in self.fields.values():
            if field_obj.column_name() == column:
                return field_obj
        return None

    def relation_fields(self) -> List[RelatedField]:
        return [f for f in self.fields.values() if isinstance(f, RelatedField)]

    def lazy_relation_fields(self) -> List[ManyToOne]:
        return [f for f in self.fields.values() if isinstance(f, ManyToOne)]

    def associations(self) -> List[AssociationDescriptor]:
        return [f.descriptor() for f in self.relation_fields()]

    def make_key(self, value: Any = None, **components: Any) -> EntityKey:
        """
        Encode user input into a key, converting each component with its field.
        """
        raw = self.key_shape.encode(value, **components)
        converted = tuple(
            pk_field.to_python(component)
            for pk_field, component in zip(self.primary_key_fields, raw.values)
        )
        return EntityKey(raw.names, converted)


TModel = TypeVar("TModel", bound="Model")


class ModelMeta(type):
    """
    Metaclass collecting fields and validating mapping metadata eagerly.
    """

    def __new__(mcls, name: str, bases: tuple[type, ...], attrs: Dict[str, Any]) -> "ModelMeta":
        # Allow creation of the base Model class without processing fields.
        if name == "Model" and bases == (object,):
            return super().__new__(mcls, name, bases, attrs)

        declared_fields: Dict[str, Field] = {}
        for attr_name, value in list(attrs.items()):
            if isinstance(value, Field):
                declared_fields[attr_name] = attrs.pop(attr_name)

        cls = super().__new__(mcls, name, bases, attrs)

        meta = getattr(cls, "Meta", None)
        table_name = getattr(meta, "table", None) or camel_to_snake(name)
        cls._meta = ModelOptions(model=cls, table_name=table_name)

        sorted_fields = sorted(declared_fields.items(), key=lambda item: item[1].creation_counter)
        for attr_name, field_obj in sorted_fields:
            field_obj.contribute_to_class(cls, attr_name)
            cls._meta.add_field(field_obj)

        pk_fields = cls._meta.primary_key_fields
        if not pk_fields:
            if "id" in cls._meta.fields:
                raise ModelConfigurationError(
                    f"Model '{cls.__name__}' defines a field named 'id' but no primary key. "
                    "Either set primary_key=True on that field or define a different name."
                )
            auto_field = AutoField()
            auto_field.contribute_to_class(cls, "id")
            cls._meta.add_field(auto_field)
            cls._meta.fields.move_to_end("id", last=False)
        elif len(pk_fields) > 1 and any(f.is_generated for f in pk_fields):
            raise ModelConfigurationError(
                f"Composite key of '{cls.__name__}' cannot contain a generated component."
            )

        for field_obj in cls._meta.relation_fields():
            relation_registry.register_field(cls, field_obj)
        relation_registry.register_model(cls)
        return cls


class Model(metaclass=ModelMeta):
    """
    Base entity. Instances start transient; a :class:`Session` makes them
    managed and tracks their changes.
    """

    _meta: ModelOptions

    def __init__(self, **kwargs: Any) -> None:
        self._field_values: Dict[str, Any] = {}
        self._initial_state: Dict[str, Any] = {}
        self._related_cache: Dict[str, Any] = {}
        self._state = EntityState.TRANSIENT
        self._session: Optional["Session"] = None

        unknown = set(kwargs) - set(self._meta.fields)
        if unknown:
            raise TypeError(
                f"{self.__class__.__name__} got unexpected fields: {', '.join(sorted(unknown))}"
            )
        for field_obj in self._meta.get_fields():
            if field_obj.name in kwargs:
                setattr(self, field_obj.name, kwargs[field_obj.name])
            elif field_obj.has_default:
                setattr(self, field_obj.name, field_obj.get_default())

    @classmethod
    def _from_row(cls: Type[TModel], values: Dict[str, Any]) -> TModel:
        """
        Build an instance from already-converted field values without
        running defaults or change tracking.
        """
        instance = cls.__new__(cls)
        instance._field_values = dict(values)
        instance._initial_state = dict(values)
        instance._related_cache = {}
        instance._state = EntityState.TRANSIENT
        instance._session = None
        return instance

    def __repr__(self) -> str:
        field_parts = ", ".join(
            f"{field.name}={repr(self._field_values.get(field.name))}"
            for field in self._meta.get_fields()
            if field.name in self._field_values
        )
        return f"<{self.__class__.__name__} {field_parts}>"

    # Identity ------------------------------------------------------------
    @property
    def identity(self) -> EntityKey:
        return self._meta.key_shape.from_instance(self)

    @property
    def pk(self) -> Any:
        """
        Bare key value for scalar keys, :class:`EntityKey` for composite ones.
        """
        key = self.identity
        if key.is_composite:
            return key
        return key.value

    @property
    def state(self) -> EntityState:
        return self._state

    def to_dict(self) -> Dict[str, Any]:
        return {name: self._field_values.get(name) for name in self._meta.fields}

    # Change tracking -----------------------------------------------------
    def changed_fields(self) -> List[str]:
        return [
            name
            for name in self._meta.fields
            if self._field_values.get(name) != self._initial_state.get(name)
        ]

    def is_dirty(self) -> bool:
        return bool(self.changed_fields())

    def _snapshot(self) -> None:
        self._initial_state = dict(self._field_values)

    def _field_changed(self, name: str) -> None:
        if self._state is EntityState.MANAGED and self._session is not None:
            self._session.mark_dirty(self)

    # Session bookkeeping -------------------------------------------------
    def _has_identity(self) -> bool:
        return self._state in (EntityState.MANAGED, EntityState.REMOVED) and self.identity.is_complete

    def _is_detached(self) -> bool:
        return self._state is EntityState.DETACHED

    def _check_usable(self, action: str) -> None:
        if self._state is EntityState.DETACHED:
            raise StaleReferenceError(
                f"Cannot {action} on detached {self.__class__.__name__}; its session was cleared or closed"
            )

    def _attach(self, session: "Session") -> None:
        self._session = session
        self._state = EntityState.MANAGED

    def _detach(self) -> None:
        self._state = EntityState.DETACHED
