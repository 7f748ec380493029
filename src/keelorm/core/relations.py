"""
Many-to-one association fields and the registry resolving their targets.

Two resolution strategies are available:

* :class:`IdReference` keeps the raw foreign-key value as a plain attribute.
  Nothing is loaded or validated when it changes; integrity is the store's
  business at flush time.
* :class:`ManyToOne` keeps a navigable reference represented by a
  :class:`~keelorm.core.proxy.LazyProxy` that loads its target on first
  access.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Type, cast

from ..errors import ModelConfigurationError
from ..utils import foreign_key_column
from .fields import Field
from .proxy import LazyProxy

if TYPE_CHECKING:
    from .model import Model


class ResolutionStrategy(Enum):
    ID_REFERENCE = "id-reference"
    LAZY_OBJECT = "lazy-object"


@dataclass(frozen=True)
class AssociationDescriptor:
    """
    Static description of one many-to-one association.
    """

    source: type
    name: str
    target: type
    fk_column: str
    strategy: ResolutionStrategy
    nullable: bool
    db_constraint: bool
    cardinality: str = "many-to-one"
    directionality: str = "unidirectional"

    @property
    def fk_columns(self) -> Tuple[str, ...]:
        return (self.fk_column,)

    @property
    def is_lazy(self) -> bool:
        return self.strategy is ResolutionStrategy.LAZY_OBJECT


class RelatedField(Field):
    """
    Base class for many-to-one association fields.
    """

    strategy = ResolutionStrategy.ID_REFERENCE

    def __init__(
        self,
        to: Type | str,
        *,
        db_type: Optional[str] = None,
        db_constraint: bool = True,
        **kwargs: Any,
    ) -> None:
        if kwargs.get("primary_key"):
            raise ModelConfigurationError("Association fields cannot be primary keys.")
        self._explicit_db_type = db_type is not None
        kwargs["db_type"] = db_type or "INTEGER"
        super().__init__(**kwargs)
        self.to = to
        self.db_constraint = db_constraint
        self.remote_model: Optional[Type] = None

    def bind(self, model: type["Model"], name: str) -> None:
        if self.db_column is None:
            self.db_column = foreign_key_column(name)
        super().bind(model, name)

    def resolve_model(self, model: Type) -> None:
        pk_fields = model._meta.primary_key_fields
        if len(pk_fields) != 1:
            raise ModelConfigurationError(
                f"{self.require_model().__name__}.{self.name} targets {model.__name__}, "
                "whose composite key cannot be referenced by a single column."
            )
        self.remote_model = model
        if not self._explicit_db_type:
            self.db_type = pk_fields[0].db_type

    @property
    def is_resolved(self) -> bool:
        return self.remote_model is not None

    def require_remote_model(self) -> Type:
        if self.remote_model is None:
            raise ModelConfigurationError(
                f"Relation target {self.to!r} of {self.require_model().__name__}.{self.name} is not resolved."
            )
        return self.remote_model

    def target_key_field(self) -> Field:
        return self.require_remote_model()._meta.primary_key_fields[0]

    def descriptor(self) -> AssociationDescriptor:
        return AssociationDescriptor(
            source=self.require_model(),
            name=self.require_name(),
            target=self.require_remote_model(),
            fk_column=self.column_name(),
            strategy=self.strategy,
            nullable=self.nullable,
            db_constraint=self.db_constraint,
        )

    def to_python(self, value: Any) -> Any:
        if value is None or self.remote_model is None:
            return value
        return self.target_key_field().to_python(value)

    def to_db(self, value: Any) -> Any:
        if value is None or self.remote_model is None:
            return value
        return self.target_key_field().to_db(value)


class IdReference(RelatedField):
    """
    Foreign key kept as a raw value; no navigation, no object-level checks.

    With ``db_constraint=False`` the schema declares no foreign key and the
    flush runs an explicit existence check instead.
    """

    strategy = ResolutionStrategy.ID_REFERENCE

    def __set__(self, instance: object, value: Any) -> None:
        from .model import Model

        if isinstance(value, (Model, LazyProxy)):
            raise TypeError(
                f"{self.require_name()} holds a raw key value; assign the key, not an entity"
            )
        super().__set__(instance, value)


class ManyToOne(RelatedField):
    """
    Unidirectional lazy reference to another entity.
    """

    strategy = ResolutionStrategy.LAZY_OBJECT

    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        model_instance = cast("Model", instance)
        name = self.require_name()
        model_instance._check_usable(f"navigate {name}")
        proxy = model_instance._related_cache.get(name)
        if proxy is not None:
            return proxy
        raw = model_instance._field_values.get(name)
        if raw is None:
            return None
        session = model_instance._session
        if session is None:
            raise ModelConfigurationError(
                f"{type(instance).__name__}.{name} holds key {raw!r} without a session to load it"
            )
        proxy = session._make_proxy(self.require_remote_model(), raw)
        model_instance._related_cache[name] = proxy
        return proxy

    def __set__(self, instance: object, value: Any) -> None:
        from .model import Model

        model_instance = cast("Model", instance)
        name = self.require_name()
        model_instance._check_usable(f"assign {name}")
        remote = self.require_remote_model()
        if value is None:
            if not self.nullable:
                raise ValueError(f"Field '{name}' cannot be None")
            model_instance._related_cache.pop(name, None)
            raw = None
        elif isinstance(value, LazyProxy):
            if value.model is not remote:
                raise TypeError(f"{name} expects {remote.__name__}, got proxy for {value.model.__name__}")
            model_instance._related_cache[name] = value
            raw = value.key.value
        elif isinstance(value, Model):
            if not isinstance(value, remote):
                raise TypeError(f"{name} expects {remote.__name__}, got {type(value).__name__}")
            model_instance._related_cache[name] = LazyProxy.wrap(value)
            raw = value.identity.value
        else:
            raise TypeError(
                f"{name} is an object reference; assign a {remote.__name__} instance, not {value!r}"
            )
        model_instance._field_values[name] = raw
        model_instance._field_changed(name)

    def referenced_entity(self, instance: "Model") -> Optional["Model"]:
        """
        The entity held by an initialised proxy, without triggering a load.
        """
        proxy = instance._related_cache.get(self.require_name())
        if proxy is None:
            return None
        return proxy.entity


class RelationRegistry:
    """
    Resolves association targets declared by class or by name.
    """

    def __init__(self) -> None:
        self.models: Dict[str, Type] = {}
        self.pending_fields: List[Tuple[Type, RelatedField]] = []

    def register_model(self, model: Type) -> None:
        self.models[self._label(model)] = model
        self._resolve_pending()

    def register_field(self, model: Type, field: RelatedField) -> None:
        target = self._resolve_target(field.to)
        if target is None:
            self.pending_fields.append((model, field))
            return
        field.resolve_model(target)

    def configure(self) -> None:
        """
        Validate that every declared association found its target.
        """
        self._resolve_pending()
        if self.pending_fields:
            missing = ", ".join(
                f"{model.__name__}.{field.name} -> {field.to!r}" for model, field in self.pending_fields
            )
            raise ModelConfigurationError(f"Unresolved association targets: {missing}")

    def _resolve_pending(self) -> None:
        unresolved = []
        for model, field in self.pending_fields:
            target = self._resolve_target(field.to)
            if target is None:
                unresolved.append((model, field))
                continue
            field.resolve_model(target)
        self.pending_fields = unresolved

    def _resolve_target(self, target: Type | str) -> Optional[Type]:
        if isinstance(target, type):
            return target
        label = target.split(".")[-1]
        return self.models.get(label)

    @staticmethod
    def _label(model: Type) -> str:
        return model.__name__


relation_registry = RelationRegistry()
