"""
Field definitions and descriptors for KeelORM models.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Optional, Sequence, cast

if TYPE_CHECKING:
    from .model import Model


class FieldError(Exception):
    """Internal exception for field configuration issues."""


class Field:
    """
    Base class for model field descriptors.

    Fields manage attribute storage on model instances, report mutations of
    managed instances to their session and retain the metadata required
    for schema generation.
    """

    _creation_counter = 0

    def __init__(
        self,
        *,
        primary_key: bool = False,
        unique: bool = False,
        nullable: bool = True,
        default: Any = None,
        db_type: Optional[str] = None,
        db_column: Optional[str] = None,
        choices: Optional[Sequence[Any]] = None,
    ) -> None:
        self.primary_key = primary_key
        self.unique = unique
        self.nullable = nullable and not primary_key
        self.default = default
        self.db_type = db_type
        self.db_column = db_column
        self.choices = tuple(choices) if choices is not None else None

        self.model: type["Model"] | None = None  # Will be set during contribute_to_class
        self.name: str | None = None
        self.creation_counter = Field._creation_counter
        Field._creation_counter += 1

    # Descriptor protocol -------------------------------------------------
    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        model_instance = cast("Model", instance)
        return model_instance._field_values.get(self.require_name())

    def __set__(self, instance: object, value: Any) -> None:
        model_instance = cast("Model", instance)
        name = self.require_name()
        model_instance._check_usable(f"assign {name}")
        if value is None:
            if not self.nullable and not self.primary_key:
                raise ValueError(f"Field '{name}' cannot be None")
            python_value = None
        else:
            if self.choices and value not in self.choices:
                raise ValueError(f"Value '{value}' for field '{name}' not in choices {self.choices}")
            python_value = self.to_python(value)
        if self.primary_key and model_instance._has_identity():
            current = model_instance._field_values.get(name)
            if current is not None and current != python_value:
                raise ValueError(
                    f"Primary key '{name}' of a managed {type(instance).__name__} cannot change"
                )
        model_instance._field_values[name] = python_value
        model_instance._field_changed(name)

    # Metadata helpers ----------------------------------------------------
    def bind(self, model: type["Model"], name: str) -> None:
        self.model = model
        self.name = name
        if self.db_column is None:
            self.db_column = name

    def contribute_to_class(self, model: type["Model"], name: str) -> None:
        """
        Attach the field to the model class as a descriptor.
        """
        self.bind(model, name)
        setattr(model, name, self)

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Field name is not set.")
        return self.name

    def require_model(self) -> type["Model"]:
        if self.model is None:
            raise FieldError("Field model is not set.")
        return self.model

    def column_name(self) -> str:
        if self.db_column:
            return self.db_column
        return self.require_name()

    @property
    def is_generated(self) -> bool:
        """True when the store assigns the value on insert."""
        return False

    # Conversion ------------------------------------------------------------
    def get_default(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def to_python(self, value: Any) -> Any:
        return value

    def to_db(self, value: Any) -> Any:
        return value

    def __repr__(self) -> str:
        owner = self.model.__name__ if self.model is not None else "?"
        return f"<{self.__class__.__name__} {owner}.{self.name}>"


class IntegerField(Field):
    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "INTEGER")
        super().__init__(**kwargs)

    def to_python(self, value: Any) -> int | None:
        if value is None:
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid integer value '{value}'")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value '{value}'") from exc


class AutoField(IntegerField):
    """
    Store-generated integer primary key.
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs.update(primary_key=True, nullable=False)
        super().__init__(**kwargs)

    @property
    def is_generated(self) -> bool:
        return True


class StringField(Field):
    def __init__(self, *, max_length: int = 255, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", f"VARCHAR({max_length})")
        super().__init__(**kwargs)
        self.max_length = max_length

    def to_python(self, value: Any) -> str | None:
        if value is None:
            return value
        result = str(value)
        if self.max_length and len(result) > self.max_length:
            field_name = self.require_name()
            raise ValueError(f"Value for field '{field_name}' exceeds max_length {self.max_length}")
        return result


class DateField(Field):
    """
    Calendar date stored as an ISO-8601 string where the backend lacks a
    native date type.
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "DATE")
        super().__init__(**kwargs)

    def to_python(self, value: Any) -> date | None:
        if value is None:
            return value
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value)
            except ValueError as exc:
                raise ValueError(f"Invalid date value '{value}' for field '{self.name}'") from exc
        raise ValueError(f"Expected date for field '{self.name}', received {value!r}")

    def to_db(self, value: Any) -> Any:
        if isinstance(value, date):
            return value.isoformat()
        return value
