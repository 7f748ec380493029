"""
Core building blocks for KeelORM models, keys and associations.
"""

from ..errors import ModelConfigurationError
from .fields import AutoField, DateField, Field, IntegerField, StringField
from .keys import EntityKey, InvalidKeyError, KeyShape
from .model import EntityState, Model, ModelMeta, ModelOptions
from .proxy import LazyProxy, ProxyState
from .relations import (
    AssociationDescriptor,
    IdReference,
    ManyToOne,
    RelatedField,
    RelationRegistry,
    ResolutionStrategy,
    relation_registry,
)

__all__ = [
    "AssociationDescriptor",
    "AutoField",
    "DateField",
    "EntityKey",
    "EntityState",
    "Field",
    "IdReference",
    "IntegerField",
    "InvalidKeyError",
    "KeyShape",
    "LazyProxy",
    "ManyToOne",
    "Model",
    "ModelConfigurationError",
    "ModelMeta",
    "ModelOptions",
    "ProxyState",
    "RelatedField",
    "RelationRegistry",
    "ResolutionStrategy",
    "StringField",
    "relation_registry",
]
