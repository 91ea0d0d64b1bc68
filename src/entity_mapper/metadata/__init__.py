"""Entity metadata: descriptors, bindings and the registry that caches them."""

from .descriptor import EntityDescriptor, FieldBinding, QualifiedColumn
from .registry import MetadataRegistry, build_descriptor, default_registry

__all__ = [
    "EntityDescriptor",
    "FieldBinding",
    "MetadataRegistry",
    "QualifiedColumn",
    "build_descriptor",
    "default_registry",
]
