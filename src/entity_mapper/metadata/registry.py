"""
MetadataRegistry — extracts and caches one :class:`EntityDescriptor` per
entity type.

Resolution scans the pydantic ``model_fields`` of the type in declaration
order and reads the :class:`~entity_mapper.markers.Column` and
:class:`~entity_mapper.markers.AutoIncrement` markers from the field's
``Annotated`` metadata. Properties without a ``Column`` marker are kept
as known-but-unmapped names so lookups can tell "absent" from "unmapped".

The cache is keyed by the class object, never by its name, and is safe
for concurrent first-use resolution: descriptors are computed outside
the lock and the first one stored wins; later ones are discarded.
A type that was registered first keeps that registration, even if a
different shape is registered for the same class later.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from ..exceptions import ConfigurationError
from ..markers import AutoIncrement, Column, table_marker
from .descriptor import EntityDescriptor, FieldBinding

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

logger = logging.getLogger(__name__)


class MetadataRegistry:
    """Thread-safe, write-once-per-type cache of entity descriptors."""

    def __init__(self) -> None:
        self._descriptors: dict[type[Any], EntityDescriptor] = {}
        self._lock = threading.Lock()

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def resolve(self, entity_type: type[Any]) -> EntityDescriptor:
        """
        Return the descriptor of *entity_type*, building it on first use.

        Raises:
            ConfigurationError: the type carries no table marker, is not a
                pydantic model or has no ``Column``-marked property.
        """
        cached = self._descriptors.get(entity_type)
        if cached is not None:
            return cached
        return self._store(entity_type, build_descriptor(entity_type))

    def register(
        self, entity_type: type[Any], descriptor: EntityDescriptor
    ) -> EntityDescriptor:
        """
        Register an explicitly built descriptor.

        Returns the descriptor that is actually cached: if *entity_type*
        was already resolved or registered, the earlier one is kept.
        """
        if descriptor.entity_type is not entity_type:
            raise ConfigurationError(
                f"Descriptor for '{descriptor.entity_name}' cannot be registered "
                f"under '{entity_type.__name__}'",
                entity_name=entity_type.__name__,
            )
        return self._store(entity_type, descriptor)

    def clear(self) -> None:
        with self._lock:
            self._descriptors.clear()

    def _store(
        self, entity_type: type[Any], descriptor: EntityDescriptor
    ) -> EntityDescriptor:
        with self._lock:
            winner = self._descriptors.setdefault(entity_type, descriptor)
        if winner is descriptor:
            logger.debug(
                "Registered %s -> %s (%d fields)",
                descriptor.entity_name,
                descriptor.qualified_table_name,
                len(descriptor.fields),
            )
        elif winner != descriptor:
            logger.warning(
                "Discarding registration for %s: already mapped to %s",
                descriptor.entity_name,
                winner.qualified_table_name,
            )
        return winner


def build_descriptor(entity_type: type[Any]) -> EntityDescriptor:
    """Derive a descriptor from the markers declared on *entity_type*."""
    name = getattr(entity_type, "__name__", repr(entity_type))
    marker = table_marker(entity_type) if isinstance(entity_type, type) else None
    if marker is None:
        raise ConfigurationError(
            f"'{name}' is not a usable entity: missing @table marker",
            entity_name=name,
        )
    if not issubclass(entity_type, BaseModel):
        raise ConfigurationError(
            f"'{name}' is not a usable entity: entities must be pydantic models",
            entity_name=name,
        )

    bindings: list[FieldBinding] = []
    for property_name, info in entity_type.model_fields.items():
        binding = _binding_from_field(property_name, info)
        if binding is not None:
            bindings.append(binding)

    if not bindings:
        raise ConfigurationError(
            f"'{name}' is not a usable entity: no property carries a Column marker",
            entity_name=name,
        )

    return EntityDescriptor.from_marker(
        entity_type,
        marker,
        tuple(bindings),
        properties=frozenset(entity_type.model_fields),
    )


def _binding_from_field(property_name: str, info: FieldInfo) -> FieldBinding | None:
    column = next((m for m in info.metadata if isinstance(m, Column)), None)
    if column is None:
        return None
    return FieldBinding(
        property_name=property_name,
        column_name=column.name,
        is_auto_generated=any(isinstance(m, AutoIncrement) for m in info.metadata),
        annotation=info.annotation,
    )


_default_registry = MetadataRegistry()


def default_registry() -> MetadataRegistry:
    """The process-wide registry used when none is injected."""
    return _default_registry
