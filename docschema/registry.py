"""
Entity registry for docschema.

This module provides the registry holding everything annotations declare:
- Field tables per entity
- Schema options per entity
- Parent links for inheritance
- Behavior (virtuals, methods, statics) per entity
- Compiled models per backend, created lazily

Invariants:
    - Field tables are keyed by field name; last registration wins
    - At most one model per entity and backend for the registry's lifetime
    - Lineage is resolved from explicit parent links, never from live classes

Example:
    >>> registry = EntityRegistry()
    >>> registry.register_entity("Author")
    >>> registry.behavior("Author").method("greet", greet)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import ModelBackend
from .types import FieldDescriptor

logger = logging.getLogger(__name__)

# Global registry
_global_registry: Optional[EntityRegistry] = None
_registry_lock = threading.Lock()

EntitySnapshot = Tuple[Dict[str, FieldDescriptor], Optional[str]]


@dataclass(frozen=True)
class Virtual:
    """Computed, non-persisted property.

    Attributes:
        name: Property name
        getter: Called with the document
        setter: Called with the document and the value
    """

    name: str
    getter: Optional[Callable[[Any], Any]] = None
    setter: Optional[Callable[[Any, Any], None]] = None


@dataclass
class EntityBehavior:
    """Behavior declared on one entity.

    Builder used while the entity class is created; each call returns
    the builder so registrations can be chained.
    """

    virtuals: Dict[str, Virtual] = dataclass_field(default_factory=dict)
    methods: Dict[str, Callable[..., Any]] = dataclass_field(default_factory=dict)
    statics: Dict[str, Any] = dataclass_field(default_factory=dict)

    def virtual(
        self,
        name: str,
        getter: Optional[Callable[[Any], Any]] = None,
        setter: Optional[Callable[[Any, Any], None]] = None,
    ) -> EntityBehavior:
        """Register a computed property."""
        self.virtuals[name] = Virtual(name=name, getter=getter, setter=setter)
        return self

    def method(self, name: str, function: Callable[..., Any]) -> EntityBehavior:
        """Register an instance method."""
        self.methods[name] = function
        return self

    def static(self, name: str, value: Any) -> EntityBehavior:
        """Register an entity-level attribute or function."""
        self.statics[name] = value
        return self

    def is_empty(self) -> bool:
        return not (self.virtuals or self.methods or self.statics)


class EntityRegistry:
    """Storage for entity declarations and their compiled models.

    The registry does no validation beyond existence checks; the
    compiler components own the rules.

    Thread-safety:
        - Writes go through an internal lock
        - ``lock`` is shared with ModelFactory for get-or-build

    Example:
        >>> registry = EntityRegistry()
        >>> registry.register_entity("Child", parent="Parent")
        >>> registry.lineage("Child")
        ['Child', 'Parent']
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self.fields: Dict[str, Dict[str, FieldDescriptor]] = {}
        self.schema_options: Dict[str, Dict[str, Any]] = {}
        self.models: Dict[str, Dict[ModelBackend, Any]] = {}
        self.parents: Dict[str, Optional[str]] = {}
        self.behaviors: Dict[str, EntityBehavior] = {}
        self.lock = threading.RLock()

    def register_entity(self, name: str, parent: Optional[str] = None) -> None:
        """Declare an entity, keeping any fields registered so far.

        Args:
            name: Entity name
            parent: Nearest declared ancestor, if any
        """
        with self.lock:
            self.fields.setdefault(name, {})
            self.parents[name] = parent
            logger.debug(f"Registered entity: {name} (parent={parent})")

    def snapshot_entity(self, name: str) -> Optional[EntitySnapshot]:
        """Copy of an entity's field table and parent, or None if undeclared."""
        with self.lock:
            if name not in self.fields:
                return None
            return dict(self.fields[name]), self.parents.get(name)

    def restore_entity(self, name: str, snapshot: Optional[EntitySnapshot]) -> None:
        """Return an entity to a snapshot; None removes the entity."""
        with self.lock:
            if snapshot is None:
                self.fields.pop(name, None)
                self.parents.pop(name, None)
                logger.debug(f"Removed entity: {name}")
                return
            fields, parent = snapshot
            self.fields[name] = dict(fields)
            self.parents[name] = parent
            logger.debug(f"Restored entity: {name}")

    def has_entity(self, name: str) -> bool:
        """Whether ``name`` has a field table."""
        return name in self.fields

    def get_fields(self, name: str) -> Optional[Dict[str, FieldDescriptor]]:
        """Get the field table of an entity."""
        return self.fields.get(name)

    def set_field(self, entity: str, descriptor: FieldDescriptor) -> None:
        """Store a compiled field, replacing any previous one with that name."""
        with self.lock:
            table = self.fields.setdefault(entity, {})
            if descriptor.name in table:
                logger.debug(f"Replacing field {entity}.{descriptor.name}")
            table[descriptor.name] = descriptor

    def get_schema_options(self, name: str) -> Optional[Dict[str, Any]]:
        """Get entity-wide options."""
        return self.schema_options.get(name)

    def set_schema_options(self, name: str, options: Dict[str, Any]) -> None:
        """Store entity-wide options as given."""
        with self.lock:
            self.schema_options[name] = dict(options)

    def get_model(
        self,
        name: str,
        backend: ModelBackend = ModelBackend.MONGOENGINE,
    ) -> Optional[Any]:
        """Get the model compiled for a backend, or None if not built yet."""
        return self.models.get(name, {}).get(backend)

    def set_model(
        self,
        name: str,
        model: Any,
        backend: ModelBackend = ModelBackend.MONGOENGINE,
    ) -> None:
        """Store the model compiled for a backend."""
        with self.lock:
            self.models.setdefault(name, {})[backend] = model

    def behavior(self, name: str) -> EntityBehavior:
        """Get the behavior builder of an entity, creating it if needed."""
        with self.lock:
            return self.behaviors.setdefault(name, EntityBehavior())

    def get_behavior(self, name: str) -> EntityBehavior:
        """Get declared behavior without creating it."""
        return self.behaviors.get(name) or EntityBehavior()

    def lineage(self, name: str) -> List[str]:
        """Entity followed by its ancestors, most-derived first."""
        chain: List[str] = []
        current: Optional[str] = name
        while current is not None and current not in chain:
            chain.append(current)
            current = self.parents.get(current)
        return chain

    def entities(self) -> Iterator[str]:
        """Iterate over declared entity names."""
        yield from list(self.fields.keys())


def get_registry() -> EntityRegistry:
    """Get the process-wide default registry."""
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            _global_registry = EntityRegistry()
        return _global_registry


def reset_registry() -> None:
    """Reset the default registry (for testing only)."""
    global _global_registry
    with _registry_lock:
        _global_registry = None
