"""
Schema assembly for docschema.

The assembler flattens an entity and its ancestors into one schema:
- Fields: the entity's own table first, then each ancestor's table merged
  in walking toward the root
- Options: from the most-derived entity that declares any
- Behavior: virtuals, methods and statics of the entity itself

Invariants:
    - Lineage comes from parent links recorded at declaration time
    - Merging never mutates the registry's field tables
    - With ancestor_fields_win, an ancestor's field replaces a descendant
      field of the same name (existing hierarchies rely on this)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any, Callable, Dict, Optional, Tuple

from .config import DocSchemaConfig, get_config
from .errors import UnknownEntityError
from .registry import EntityRegistry, Virtual
from .types import FieldDescriptor

logger = logging.getLogger(__name__)


@dataclass
class AssembledSchema:
    """Final merged schema of one entity.

    Attributes:
        name: Entity name
        lineage: Entity and its ancestors, most-derived first
        fields: Merged field table
        options: Entity-wide options
        virtuals: Computed properties
        methods: Instance methods
        statics: Entity-level attributes and functions
    """

    name: str
    lineage: Tuple[str, ...] = ()
    fields: Dict[str, FieldDescriptor] = dataclass_field(default_factory=dict)
    options: Dict[str, Any] = dataclass_field(default_factory=dict)
    virtuals: Dict[str, Virtual] = dataclass_field(default_factory=dict)
    methods: Dict[str, Callable[..., Any]] = dataclass_field(default_factory=dict)
    statics: Dict[str, Any] = dataclass_field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Schema description handed to a persistence engine."""
        return {
            "name": self.name,
            "fields": {name: d.to_dict() for name, d in self.fields.items()},
            "options": dict(self.options),
            "virtuals": sorted(self.virtuals),
            "methods": sorted(self.methods),
            "statics": sorted(self.statics),
        }


class SchemaAssembler:
    """Builds AssembledSchema objects from registry contents.

    Args:
        registry: Registry to read from
        config: Merge settings (defaults to environment config)
    """

    def __init__(
        self,
        registry: EntityRegistry,
        config: Optional[DocSchemaConfig] = None,
    ) -> None:
        self.registry = registry
        self.config = config or get_config()

    def assemble(self, entity_name: str) -> AssembledSchema:
        """Assemble the schema of an entity.

        Args:
            entity_name: Entity whose schema is requested

        Returns:
            AssembledSchema with fields merged across the lineage

        Raises:
            UnknownEntityError: If the entity was never declared
        """
        if not self.registry.has_entity(entity_name):
            raise UnknownEntityError(entity_name)

        lineage = self.registry.lineage(entity_name)
        fields = dict(self.registry.get_fields(entity_name) or {})

        for ancestor in lineage[1:]:
            ancestor_fields = self.registry.get_fields(ancestor) or {}
            for name, descriptor in ancestor_fields.items():
                if name in fields and not self.config.ancestor_fields_win:
                    continue
                fields[name] = descriptor

        options: Dict[str, Any] = {}
        for name in lineage:
            declared = self.registry.get_schema_options(name)
            if declared is not None:
                options = dict(declared)
                break

        behavior = self.registry.get_behavior(entity_name)
        schema = AssembledSchema(
            name=entity_name,
            lineage=tuple(lineage),
            fields=fields,
            options=options,
            virtuals=dict(behavior.virtuals),
            methods=dict(behavior.methods),
            statics=dict(behavior.statics),
        )
        logger.debug(
            f"Assembled {entity_name} from {list(lineage)}: "
            f"{len(fields)} fields, {len(schema.virtuals)} virtuals, "
            f"{len(schema.methods)} methods, {len(schema.statics)} statics"
        )
        return schema
