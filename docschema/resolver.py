"""
Type resolution for schema fields.

The resolver decides what a field is: a primitive, an array of something, a
reference to another entity, or an embedded copy of another entity.

Resolution order:
    1. An explicit ``type`` option wins, then ``ref``, then reflection.
    2. Array fields take their element type from ``type``/``ref`` or from
       the parametrized annotation (``list[str]``).
    3. A name registered as an entity is a reference when ``ref`` was given,
       otherwise an embedded document.
    4. Anything else must be one of SUPPORTED_TYPES.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import ArrayMissingTypeError, UnknownTypeError, UnsupportedTypeError
from .registry import EntityRegistry
from .types import SUPPORTED_TYPES, DeclaredType, ResolvedType, type_name

logger = logging.getLogger(__name__)


class TypeResolver:
    """Resolves declared and explicit types into a ResolvedType.

    Args:
        registry: Registry used to recognize entity names
    """

    def __init__(self, registry: EntityRegistry) -> None:
        self.registry = registry

    def resolve(
        self,
        field_name: str,
        declared: Optional[DeclaredType],
        explicit_type: Any = None,
        explicit_ref: Any = None,
        entity: Optional[str] = None,
    ) -> ResolvedType:
        """Resolve the kind of one field.

        Args:
            field_name: Field being resolved
            declared: Reflected type, or None when none was found
            explicit_type: ``type`` option
            explicit_ref: ``ref`` option
            entity: Owning entity, for error context

        Returns:
            ResolvedType of the field

        Raises:
            UnknownTypeError: No reflected type and no override
            ArrayMissingTypeError: Array without an element type
            UnsupportedTypeError: Not a primitive nor a registered entity
        """
        if declared is None and explicit_type is None and explicit_ref is None:
            raise UnknownTypeError(field_name, entity)

        is_array = declared.is_array if declared is not None else False
        if isinstance(explicit_type, (list, tuple)):
            is_array = True
            explicit_type = explicit_type[0] if explicit_type else None

        effective = explicit_type if explicit_type is not None else explicit_ref
        if effective is None and declared is not None:
            effective = declared.item_type if is_array else declared.type

        if is_array and effective is None:
            raise ArrayMissingTypeError(field_name, entity)

        name = type_name(effective)
        if self.registry.has_entity(name):
            if explicit_ref is not None:
                resolved = ResolvedType.reference_to(name)
            else:
                resolved = ResolvedType.embedded(name)
        elif name in SUPPORTED_TYPES:
            resolved = ResolvedType.primitive(name)
        else:
            raise UnsupportedTypeError(field_name, name, entity)

        if is_array:
            resolved = ResolvedType.array_of(resolved)

        logger.debug(f"Resolved {entity}.{field_name} as {resolved.kind.value} '{name}'")
        return resolved
