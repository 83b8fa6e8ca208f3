"""
Field compilation for docschema.

Compiling a field validates its constraints against the resolved type and
stores a FieldDescriptor in the owning entity's field table:

- References keep only the reference marker and the target entity
- Embedded entities copy the target's field table as it is right now
- Primitives keep their options, with the resolved type set

Nothing is stored for a field whose compilation fails.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import NumberValidatorsError, StringValidatorsError
from .registry import EntityRegistry
from .resolver import TypeResolver
from .types import (
    NUMBER_CONSTRAINTS,
    STRING_CONSTRAINTS,
    DeclaredType,
    EmbeddedSchema,
    FieldDescriptor,
    FieldKind,
    FieldOptions,
    ResolvedType,
)

logger = logging.getLogger(__name__)


class FieldCompiler:
    """Compiles annotated fields into the registry.

    Args:
        registry: Registry receiving the descriptors
        resolver: Type resolver (defaults to one bound to ``registry``)

    Example:
        >>> compiler = FieldCompiler(registry)
        >>> compiler.compile("Author", "name", field(trim=True), DeclaredType(str))
    """

    def __init__(
        self,
        registry: EntityRegistry,
        resolver: Optional[TypeResolver] = None,
    ) -> None:
        self.registry = registry
        self.resolver = resolver or TypeResolver(registry)

    def compile(
        self,
        entity_name: str,
        field_name: str,
        options: Optional[FieldOptions] = None,
        declared: Optional[DeclaredType] = None,
    ) -> FieldDescriptor:
        """Compile one field and merge it into the entity's field table.

        Args:
            entity_name: Owning entity
            field_name: Field name
            options: Field options from field()
            declared: Reflected type, if any

        Returns:
            The stored FieldDescriptor

        Raises:
            UnknownTypeError: No type information
            ArrayMissingTypeError: Array without element type
            UnsupportedTypeError: Unknown type name
            StringValidatorsError: String constraints on non-string field
            NumberValidatorsError: min/max on non-number, non-date field
        """
        options = options or FieldOptions()
        resolved = self.resolver.resolve(
            field_name,
            declared,
            explicit_type=options.type,
            explicit_ref=options.ref,
            entity=entity_name,
        )
        self._check_constraints(entity_name, field_name, resolved, options)

        element = resolved.element
        if element.kind == FieldKind.REFERENCE:
            descriptor = FieldDescriptor(name=field_name, resolved=resolved)
        elif element.kind == FieldKind.EMBEDDED:
            embedded = EmbeddedSchema(
                entity=element.name,
                fields=dict(self.registry.get_fields(element.name) or {}),
                keep_id=options._id is True,
            )
            descriptor = FieldDescriptor(name=field_name, resolved=resolved, embedded=embedded)
        else:
            descriptor = FieldDescriptor(
                name=field_name,
                resolved=resolved,
                options=options.constraints(),
            )

        self.registry.set_field(entity_name, descriptor)
        logger.debug(f"Compiled field {entity_name}.{field_name}: {descriptor.to_dict()!r}")
        return descriptor

    @staticmethod
    def _check_constraints(
        entity_name: str,
        field_name: str,
        resolved: ResolvedType,
        options: FieldOptions,
    ) -> None:
        if options.set_options(STRING_CONSTRAINTS) and not resolved.is_textual:
            raise StringValidatorsError(field_name, entity_name)

        if options.set_options(NUMBER_CONSTRAINTS) and not resolved.is_numeric_or_temporal:
            raise NumberValidatorsError(field_name, entity_name)
