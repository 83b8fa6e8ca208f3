"""
Error types for docschema.

This module defines all exception types raised while compiling schemas:
- DocSchemaError: Base exception
- UnknownTypeError: No type information for a field
- UnsupportedTypeError: Type is neither a primitive nor a declared entity
- ArrayMissingTypeError: Array field without an element type
- StringValidatorsError: String constraints on a non-string field
- NumberValidatorsError: Number/date constraints on another field type
- UnknownEntityError: Entity was never declared

Invariants:
    - All errors inherit from DocSchemaError
    - Field errors are raised while the class statement runs
    - Error messages say how to fix the declaration
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DocSchemaError(Exception):
    """Base exception for all docschema errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DOCSCHEMA_ERROR"
        self.details = details or {}


class FieldError(DocSchemaError):
    """Base class for errors tied to a single field declaration."""

    def __init__(
        self,
        message: str,
        code: str,
        field_name: str,
        entity: Optional[str] = None,
        **details: Any,
    ) -> None:
        super().__init__(
            message,
            code=code,
            details={"field": field_name, "entity": entity, **details},
        )
        self.field_name = field_name
        self.entity = entity


class UnknownTypeError(FieldError):
    """No type could be read for a field.

    Raised when the attribute has no annotation and no
    ``type``/``ref`` option.
    """

    def __init__(self, field_name: str, entity: Optional[str] = None) -> None:
        super().__init__(
            f"Couldn't read type information for '{field_name}'.",
            code="UNKNOWN_TYPE",
            field_name=field_name,
            entity=entity,
        )


class UnsupportedTypeError(FieldError):
    """Type is neither a supported primitive nor a declared entity."""

    def __init__(
        self,
        field_name: str,
        type_name: str,
        entity: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Unsupported type '{type_name}' in '{field_name}'.",
            code="UNSUPPORTED_TYPE",
            field_name=field_name,
            entity=entity,
            type_name=type_name,
        )
        self.type_name = type_name


class ArrayMissingTypeError(FieldError):
    """Array field has no element type."""

    def __init__(self, field_name: str, entity: Optional[str] = None) -> None:
        super().__init__(
            f"'{field_name}' is declared as an array, but it's missing type information. "
            "Set it as an option: field(type=str).",
            code="ARRAY_MISSING_TYPE",
            field_name=field_name,
            entity=entity,
        )


class StringValidatorsError(FieldError):
    """String-only constraints used on a non-string field."""

    def __init__(self, field_name: str, entity: Optional[str] = None) -> None:
        super().__init__(
            f"'{field_name}' should be of type String to support string validators.",
            code="STRING_VALIDATORS",
            field_name=field_name,
            entity=entity,
        )


class NumberValidatorsError(FieldError):
    """min/max used on a field that is neither a number nor a date."""

    def __init__(self, field_name: str, entity: Optional[str] = None) -> None:
        super().__init__(
            f"'{field_name}' should be of type Number or Date to support "
            "number or date validators.",
            code="NUMBER_VALIDATORS",
            field_name=field_name,
            entity=entity,
        )


class UnknownEntityError(DocSchemaError):
    """Entity was never declared in the registry."""

    def __init__(self, entity: str) -> None:
        super().__init__(
            f"Unknown entity '{entity}'. Declare it as a Document subclass first.",
            code="UNKNOWN_ENTITY",
            details={"entity": entity},
        )
        self.entity = entity
