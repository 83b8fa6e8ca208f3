"""
Field types for docschema.

This module provides the value types flowing through the compiler:
- FieldOptions: Constraints attached to one field with field()
- DeclaredType: What reflection found on the class for a field
- ResolvedType: Semantic kind of a field (primitive, array, reference, embedded)
- FieldDescriptor: Compiled, storage-ready field
- EmbeddedSchema: Snapshot of an entity's fields used as a sub-document

Invariants:
    - Primitive names are always one of SUPPORTED_TYPES
    - String constraints only survive on String fields
    - min/max only survive on Number and Date fields

Example:
    >>> class Author(Document):
    ...     name: str = field(required=True, trim=True)
    ...     tags: list[str] = field()
"""

from __future__ import annotations

import datetime
import decimal
import re
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from dataclasses import fields as dataclass_fields
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

from bson import Decimal128, ObjectId

SUPPORTED_TYPES = frozenset(
    {
        "String",
        "Number",
        "Date",
        "Buffer",
        "Boolean",
        "ObjectId",
        "Decimal128",
        "Map",
    }
)

# Python types and their canonical schema names
PRIMITIVE_ALIASES: dict[Any, str] = {
    str: "String",
    int: "Number",
    float: "Number",
    datetime.datetime: "Date",
    datetime.date: "Date",
    bytes: "Buffer",
    bytearray: "Buffer",
    bool: "Boolean",
    ObjectId: "ObjectId",
    decimal.Decimal: "Decimal128",
    Decimal128: "Decimal128",
    dict: "Map",
}

# Same mapping, for annotations that stayed strings
PRIMITIVE_NAME_ALIASES: dict[str, str] = {
    "str": "String",
    "int": "Number",
    "float": "Number",
    "datetime": "Date",
    "datetime.datetime": "Date",
    "date": "Date",
    "datetime.date": "Date",
    "bytes": "Buffer",
    "bytearray": "Buffer",
    "bool": "Boolean",
    "Decimal": "Decimal128",
    "decimal.Decimal": "Decimal128",
    "bson.ObjectId": "ObjectId",
    "bson.Decimal128": "Decimal128",
    "dict": "Map",
    "Dict": "Map",
}

STRING_CONSTRAINTS = (
    "lowercase",
    "uppercase",
    "trim",
    "match",
    "enum",
    "minlength",
    "maxlength",
)
NUMBER_CONSTRAINTS = ("min", "max")
REFERENCE_ONLY_OPTIONS = ("type", "ref", "_id")

FieldValidatorFunction = Callable[[Any], bool]
FieldValidator = Union[FieldValidatorFunction, "re.Pattern[str]", Mapping[str, Any]]


def is_set(value: Any) -> bool:
    """An option counts as set unless it is None or False."""
    return value is not None and value is not False


def type_name(handle: Any) -> str:
    """Get the schema name of a type handle.

    Args:
        handle: A class, a type name, or a forward reference

    Returns:
        Canonical primitive name, entity name, or the raw name
    """
    if isinstance(handle, str):
        return PRIMITIVE_NAME_ALIASES.get(handle, handle)
    forward = getattr(handle, "__forward_arg__", None)
    if forward is not None:
        return type_name(forward)
    if handle in PRIMITIVE_ALIASES:
        return PRIMITIVE_ALIASES[handle]
    return getattr(handle, "__name__", repr(handle))


class FieldKind(Enum):
    """Semantic kinds a field can resolve to."""

    PRIMITIVE = "primitive"
    ARRAY = "array"
    REFERENCE = "ref"
    EMBEDDED = "embedded"


@dataclass(frozen=True)
class ResolvedType:
    """Resolved kind of a field.

    Attributes:
        kind: Field kind
        name: Primitive type name, or target entity for REFERENCE/EMBEDDED
        item: Element type for ARRAY
    """

    kind: FieldKind
    name: str = ""
    item: Optional[ResolvedType] = None

    @classmethod
    def primitive(cls, name: str) -> ResolvedType:
        return cls(FieldKind.PRIMITIVE, name)

    @classmethod
    def array_of(cls, item: ResolvedType) -> ResolvedType:
        return cls(FieldKind.ARRAY, item.name, item)

    @classmethod
    def reference_to(cls, entity: str) -> ResolvedType:
        return cls(FieldKind.REFERENCE, entity)

    @classmethod
    def embedded(cls, entity: str) -> ResolvedType:
        return cls(FieldKind.EMBEDDED, entity)

    @property
    def is_array(self) -> bool:
        return self.kind == FieldKind.ARRAY

    @property
    def element(self) -> ResolvedType:
        """Innermost non-array type."""
        resolved = self
        while resolved.item is not None:
            resolved = resolved.item
        return resolved

    @property
    def is_textual(self) -> bool:
        element = self.element
        return element.kind == FieldKind.PRIMITIVE and element.name == "String"

    @property
    def is_numeric_or_temporal(self) -> bool:
        element = self.element
        return element.kind == FieldKind.PRIMITIVE and element.name in ("Number", "Date")


@dataclass(frozen=True)
class DeclaredType:
    """Type information reflected from a class attribute.

    Attributes:
        type: Opaque type handle (class, name or forward reference)
        is_array: Whether the declaration is a collection
        item_type: Element type when the annotation carries one
    """

    type: Any
    is_array: bool = False
    item_type: Any = None

    @property
    def name(self) -> str:
        return type_name(self.type)


@dataclass(frozen=True)
class FieldOptions:
    """Constraints a developer attaches to one field.

    Built with field(); unset options stay None.
    """

    required: Union[bool, Callable[..., bool], None] = None
    default: Any = None
    validate: Union[FieldValidator, list, None] = None
    select: Optional[bool] = None
    alias: Optional[str] = None
    index: Optional[bool] = None
    unique: Optional[bool] = None
    sparse: Optional[bool] = None
    lowercase: Optional[bool] = None
    uppercase: Optional[bool] = None
    trim: Optional[bool] = None
    match: Union[str, "re.Pattern[str]", None] = None
    enum: Any = None
    minlength: Optional[int] = None
    maxlength: Optional[int] = None
    min: Union[int, float, datetime.datetime, None] = None
    max: Union[int, float, datetime.datetime, None] = None
    type: Any = None
    ref: Any = None
    _id: Optional[bool] = None

    def constraints(self) -> dict[str, Any]:
        """Set options, minus the type/reference keys."""
        result: dict[str, Any] = {}
        for f in dataclass_fields(self):
            value = getattr(self, f.name)
            if f.name in REFERENCE_ONLY_OPTIONS or value is None:
                continue
            result[f.name] = value
        return result

    def set_options(self, names: tuple[str, ...]) -> list[str]:
        """Names from ``names`` that are set on this field."""
        return [name for name in names if is_set(getattr(self, name))]


def field(
    *,
    required: Union[bool, Callable[..., bool], None] = None,
    default: Any = None,
    validate: Union[FieldValidator, list, None] = None,
    select: Optional[bool] = None,
    alias: Optional[str] = None,
    index: Optional[bool] = None,
    unique: Optional[bool] = None,
    sparse: Optional[bool] = None,
    lowercase: Optional[bool] = None,
    uppercase: Optional[bool] = None,
    trim: Optional[bool] = None,
    match: Union[str, "re.Pattern[str]", None] = None,
    enum: Any = None,
    minlength: Optional[int] = None,
    maxlength: Optional[int] = None,
    min: Union[int, float, datetime.datetime, None] = None,
    max: Union[int, float, datetime.datetime, None] = None,
    type: Any = None,
    ref: Any = None,
    _id: Optional[bool] = None,
) -> FieldOptions:
    """Declare a schema field on a Document subclass.

    Args:
        required: Whether the field is required (or a callable deciding it)
        default: Default value, or a callable producing it
        validate: Validator function, compiled pattern,
            {"validator": fn, "message": str} mapping, or a list of those
        select: Include in query results by default
        alias: Stored name of the field
        index: Create an index on the field
        unique: Create a unique index on the field
        sparse: Make the index sparse
        lowercase: Lowercase string values
        uppercase: Uppercase string values
        trim: Strip string values
        match: Pattern string values must match
        enum: Allowed string values
        minlength: Minimum string length
        maxlength: Maximum string length
        min: Lower bound for numbers and dates
        max: Upper bound for numbers and dates
        type: Explicit type; ``[X]`` declares an array of X
        ref: Entity referenced by identity
        _id: Keep an _id on an embedded document

    Returns:
        FieldOptions marker, compiled when the class is created

    Example:
        >>> class Book(Document):
        ...     title: str = field(required=True, trim=True)
        ...     author = field(ref="Author")
    """
    return FieldOptions(
        required=required,
        default=default,
        validate=validate,
        select=select,
        alias=alias,
        index=index,
        unique=unique,
        sparse=sparse,
        lowercase=lowercase,
        uppercase=uppercase,
        trim=trim,
        match=match,
        enum=enum,
        minlength=minlength,
        maxlength=maxlength,
        min=min,
        max=max,
        type=type,
        ref=ref,
        _id=_id,
    )


@dataclass(frozen=True)
class EmbeddedSchema:
    """Sub-document built from another entity's field table.

    Attributes:
        entity: Entity the fields were copied from
        fields: Field table at compile time
        keep_id: Whether the sub-document keeps its own _id
    """

    entity: str
    fields: Mapping[str, FieldDescriptor] = dataclass_field(default_factory=dict)
    keep_id: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "fields": {name: d.to_dict() for name, d in self.fields.items()},
            "_id": self.keep_id,
        }


@dataclass(frozen=True)
class FieldDescriptor:
    """Compiled field, ready to merge into a schema definition.

    Attributes:
        name: Field name
        resolved: Resolved field kind
        options: Surviving constraints (primitives only)
        embedded: Sub-document schema for EMBEDDED fields
    """

    name: str
    resolved: ResolvedType
    options: Mapping[str, Any] = dataclass_field(default_factory=dict)
    embedded: Optional[EmbeddedSchema] = None

    @property
    def element(self) -> ResolvedType:
        return self.resolved.element

    def to_dict(self) -> Union[dict[str, Any], list]:
        """Storage-ready definition of this field."""
        element = self.resolved.element
        if element.kind == FieldKind.REFERENCE:
            definition: Any = {"type": "ObjectId", "ref": element.name}
        elif element.kind == FieldKind.EMBEDDED and self.embedded is not None:
            definition = self.embedded.to_dict()
        else:
            type_value: Any = [element.name] if self.resolved.is_array else element.name
            return {**self.options, "type": type_value}
        return [definition] if self.resolved.is_array else definition
