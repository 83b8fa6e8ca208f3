"""
mongoengine backend for docschema.

Turns an AssembledSchema into a mongoengine Document class:
- Primitives map to the matching mongoengine field
- Arrays become ListField around the element field
- References become ReferenceField by entity name, resolved lazily
- Embedded entities become generated EmbeddedDocument classes
- Virtuals become properties; methods and statics are attached as declared
- The timestamps option adds createdAt/updatedAt fields set on save

Building a class never opens a connection.

Example:
    >>> Author = compile_model(SchemaAssembler(registry).assemble("Author"))
    >>> Author(name=" Ada ").name
    'Ada'
"""

from __future__ import annotations

import datetime
import logging
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import mongoengine
from bson import ObjectId
from mongoengine.base import BaseField

from .assembler import AssembledSchema
from .types import EmbeddedSchema, FieldDescriptor, FieldKind, is_set

logger = logging.getLogger(__name__)

PRIMITIVE_FIELDS: Dict[str, type] = {
    "String": mongoengine.StringField,
    "Number": mongoengine.FloatField,
    "Date": mongoengine.DateTimeField,
    "Buffer": mongoengine.BinaryField,
    "Boolean": mongoengine.BooleanField,
    "ObjectId": mongoengine.ObjectIdField,
    "Decimal128": mongoengine.Decimal128Field,
    "Map": mongoengine.DictField,
}

# Entity option name -> mongoengine meta key
META_KEYS: Dict[str, str] = {
    "collection": "collection",
    "strict": "strict",
    "indexes": "indexes",
    "auto_index": "auto_create_index",
    "capped": "max_size",
    "shard_key": "shard_key",
    "db_alias": "db_alias",
    "ordering": "ordering",
}

TIMESTAMP_KEYS = ("createdAt", "updatedAt")

DEFAULT_VALIDATOR_MESSAGE = "Validator failed for path '{PATH}' with value '{VALUE}'"

Check = Tuple[Callable[[Any], bool], str]


class TransformStringField(mongoengine.StringField):
    """StringField that normalizes case and whitespace on assignment."""

    def __init__(
        self,
        lowercase: bool = False,
        uppercase: bool = False,
        trim: bool = False,
        **kwargs: Any,
    ) -> None:
        self.lowercase = lowercase
        self.uppercase = uppercase
        self.trim = trim
        super().__init__(**kwargs)

    def transform(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        if self.trim:
            value = value.strip()
        if self.lowercase:
            value = value.lower()
        if self.uppercase:
            value = value.upper()
        return value

    def __set__(self, instance: Any, value: Any) -> None:
        super().__set__(instance, self.transform(value))

    def to_mongo(self, value: Any) -> Any:
        return super().to_mongo(self.transform(value))

    def validate(self, value: Any) -> None:
        super().validate(self.transform(value))


class TimestampedDocument(mongoengine.Document):
    """Document recording creation and update times on save.

    Subclasses set ``_timestamp_keys`` to the (created, updated) field
    names; either may be None.
    """

    meta = {"abstract": True}
    _timestamp_keys: Tuple[Optional[str], Optional[str]] = (None, None)

    def stamp(self, now: Optional[datetime.datetime] = None) -> None:
        """Set the update time, and the creation time if still unset."""
        now = now or datetime.datetime.now(datetime.timezone.utc)
        created, updated = self._timestamp_keys
        if created and getattr(self, created) is None:
            setattr(self, created, now)
        if updated:
            setattr(self, updated, now)

    def save(self, *args: Any, **kwargs: Any) -> Any:
        self.stamp()
        return super().save(*args, **kwargs)


def compile_model(schema: AssembledSchema) -> type:
    """Build a mongoengine Document class from an assembled schema.

    Args:
        schema: Assembled schema of one entity

    Returns:
        Document subclass named after the entity
    """
    attrs: Dict[str, Any] = {"__module__": __name__}
    indexes: List[str] = []

    for name, descriptor in schema.fields.items():
        attrs[name] = build_field(descriptor, schema.name)
        if is_set(descriptor.options.get("index")):
            indexes.append(name)

    base: type = mongoengine.Document
    timestamps = _timestamp_fields(schema.options.get("timestamps"))
    if any(timestamps):
        base = TimestampedDocument
        attrs["_timestamp_keys"] = timestamps
        for key in timestamps:
            if key and key not in attrs:
                attrs[key] = mongoengine.DateTimeField()

    for name, virtual in schema.virtuals.items():
        attrs[name] = property(virtual.getter, virtual.setter)
    attrs.update(schema.methods)
    attrs.update(schema.statics)
    attrs["meta"] = _meta(schema.name, schema.options, indexes)

    model = type(schema.name, (base,), attrs)
    logger.debug(f"Built mongoengine document {schema.name} with fields {list(schema.fields)}")
    return model


def build_field(descriptor: FieldDescriptor, owner: str) -> BaseField:
    """Build the mongoengine field for one descriptor."""
    element = descriptor.element
    options = descriptor.options
    outer = _document_kwargs(descriptor.name, options, owner)

    if element.kind == FieldKind.REFERENCE:
        factory: Callable[..., Any] = mongoengine.ReferenceField
        args: Tuple[Any, ...] = (element.name,)
        inner: Dict[str, Any] = {}
    elif element.kind == FieldKind.EMBEDDED:
        document = embedded_document(
            descriptor.embedded or EmbeddedSchema(entity=element.name),
            f"{owner}_{descriptor.name}",
        )
        factory, args, inner = mongoengine.EmbeddedDocumentField, (document,), {}
    else:
        factory, inner = _primitive_field(element.name, descriptor.name, options)
        args = ()

    if descriptor.resolved.is_array:
        return mongoengine.ListField(factory(*args, **inner), **outer)

    kwargs = {**inner, **outer}
    if "validation" in inner and "validation" in outer:
        kwargs["validation"] = _chain(inner["validation"], outer["validation"])
    return factory(*args, **kwargs)


def embedded_document(embedded: EmbeddedSchema, class_name: str) -> type:
    """Generate an EmbeddedDocument class for a sub-document schema."""
    attrs: Dict[str, Any] = {"__module__": __name__}
    for name, descriptor in embedded.fields.items():
        attrs[name] = build_field(descriptor, class_name)
    if embedded.keep_id:
        attrs.setdefault("id", mongoengine.ObjectIdField(db_field="_id", default=ObjectId))
    return type(class_name, (mongoengine.EmbeddedDocument,), attrs)


def _primitive_field(
    type_name: str,
    field_name: str,
    options: Mapping[str, Any],
) -> Tuple[Callable[..., Any], Dict[str, Any]]:
    """Field class and element-level kwargs for a primitive."""
    factory: Callable[..., Any] = PRIMITIVE_FIELDS[type_name]
    kwargs: Dict[str, Any] = {}
    checks: List[Check] = []

    if type_name == "String":
        transforms = {k: True for k in ("lowercase", "uppercase", "trim") if is_set(options.get(k))}
        if transforms:
            factory = TransformStringField
            kwargs.update(transforms)
        if options.get("match") is not None:
            pattern = re.compile(options["match"])
            checks.append(
                (lambda v, pattern=pattern: v is None or bool(pattern.search(str(v))),
                 "Path '{PATH}' is invalid ({VALUE}).")
            )
        if options.get("minlength") is not None:
            kwargs["min_length"] = options["minlength"]
        if options.get("maxlength") is not None:
            kwargs["max_length"] = options["maxlength"]
        if options.get("enum") is not None:
            kwargs["choices"] = _enum_values(options["enum"])

    elif type_name == "Number":
        if options.get("min") is not None:
            kwargs["min_value"] = options["min"]
        if options.get("max") is not None:
            kwargs["max_value"] = options["max"]

    elif type_name == "Date":
        lower, upper = options.get("min"), options.get("max")
        if lower is not None:
            checks.append(
                (lambda v, lower=lower: v is None or v >= lower,
                 f"Path '{{PATH}}' ({{VALUE}}) is before minimum allowed value ({lower}).")
            )
        if upper is not None:
            checks.append(
                (lambda v, upper=upper: v is None or v <= upper,
                 f"Path '{{PATH}}' ({{VALUE}}) is after maximum allowed value ({upper}).")
            )

    if checks:
        kwargs["validation"] = _validation(field_name, checks)
    return factory, kwargs


def _document_kwargs(
    field_name: str,
    options: Mapping[str, Any],
    owner: str,
) -> Dict[str, Any]:
    """Kwargs that apply to the stored value as a whole."""
    kwargs: Dict[str, Any] = {}

    required = options.get("required")
    if callable(required):
        logger.warning(
            f"Conditional 'required' on {owner}.{field_name} is not supported by mongoengine; "
            "the field is stored as optional"
        )
    elif required is not None:
        kwargs["required"] = bool(required)

    if "default" in options:
        kwargs["default"] = options["default"]
    if is_set(options.get("unique")):
        kwargs["unique"] = True
    if is_set(options.get("sparse")):
        kwargs["sparse"] = True
    if options.get("alias"):
        kwargs["db_field"] = options["alias"]
    if options.get("select") is not None:
        logger.debug(f"Ignoring 'select' on {owner}.{field_name}: projections are per query")

    validators = options.get("validate")
    if validators is not None:
        kwargs["validation"] = _validation(field_name, _checks(validators))

    return kwargs


def _checks(validators: Any) -> List[Check]:
    """Normalize validator declarations into (predicate, message) pairs."""
    if isinstance(validators, (list, tuple)):
        return [check for v in validators for check in _checks(v)]
    if isinstance(validators, re.Pattern):
        pattern = validators
        return [(lambda v: v is None or bool(pattern.search(str(v))), DEFAULT_VALIDATOR_MESSAGE)]
    if isinstance(validators, Mapping):
        return [
            (validators["validator"], validators.get("message") or DEFAULT_VALIDATOR_MESSAGE)
        ]
    if callable(validators):
        return [(validators, DEFAULT_VALIDATOR_MESSAGE)]
    raise TypeError(f"Unsupported validator: {validators!r}")


def _validation(field_name: str, checks: List[Check]) -> Callable[[Any], None]:
    """Build a mongoengine ``validation`` callable from checks."""

    def validation(value: Any) -> None:
        for check, message in checks:
            if not check(value):
                raise mongoengine.ValidationError(
                    message.replace("{PATH}", field_name).replace("{VALUE}", str(value))
                )

    return validation


def _chain(*validations: Callable[[Any], None]) -> Callable[[Any], None]:
    def validation(value: Any) -> None:
        for validate in validations:
            validate(value)

    return validation


def _enum_values(enum: Any) -> List[Any]:
    if isinstance(enum, type) and issubclass(enum, Enum):
        return [member.value for member in enum]
    if isinstance(enum, Mapping):
        return list(enum.values())
    return list(enum)


def _meta(name: str, options: Mapping[str, Any], indexes: List[str]) -> Dict[str, Any]:
    """Translate entity options into mongoengine meta."""
    meta: Dict[str, Any] = {}
    for key, value in options.items():
        if key == "timestamps":
            continue
        target = META_KEYS.get(key)
        if target is None:
            logger.warning(f"Option '{key}' on {name} has no mongoengine equivalent, skipped")
            continue
        if target == "shard_key" and isinstance(value, Mapping):
            value = tuple(value)
        meta[target] = value

    if indexes:
        meta["indexes"] = list(meta.get("indexes", [])) + indexes
    return meta


def _timestamp_fields(value: Any) -> Tuple[Optional[str], Optional[str]]:
    """Field names for the ``timestamps`` option.

    ``True`` uses createdAt/updatedAt; a mapping can rename either key or
    disable it with False.
    """
    if not is_set(value):
        return None, None
    keys: List[Optional[str]] = []
    for default in TIMESTAMP_KEYS:
        chosen = value.get(default, True) if isinstance(value, Mapping) else True
        keys.append(default if chosen is True else (chosen or None))
    return keys[0], keys[1]
