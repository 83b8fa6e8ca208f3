"""
docschema - Annotation-driven document schemas for MongoDB.

This package compiles annotated classes into persistence-ready schemas:
- Field declarations (field) with type and constraint checks
- Entity options (schema) and inheritance across entity classes
- Virtuals, methods and statics attached to the compiled model
- Lazily built, cached models (mongoengine Documents by default)

Example:
    >>> from docschema import Document, field, schema
    >>>
    >>> class Author(Document):
    ...     name: str = field(required=True, trim=True)
    ...     tags: list[str] = field()
    >>>
    >>> @schema(collection="books")
    ... class Book(Document):
    ...     title: str = field(required=True)
    ...     author = field(ref=Author)
    >>>
    >>> BookModel = Book.get_model()

Invariants:
    - Invalid field declarations fail while the class statement runs
    - One model per entity per registry

Version: 1.0.0
"""

__version__ = "1.0.0"

from .assembler import AssembledSchema, SchemaAssembler
from .compiler import FieldCompiler
from .config import DocSchemaConfig, ModelBackend, get_config
from .document import Document, get_model, schema
from .errors import (
    ArrayMissingTypeError,
    DocSchemaError,
    NumberValidatorsError,
    StringValidatorsError,
    UnknownEntityError,
    UnknownTypeError,
    UnsupportedTypeError,
)
from .models import ModelFactory
from .reflect import AnnotationReflector
from .registry import EntityBehavior, EntityRegistry, get_registry, reset_registry
from .resolver import TypeResolver
from .types import (
    SUPPORTED_TYPES,
    DeclaredType,
    FieldDescriptor,
    FieldKind,
    FieldOptions,
    ResolvedType,
    field,
)

__all__ = [
    # Version
    "__version__",
    # Declarations
    "Document",
    "field",
    "schema",
    "get_model",
    # Types
    "SUPPORTED_TYPES",
    "DeclaredType",
    "FieldDescriptor",
    "FieldKind",
    "FieldOptions",
    "ResolvedType",
    # Compiler components
    "AnnotationReflector",
    "TypeResolver",
    "FieldCompiler",
    "EntityRegistry",
    "EntityBehavior",
    "get_registry",
    "reset_registry",
    "SchemaAssembler",
    "AssembledSchema",
    "ModelFactory",
    # Configuration
    "DocSchemaConfig",
    "ModelBackend",
    "get_config",
    # Errors
    "DocSchemaError",
    "UnknownTypeError",
    "UnsupportedTypeError",
    "ArrayMissingTypeError",
    "StringValidatorsError",
    "NumberValidatorsError",
    "UnknownEntityError",
]
