"""
Declaration surface for docschema.

Entities are plain classes deriving from Document. Creating the class
registers everything it declares:

- Attributes assigned with field() are compiled into the field table, in
  definition order, and removed from the class
- Properties become virtuals, functions become instance methods, and
  staticmethods, classmethods and other attributes become statics
- The nearest Document base is recorded as the parent

The @schema(...) decorator stores entity-wide options.

Example:
    >>> @schema(collection="books")
    ... class Book(Document):
    ...     title: str = field(required=True, trim=True)
    ...     tags: list[str] = field()
    ...     author = field(ref="Author")
    ...
    ...     @property
    ...     def slug(self):
    ...         return self.title.lower().replace(" ", "-")
    >>> Model = Book.get_model()
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, ClassVar, Optional, TypeVar, Union

from .compiler import FieldCompiler
from .config import DocSchemaConfig
from .models import ModelFactory
from .reflect import AnnotationReflector, TypeReflector
from .registry import EntityBehavior, EntityRegistry, get_registry
from .types import FieldOptions

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=type)


class Document:
    """Base class for declared entities.

    Class keywords:
        registry: Registry to declare the entity in. Inherited by
            subclasses; defaults to the process registry.
        reflector: Type reflector for field annotations.

    Example:
        >>> registry = EntityRegistry()
        >>> class Author(Document, registry=registry):
        ...     name: str = field()
    """

    __registry__: ClassVar[Optional[EntityRegistry]] = None
    __reflector__: ClassVar[Optional[TypeReflector]] = None

    def __init_subclass__(
        cls,
        registry: Optional[EntityRegistry] = None,
        reflector: Optional[TypeReflector] = None,
        **kwargs: Any,
    ) -> None:
        super().__init_subclass__(**kwargs)
        if registry is not None:
            cls.__registry__ = registry
        if reflector is not None:
            cls.__reflector__ = reflector
        define_entity(cls, cls.entity_registry(), cls.__reflector__)

    @classmethod
    def entity_registry(cls) -> EntityRegistry:
        """Registry this entity is declared in."""
        return cls.__registry__ or get_registry()

    @classmethod
    def get_model(cls, config: Optional[DocSchemaConfig] = None) -> Any:
        """Get the compiled model of this entity, building it once."""
        return get_model(cls, config=config)


def define_entity(
    cls: type,
    registry: EntityRegistry,
    reflector: Optional[TypeReflector] = None,
) -> None:
    """Register an entity class, its fields and its behavior.

    A failing field leaves the registry as it was before the class
    statement ran.

    Raises:
        DocSchemaError: If a field declaration is invalid
    """
    name = cls.__name__
    previous = registry.snapshot_entity(name)
    registry.register_entity(name, parent=parent_entity(cls))

    reflector = reflector or AnnotationReflector()
    compiler = FieldCompiler(registry)
    try:
        for attr, value in list(vars(cls).items()):
            if isinstance(value, FieldOptions):
                compiler.compile(name, attr, value, reflector(cls, attr))
                delattr(cls, attr)
    except Exception:
        registry.restore_entity(name, previous)
        raise

    register_behavior(cls, registry.behavior(name))


def parent_entity(cls: type) -> Optional[str]:
    """Name of the nearest entity among the class's bases."""
    for base in cls.__mro__[1:]:
        if base is not Document and issubclass(base, Document):
            return base.__name__
    return None


def register_behavior(cls: type, behavior: EntityBehavior) -> EntityBehavior:
    """Register the class's own properties, methods and statics."""
    for attr, value in vars(cls).items():
        if attr.startswith("__") and attr.endswith("__"):
            continue
        if isinstance(value, property):
            behavior.virtual(attr, value.fget, value.fset)
        elif isinstance(value, (staticmethod, classmethod)):
            behavior.static(attr, value)
        elif inspect.isfunction(value):
            behavior.method(attr, value)
        else:
            behavior.static(attr, value)
    return behavior


def schema(**options: Any) -> Callable[[T], T]:
    """Class decorator storing entity-wide options.

    Options are passed to the model backend untouched, e.g.
    ``collection``, ``strict``, ``indexes``, ``auto_index``, ``capped``,
    ``shard_key``, ``db_alias``, ``ordering``.
    """

    def decorator(cls: T) -> T:
        if issubclass(cls, Document):
            registry = cls.entity_registry()
        else:
            registry = get_registry()
        registry.set_schema_options(cls.__name__, options)
        logger.debug(f"Registered schema options for {cls.__name__}: {sorted(options)}")
        return cls

    return decorator


def get_model(
    entity: Union[str, type],
    registry: Optional[EntityRegistry] = None,
    config: Optional[DocSchemaConfig] = None,
) -> Any:
    """Get the compiled model of an entity.

    Args:
        entity: Entity class or name
        registry: Registry to use (defaults to the entity's registry)
        config: Settings (defaults to environment config)

    Returns:
        Cached model, built on first request
    """
    if isinstance(entity, type):
        name = entity.__name__
        if registry is None and issubclass(entity, Document):
            registry = entity.entity_registry()
    else:
        name = entity
    return ModelFactory(registry or get_registry(), config=config).get_model(name)
