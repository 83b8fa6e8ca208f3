"""
Model materialization for docschema.

ModelFactory turns an entity's assembled schema into a model once and
caches it in the registry. Later requests get the cached model back.

Invariants:
    - At most one model per entity and backend per registry
    - Concurrent first requests build the model once (registry lock)
    - The model compiler is pluggable; the default follows the configured
      backend
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .assembler import AssembledSchema, SchemaAssembler
from .config import DocSchemaConfig, ModelBackend, get_config
from .registry import EntityRegistry

logger = logging.getLogger(__name__)

ModelCompiler = Callable[[AssembledSchema], Any]


def backend_compiler(backend: ModelBackend) -> ModelCompiler:
    """Get the model compiler of a backend."""
    if backend == ModelBackend.MONGOENGINE:
        from .engine import compile_model

        return compile_model
    if backend == ModelBackend.SCHEMA:
        return lambda schema: schema
    raise ValueError(f"Unknown model backend: {backend}")


class ModelFactory:
    """Builds and caches models for declared entities.

    Args:
        registry: Registry holding declarations and the model cache
        config: Settings (defaults to environment config)
        assembler: Schema assembler (defaults to one on ``registry``)
        compile_model: Model compiler (defaults to the configured backend)

    Example:
        >>> factory = ModelFactory(registry)
        >>> Author = factory.get_model("Author")
        >>> factory.get_model("Author") is Author
        True
    """

    def __init__(
        self,
        registry: EntityRegistry,
        config: Optional[DocSchemaConfig] = None,
        assembler: Optional[SchemaAssembler] = None,
        compile_model: Optional[ModelCompiler] = None,
    ) -> None:
        self.registry = registry
        self.config = config or get_config()
        self.assembler = assembler or SchemaAssembler(registry, self.config)
        self.compile_model = compile_model or backend_compiler(self.config.model_backend)

    def get_model(self, entity_name: str) -> Any:
        """Get the model of an entity, building it on first request.

        Models are cached per configured backend, so switching backends
        builds a separate model.

        Args:
            entity_name: Declared entity

        Returns:
            Cached model

        Raises:
            UnknownEntityError: If the entity was never declared
        """
        backend = self.config.model_backend
        model = self.registry.get_model(entity_name, backend)
        if model is not None:
            return model

        with self.registry.lock:
            model = self.registry.get_model(entity_name, backend)
            if model is None:
                model = self.build_model(entity_name)
                self.registry.set_model(entity_name, model, backend)
                logger.info(f"Built {backend.value} model for {entity_name}")
        return model

    def build_model(self, entity_name: str) -> Any:
        """Assemble and compile a model without touching the cache."""
        return self.compile_model(self.assembler.assemble(entity_name))
