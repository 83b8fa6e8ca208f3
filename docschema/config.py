"""
Configuration for docschema.

Settings come from environment variables so applications can switch
behavior without code changes. Every setting has a default that matches
the behavior existing schemas were written against.

Invariants:
    - Configuration is immutable once loaded
    - Unknown backend names fail loudly at load time

How to change safely:
    - Add new settings with defaults that keep current behavior
    - Pass an explicit DocSchemaConfig in tests instead of mutating env
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

_config: Optional[DocSchemaConfig] = None
_config_lock = threading.Lock()


class ModelBackend(Enum):
    """Supported model backends."""

    MONGOENGINE = "mongoengine"
    SCHEMA = "schema"


@dataclass(frozen=True)
class DocSchemaConfig:
    """Compiler configuration.

    Attributes:
        model_backend: What ModelFactory compiles assembled schemas into.
            MONGOENGINE builds mongoengine Document classes; SCHEMA returns
            the AssembledSchema itself.
        ancestor_fields_win: When an ancestor declares a field with the
            same name as a descendant, keep the ancestor's descriptor.
    """

    model_backend: ModelBackend = ModelBackend.MONGOENGINE
    ancestor_fields_win: bool = True

    @classmethod
    def from_env(cls) -> DocSchemaConfig:
        """Load configuration from environment variables."""
        backend = os.getenv("DOCSCHEMA_MODEL_BACKEND", ModelBackend.MONGOENGINE.value)
        try:
            model_backend = ModelBackend(backend.lower())
        except ValueError:
            raise ValueError(
                f"Invalid DOCSCHEMA_MODEL_BACKEND '{backend}'. "
                f"Must be one of: {[b.value for b in ModelBackend]}"
            ) from None

        return cls(
            model_backend=model_backend,
            ancestor_fields_win=os.getenv("DOCSCHEMA_ANCESTOR_FIELDS_WIN", "true").lower()
            == "true",
        )


def get_config() -> DocSchemaConfig:
    """Get the environment configuration, loaded once."""
    global _config
    with _config_lock:
        if _config is None:
            _config = DocSchemaConfig.from_env()
            logger.debug(f"Loaded configuration: {_config}")
        return _config


def reset_config() -> None:
    """Forget the loaded configuration (for testing only)."""
    global _config
    with _config_lock:
        _config = None
