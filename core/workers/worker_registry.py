"""Classifier Registry - central registry for clause judge backends.

Backends register themselves here and are looked up by name from
``settings.classifier_backend``.
"""

from typing import Any, Dict, List, Optional, Type
import logging

from .base_worker import LanguageModelClassifier


logger = logging.getLogger("clauseguard.classifier_registry")


class ClassifierRegistry:
    """Central registry for all judge backends."""

    _backends: Dict[str, Type[LanguageModelClassifier]] = {}

    @classmethod
    def register(cls, backend_class: Type[LanguageModelClassifier]) -> Type[LanguageModelClassifier]:
        """Register a backend class.

        Can be used as a decorator:
            @ClassifierRegistry.register
            class MyJudge(LanguageModelClassifier):
                BACKEND = "my_backend"
        """
        name = backend_class.BACKEND
        if name in cls._backends:
            logger.warning(f"Overwriting existing backend: {name}")

        cls._backends[name] = backend_class
        logger.debug(f"Registered backend: {name} -> {backend_class.__name__}")
        return backend_class

    @classmethod
    def get_class(cls, name: str) -> Optional[Type[LanguageModelClassifier]]:
        return cls._backends.get(name.lower().strip())

    @classmethod
    def create(cls, name: str, **kwargs: Any) -> LanguageModelClassifier:
        """Create a new backend instance by name.

        Raises:
            KeyError: If no backend is registered under ``name``.
        """
        backend_class = cls.get_class(name)
        if backend_class is None:
            available = ", ".join(sorted(cls._backends)) or "none"
            raise KeyError(f"No classifier backend named {name!r} (available: {available})")
        return backend_class(**kwargs)

    @classmethod
    def list_backends(cls) -> List[dict]:
        """List all registered backends with their descriptions."""
        return [
            {
                "backend": name,
                "class_name": backend_class.__name__,
                "description": backend_class.DESCRIPTION,
            }
            for name, backend_class in cls._backends.items()
        ]
