"""Reflection-based metadata lookup adapter.

Implements MetadataLookupPort by importing the module declaring a test
and reading the overrides attached with the @probe decorator.
"""

import importlib
import logging
from types import ModuleType

from probedock_listener.annotations import get_override
from probedock_listener.core.models import MetadataOverrides, TestIdentity
from probedock_listener.core.ports import MetadataLookupPort

logger = logging.getLogger(__name__)


class ReflectionMetadataLookup(MetadataLookupPort):
    """Resolves a TestIdentity back to its function and class objects."""

    def lookup(self, identity: TestIdentity) -> MetadataOverrides:
        """Read @probe overrides of a test and its class.

        Any import or attribute miss yields MetadataOverrides.none().
        """
        method_name = identity.base_method_name
        if method_name is None:
            return MetadataOverrides.none()

        owner = self._resolve_type(identity.type_name)
        if owner is None:
            logger.debug(f"Declaring type {identity.type_name} not found")
            return MetadataOverrides.none()

        function = getattr(owner, method_name, None)
        if function is None:
            logger.debug(f"Test function {identity} not found")
            return MetadataOverrides.none()

        return MetadataOverrides(
            # Bound methods proxy attribute access to the underlying function
            method=get_override(getattr(function, "__func__", function)),
            cls=get_override(owner) if isinstance(owner, type) else None,
        )

    @staticmethod
    def _resolve_type(type_name: str) -> ModuleType | type | None:
        """Import the longest module prefix, then walk the remaining attributes."""
        parts = type_name.split(".")
        for split in range(len(parts), 0, -1):
            module_name = ".".join(parts[:split])
            try:
                target: object = importlib.import_module(module_name)
            except ImportError:
                continue
            except Exception as e:
                logger.debug(f"Importing {module_name} failed: {e}")
                return None

            for attribute in parts[split:]:
                target = getattr(target, attribute, None)
                if target is None:
                    return None
            if isinstance(target, (ModuleType, type)):
                return target
            return None
        return None
