"""Field mapping registry for ehrmap."""

from ehrmap.registry.admin import RegistryAdmin
from ehrmap.registry.loader import RegistryLoader, parse_system
from ehrmap.registry.store import UPDATABLE_PROPERTIES, InMemoryRegistry

__all__ = [
    "UPDATABLE_PROPERTIES",
    "InMemoryRegistry",
    "RegistryAdmin",
    "RegistryLoader",
    "parse_system",
]
